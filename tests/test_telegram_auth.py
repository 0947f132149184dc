import json
from urllib.parse import urlencode

from lesson_tracker.services.telegram_auth import (
    compute_init_data_hash, extract_user_id, is_admin, validate_init_data
)

BOT_TOKEN = "123456:TEST-TOKEN"


def signed_init_data(user_id=42, token=BOT_TOKEN, **extra):
    params = {
        "auth_date": "1700000000",
        "query_id": "AAE",
        "user": json.dumps({"id": user_id, "first_name": "Test"}),
    }
    params.update(extra)
    params["hash"] = compute_init_data_hash(params, token)
    return urlencode(params)


def test_valid_init_data():
    init_data = signed_init_data()
    assert validate_init_data(init_data, BOT_TOKEN) is True
    assert extract_user_id(init_data) == 42


def test_wrong_token_rejected():
    assert validate_init_data(signed_init_data(), "654321:OTHER") is False


def test_tampered_user_rejected():
    init_data = signed_init_data().replace("42", "43")
    assert validate_init_data(init_data, BOT_TOKEN) is False


def test_missing_hash_rejected():
    assert validate_init_data("auth_date=1&user=%7B%22id%22%3A1%7D", BOT_TOKEN) is False
    assert validate_init_data("", BOT_TOKEN) is False
    assert validate_init_data(signed_init_data(), "") is False


def test_extract_user_id_bad_payload():
    assert extract_user_id("user=not-json") is None
    assert extract_user_id("auth_date=1") is None


def test_is_admin():
    assert is_admin(1, [1, 2]) is True
    assert is_admin(3, [1, 2]) is False
    assert is_admin(None, [1]) is False
