"""
Telegram WebApp init data validation and caller identification
"""
import hashlib
import hmac
import json
import logging
from typing import Dict, Iterable, Optional
from urllib.parse import parse_qsl

logger = logging.getLogger(__name__)


def parse_init_data(init_data: str) -> Dict[str, str]:
    return dict(parse_qsl(init_data or "", keep_blank_values=True))


def compute_init_data_hash(params: Dict[str, str], bot_token: str) -> str:
    """
    Signature Telegram attaches to WebApp init data

    The data-check string is every field except "hash", sorted by key, as
    "key=value" lines; the key is HMAC-SHA256("WebAppData", bot_token).
    """
    data_check_string = "\n".join(
        f"{key}={value}" for key, value in sorted(params.items()) if key != "hash"
    )
    secret_key = hmac.new(b"WebAppData", bot_token.encode(), hashlib.sha256).digest()
    return hmac.new(secret_key, data_check_string.encode(), hashlib.sha256).hexdigest()


def validate_init_data(init_data: str, bot_token: str) -> bool:
    if not init_data or not bot_token:
        return False

    params = parse_init_data(init_data)
    received_hash = params.get("hash")
    if not received_hash:
        return False

    expected = compute_init_data_hash(params, bot_token)
    return hmac.compare_digest(expected, received_hash)


def extract_user_id(init_data: str) -> Optional[int]:
    """Telegram user id from the JSON "user" field of init data"""
    user_param = parse_init_data(init_data).get("user")
    if not user_param:
        return None

    try:
        return int(json.loads(user_param)["id"])
    except (ValueError, KeyError, TypeError) as e:
        logger.warning(f"Failed to parse user ID from init data: {str(e)}")
        return None


def is_admin(telegram_id: Optional[int], admin_ids: Iterable[int]) -> bool:
    return telegram_id is not None and telegram_id in set(admin_ids)
