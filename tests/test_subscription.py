import asyncio
from datetime import datetime, timedelta

import pytest

from lesson_tracker.config import DEFAULT_LEVELS
from lesson_tracker.services.subscription_service import SubscriptionService
from lesson_tracker.services.telegram_service import NullNotifier
from lesson_tracker.services.user_store import user_store
from lesson_tracker.utils.cache import NullCache

FREE = "Начальный уровень (Бесплатно)/Урок 1"
PREMIUM = "Средний уровень (Подписка)/Урок 3"


class FakeNotifier(NullNotifier):
    def __init__(self, member=None):
        super().__init__()
        self.member = member
        self.checks = 0

    async def check_channel_membership(self, telegram_id):
        self.checks += 1
        return self.member


def make_service(notifier=None, cache=None):
    return SubscriptionService(
        cache=cache or NullCache(),
        notifier=notifier or NullNotifier(),
        levels=DEFAULT_LEVELS,
        markers=["🎓"]
    )


@pytest.fixture
def service():
    return make_service()


@pytest.mark.parametrize("path,premium", [
    ("Начальный уровень (Бесплатно)/Урок 1", False),
    ("Средний уровень (Подписка)/Урок 3", True),
    ("Продвинутый уровень (Подписка)/Урок 1", True),
    ("Эксперт уровень (Подписка)/Урок 1", True),
    ("Бонусы/🎓 Мастер-класс", True),
    ("", False),
    (None, False),
])
def test_is_premium_lesson(service, path, premium):
    assert service.is_premium_lesson(path) is premium


def test_free_lessons_open_to_everyone(service, db):
    assert service.has_access(db, None, FREE) is True
    assert service.has_access(db, 555, FREE) is True


def test_premium_denied_without_identity_or_user(service, db):
    assert service.has_access(db, None, PREMIUM) is False
    assert service.has_access(db, 555, PREMIUM) is False


def test_premium_flag_grants_access(service, db):
    service.grant_premium(db, 555, 0)
    assert service.has_access(db, 555, PREMIUM) is True


def test_unexpired_subscription_grants_access(service, db):
    user = user_store.get_or_create(db, 556)
    user_store.upsert(db, user.model_copy(update={
        "subscription_expires_at": datetime.now() + timedelta(days=1)
    }))
    assert service.has_access(db, 556, PREMIUM) is True


def test_expired_subscription_denied(service, db):
    user = user_store.get_or_create(db, 557)
    user_store.upsert(db, user.model_copy(update={
        "subscribed": True,
        "subscription_expires_at": datetime.now() - timedelta(seconds=1)
    }))
    assert service.has_access(db, 557, PREMIUM) is False


def test_check_access(service, db):
    result = service.check_access(db, 558, PREMIUM)
    assert result.has_access is False
    assert result.is_premium_content is True
    assert result.requires_subscription is True

    result = service.check_access(db, 558, FREE)
    assert result.has_access is True
    assert result.requires_subscription is False


def test_grant_creates_user_and_sets_expiry(service, db):
    before = datetime.now()
    stored = service.grant_premium(db, 600, 30)

    assert stored.premium_access is True
    assert stored.subscribed is True
    assert stored.subscription_started_at >= before
    assert stored.subscription_expires_at >= before + timedelta(days=30)
    assert service.has_access(db, 600, PREMIUM) is True


def test_grant_zero_days_keeps_expiry(service, db):
    first = service.grant_premium(db, 601, 10)
    second = service.grant_premium(db, 601, 0)
    assert second.subscription_expires_at == first.subscription_expires_at


def test_grant_rejects_negative_days(service, db):
    with pytest.raises(ValueError):
        service.grant_premium(db, 602, -1)
    assert user_store.find_by_telegram_id(db, 602) is None


def test_revoke_removes_access(service, db):
    service.grant_premium(db, 603, 30)
    revoked = service.revoke_premium(db, 603)

    assert revoked.premium_access is False
    assert revoked.subscribed is False
    assert service.has_access(db, 603, PREMIUM) is False


def test_status_messages(service, db):
    assert service.get_subscription_status(db, None).message == "User ID is required"
    assert service.get_subscription_status(db, 700).message == "User not found"

    user_store.get_or_create(db, 700)
    status = service.get_subscription_status(db, 700)
    assert status.subscribed is False
    assert status.message == "No active subscription"

    service.grant_premium(db, 700, 5)
    status = service.get_subscription_status(db, 700)
    assert status.subscribed is True
    assert status.message == "Active subscription"


def test_verification_sets_default_period(service, db):
    stored = service.handle_verification(db, 701, True)

    assert stored.subscribed is True
    assert stored.subscription_verified_at is not None
    assert stored.subscription_expires_at > datetime.now() + timedelta(days=29)
    assert service.get_subscription_status(db, 701).verified is True


def test_failed_verification_clears_flags(service, db):
    service.handle_verification(db, 702, True)
    stored = service.handle_verification(db, 702, False)

    assert stored.subscribed is False
    assert stored.subscription_verified_at is None


def test_verify_subscription_records_membership(db):
    notifier = FakeNotifier(member=True)
    service = make_service(notifier=notifier)

    status = asyncio.run(service.verify_subscription(db, 703))

    assert notifier.checks == 1
    assert status.subscribed is True
    assert status.verified is True


def test_verify_subscription_keeps_state_when_unknown(db):
    service = make_service(notifier=FakeNotifier(member=None))

    status = asyncio.run(service.verify_subscription(db, 704))

    assert status.message == "User not found"
    assert user_store.find_by_telegram_id(db, 704) is None


def test_verify_subscription_uses_cached_answer(db):
    class DictCache(NullCache):
        def __init__(self):
            self.data = {}

        def get(self, key):
            return self.data.get(key)

        def set(self, key, value, ttl=None):
            self.data[key] = value
            return True

    notifier = FakeNotifier(member=True)
    service = make_service(notifier=notifier, cache=DictCache())

    asyncio.run(service.verify_subscription(db, 705))
    asyncio.run(service.verify_subscription(db, 705))

    assert notifier.checks == 1
