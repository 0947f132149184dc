"""
Subscription service: premium lesson detection, access checks and premium grants
"""
import logging
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from lesson_tracker.config import LevelConfig, settings
from lesson_tracker.schemas.subscription import AccessCheckResponse, SubscriptionStatus
from lesson_tracker.schemas.user import UserRecord
from lesson_tracker.services.telegram_service import NullNotifier, notifier
from lesson_tracker.services.user_store import UserStore, user_store
from lesson_tracker.utils.cache import NullCache, cache_service, subscription_key

logger = logging.getLogger(__name__)


def has_active_subscription(user: UserRecord, now: datetime) -> bool:
    return user.subscription_expires_at is not None and user.subscription_expires_at > now


class SubscriptionService:
    """
    Access gate for premium lessons

    A lesson is premium when its path contains the label of a premium level
    or one of the generic premium markers.
    """

    def __init__(
        self,
        users: UserStore = user_store,
        cache: NullCache = cache_service,
        notifier: NullNotifier = notifier,
        levels: List[LevelConfig] = None,
        markers: List[str] = None
    ):
        self.users = users
        self.cache = cache
        self.notifier = notifier
        levels = levels if levels is not None else settings.LEVELS
        markers = markers if markers is not None else settings.PREMIUM_MARKERS
        self.premium_markers = [level.label for level in levels if level.premium] + list(markers)

    def is_premium_lesson(self, lesson_path: Optional[str]) -> bool:
        if not lesson_path:
            return False
        return any(marker in lesson_path for marker in self.premium_markers)

    def has_access(self, db: Session, telegram_id: Optional[int], lesson_path: str) -> bool:
        """
        Check if a user may open a lesson

        Free lessons are open to everyone; premium lessons need the admin
        premium flag or an unexpired subscription.
        """
        if not self.is_premium_lesson(lesson_path):
            return True

        if telegram_id is None:
            return False

        user = self.users.find_by_telegram_id(db, telegram_id)
        if user is None:
            return False

        if user.premium_access or has_active_subscription(user, datetime.now()):
            return True

        logger.debug(f"User {telegram_id} does not have access to premium lesson: {lesson_path}")
        return False

    def check_access(self, db: Session, telegram_id: Optional[int], lesson_path: str) -> AccessCheckResponse:
        has_access = self.has_access(db, telegram_id, lesson_path)
        is_premium = self.is_premium_lesson(lesson_path)
        return AccessCheckResponse(
            has_access=has_access,
            is_premium_content=is_premium,
            requires_subscription=is_premium and not has_access
        )

    def grant_premium(self, db: Session, telegram_id: int, days: int) -> UserRecord:
        """
        Grant premium access; days == 0 keeps the current expiry

        Repeating the call with the same arguments leaves the user in the same state.
        """
        if days < 0:
            raise ValueError("days must be non-negative")

        now = datetime.now()
        user = self.users.get_or_create(db, telegram_id)
        update = {
            "premium_access": True,
            "subscribed": True,
            "subscription_started_at": now,
        }
        if days > 0:
            update["subscription_expires_at"] = now + timedelta(days=days)

        stored = self.users.upsert(db, user.model_copy(update=update))
        self.cache.delete(subscription_key(telegram_id))

        logger.info(f"Granted premium access to user {telegram_id} for {days} days")
        return stored

    def revoke_premium(self, db: Session, telegram_id: int) -> UserRecord:
        """Revoke premium access with immediate effect"""
        user = self.users.get_or_create(db, telegram_id)
        stored = self.users.upsert(db, user.model_copy(update={
            "premium_access": False,
            "subscribed": False,
            "subscription_expires_at": datetime.now(),
        }))
        self.cache.delete(subscription_key(telegram_id))

        logger.info(f"Revoked premium access from user {telegram_id}")
        return stored

    def get_subscription_status(self, db: Session, telegram_id: Optional[int]) -> SubscriptionStatus:
        if telegram_id is None:
            return SubscriptionStatus(message="User ID is required")

        user = self.users.find_by_telegram_id(db, telegram_id)
        if user is None:
            return SubscriptionStatus(telegram_id=telegram_id, message="User not found")

        active = has_active_subscription(user, datetime.now())
        return SubscriptionStatus(
            telegram_id=telegram_id,
            subscribed=user.subscribed or active,
            verified=user.subscription_verified_at is not None,
            verified_at=user.subscription_verified_at,
            expires_at=user.subscription_expires_at,
            message="Active subscription" if active else "No active subscription"
        )

    def handle_verification(self, db: Session, telegram_id: int, verified: bool) -> UserRecord:
        """
        Apply a channel subscription check result

        A verified user without an expiry gets the default subscription period.
        """
        now = datetime.now()
        user = self.users.get_or_create(db, telegram_id)

        if verified:
            update = {
                "subscribed": True,
                "subscription_verified_at": now,
            }
            if user.subscription_expires_at is None:
                update["subscription_expires_at"] = now + timedelta(days=settings.DEFAULT_SUBSCRIPTION_DAYS)
            if user.subscription_started_at is None:
                update["subscription_started_at"] = now
        else:
            update = {
                "subscribed": False,
                "subscription_verified_at": None,
            }

        stored = self.users.upsert(db, user.model_copy(update=update))
        self.cache.delete(subscription_key(telegram_id))

        logger.info(f"Subscription verification updated for user {telegram_id}: {verified}")
        return stored

    async def verify_subscription(self, db: Session, telegram_id: int) -> SubscriptionStatus:
        """
        Check channel membership through Telegram and record the result

        Membership answers are cached; when Telegram cannot answer, the stored
        state is returned unchanged.
        """
        cached = self.cache.get(subscription_key(telegram_id))
        if cached is not None:
            member = cached.get("member")
        else:
            member = await self.notifier.check_channel_membership(telegram_id)
            if member is not None:
                self.handle_verification(db, telegram_id, member)
                self.cache.set(
                    subscription_key(telegram_id),
                    {"member": member},
                    ttl=settings.SUBSCRIPTION_CACHE_TTL
                )

        if member is None:
            logger.warning(f"Channel membership unknown for user {telegram_id}, using stored status")

        return self.get_subscription_status(db, telegram_id)


# Global instance
subscription_service = SubscriptionService()
