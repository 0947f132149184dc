"""
User store - loads and saves users as immutable snapshots
"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from lesson_tracker.models import User
from lesson_tracker.schemas.user import UserRecord

logger = logging.getLogger(__name__)

# Columns written by upsert; created_at is owned by the database row
WRITABLE_FIELDS = (
    "username", "first_name", "last_name", "premium_access", "subscribed",
    "subscription_started_at", "subscription_verified_at",
    "subscription_expires_at", "last_active",
)


class UserStore:
    """Persistence adapter for users keyed by Telegram id"""

    def get_row(self, db: Session, telegram_id: int) -> Optional[User]:
        return db.query(User).filter(User.telegram_id == telegram_id).first()

    def get_or_create_row(self, db: Session, telegram_id: int) -> User:
        """Get the user row, adding a new one to the session if missing (not committed)"""
        user = self.get_row(db, telegram_id)
        if user is None:
            user = User(telegram_id=telegram_id, created_at=datetime.now(), last_active=datetime.now())
            db.add(user)
            db.flush()
            logger.info(f"Created user {telegram_id}")
        return user

    def find_by_telegram_id(self, db: Session, telegram_id: int) -> Optional[UserRecord]:
        user = self.get_row(db, telegram_id)
        return UserRecord.model_validate(user) if user else None

    def get_or_create(self, db: Session, telegram_id: int) -> UserRecord:
        user = self.get_or_create_row(db, telegram_id)
        db.commit()
        db.refresh(user)
        return UserRecord.model_validate(user)

    def upsert(self, db: Session, record: UserRecord) -> UserRecord:
        """Write a snapshot and return the stored value"""
        user = self.get_or_create_row(db, record.telegram_id)
        for field in WRITABLE_FIELDS:
            setattr(user, field, getattr(record, field))
        db.commit()
        db.refresh(user)
        return UserRecord.model_validate(user)

    def touch(self, db: Session, telegram_id: int) -> UserRecord:
        """Mark the user as active now, creating it if needed"""
        user = self.get_or_create_row(db, telegram_id)
        user.last_active = datetime.now()
        db.commit()
        db.refresh(user)
        return UserRecord.model_validate(user)


# Global instance
user_store = UserStore()
