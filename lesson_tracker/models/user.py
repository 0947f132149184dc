"""
User model - Telegram users and their subscription flags
"""
from datetime import datetime

from sqlalchemy import Column, Integer, BigInteger, String, Boolean, DateTime
from sqlalchemy.orm import relationship

from lesson_tracker.database import Base


class User(Base):
    """
    Users table - one row per Telegram account, created lazily on first activity
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    telegram_id = Column(BigInteger, unique=True, nullable=False, index=True)
    username = Column(String(255))
    first_name = Column(String(255))
    last_name = Column(String(255))
    premium_access = Column(Boolean, nullable=False, default=False)
    subscribed = Column(Boolean, nullable=False, default=False)
    subscription_started_at = Column(DateTime)
    subscription_verified_at = Column(DateTime)
    subscription_expires_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.now)
    last_active = Column(DateTime, default=datetime.now)

    progress = relationship(
        "UserProgress",
        back_populates="user",
        cascade="all, delete-orphan"
    )

    def __repr__(self):
        return f"<User(telegram_id={self.telegram_id}, premium={self.premium_access})>"
