"""
Pydantic schemas for users
"""
from pydantic import BaseModel
from typing import Optional
from datetime import datetime


class UserRecord(BaseModel):
    """Immutable snapshot of a user row"""
    telegram_id: int
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    premium_access: bool = False
    subscribed: bool = False
    subscription_started_at: Optional[datetime] = None
    subscription_verified_at: Optional[datetime] = None
    subscription_expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    last_active: Optional[datetime] = None

    class Config:
        frozen = True
        from_attributes = True
