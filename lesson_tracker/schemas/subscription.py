"""
Pydantic schemas for subscription and access endpoints
"""
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class AccessCheckResponse(BaseModel):
    """Access decision for a lesson"""
    has_access: bool
    is_premium_content: bool
    requires_subscription: bool


class SubscriptionStatus(BaseModel):
    """Current subscription state of a user"""
    telegram_id: Optional[int] = None
    subscribed: bool = False
    verified: bool = False
    verified_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    message: str = ""


class VerificationCallback(BaseModel):
    """Subscription verification result reported by the bot"""
    telegram_id: int
    verified: bool


class GrantPremiumRequest(BaseModel):
    """Admin request to grant premium access"""
    telegram_id: int
    days: int = Field(30, ge=0, le=3650, description="Duration in days, 0 keeps the current expiry")


class RevokePremiumRequest(BaseModel):
    """Admin request to revoke premium access"""
    telegram_id: int


class AdminActionResponse(BaseModel):
    success: bool
    message: str
