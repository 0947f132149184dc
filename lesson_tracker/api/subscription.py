"""
Subscription and lesson access API endpoints
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
import logging

from lesson_tracker.api.deps import require_admin
from lesson_tracker.database import get_db
from lesson_tracker.schemas.subscription import (
    AccessCheckResponse, AdminActionResponse, GrantPremiumRequest,
    RevokePremiumRequest, SubscriptionStatus, VerificationCallback
)
from lesson_tracker.services.subscription_service import subscription_service

router = APIRouter(prefix="/api/subscription", tags=["subscription"])
logger = logging.getLogger(__name__)


@router.get("/access/check", response_model=AccessCheckResponse)
async def check_lesson_access(
    lesson_path: str = Query(..., min_length=1),
    telegram_id: Optional[int] = None,
    db: Session = Depends(get_db)
):
    """Whether a user may open a lesson and whether it needs a subscription"""

    return subscription_service.check_access(db, telegram_id, lesson_path)


@router.get("/status/{telegram_id}", response_model=SubscriptionStatus)
async def get_subscription_status(
    telegram_id: int,
    verify: bool = False,
    db: Session = Depends(get_db)
):
    """
    Subscription status of a user

    With verify=true the channel membership is checked through Telegram first.
    """

    logger.info(f"Getting subscription status for user: {telegram_id}")
    if verify:
        return await subscription_service.verify_subscription(db, telegram_id)
    return subscription_service.get_subscription_status(db, telegram_id)


@router.post("/callback/verified", response_model=SubscriptionStatus)
async def handle_verification_callback(
    callback: VerificationCallback,
    db: Session = Depends(get_db)
):
    """Record a subscription verification result reported by the bot"""

    subscription_service.handle_verification(db, callback.telegram_id, callback.verified)
    return subscription_service.get_subscription_status(db, callback.telegram_id)


@router.post("/admin/grant", response_model=AdminActionResponse)
async def grant_premium_access(
    request: GrantPremiumRequest,
    admin_id: int = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Grant premium access (admin only)"""

    logger.info(f"Admin {admin_id} granting premium to {request.telegram_id} for {request.days} days")
    subscription_service.grant_premium(db, request.telegram_id, request.days)
    return AdminActionResponse(
        success=True,
        message=f"Premium access granted for {request.days} days"
    )


@router.post("/admin/revoke", response_model=AdminActionResponse)
async def revoke_premium_access(
    request: RevokePremiumRequest,
    admin_id: int = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Revoke premium access (admin only)"""

    logger.info(f"Admin {admin_id} revoking premium from {request.telegram_id}")
    subscription_service.revoke_premium(db, request.telegram_id)
    return AdminActionResponse(success=True, message="Premium access revoked")
