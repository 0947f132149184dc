"""
Shared API dependencies: caller identity and admin authorization
"""
import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from lesson_tracker.config import settings
from lesson_tracker.services.telegram_auth import extract_user_id, is_admin, validate_init_data

logger = logging.getLogger(__name__)


def get_caller_id(
    x_telegram_init_data: Optional[str] = Header(None),
    x_telegram_user_id: Optional[int] = Header(None)
) -> Optional[int]:
    """
    Telegram id of the caller, or None for anonymous requests

    With a bot token configured only signed WebApp init data is trusted;
    without one the plain user id header is accepted.
    """
    if settings.TELEGRAM_BOT_TOKEN:
        if not x_telegram_init_data:
            return None
        if not validate_init_data(x_telegram_init_data, settings.TELEGRAM_BOT_TOKEN):
            logger.warning("Rejected request with invalid Telegram init data")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid Telegram init data"
            )
        return extract_user_id(x_telegram_init_data)

    if x_telegram_init_data:
        return extract_user_id(x_telegram_init_data)
    return x_telegram_user_id


def require_admin(caller_id: Optional[int] = Depends(get_caller_id)) -> int:
    """Reject non-admin callers before any mutation happens"""
    if caller_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Telegram identity required"
        )
    if not is_admin(caller_id, settings.ADMIN_IDS):
        logger.warning(f"Non-admin user {caller_id} attempted an admin operation")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return caller_id
