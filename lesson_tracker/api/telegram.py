"""
Telegram bot API endpoints: channel announcements, welcome and admin messages
"""
from fastapi import APIRouter, Depends, HTTPException, status
from typing import Optional
import logging

from lesson_tracker.api.deps import get_caller_id, require_admin
from lesson_tracker.config import settings
from lesson_tracker.schemas.telegram import (
    BotInfoResponse, LessonNotificationRequest, SendMessageRequest,
    TelegramActionResponse, WelcomeRequest
)
from lesson_tracker.services.telegram_auth import is_admin
from lesson_tracker.services.telegram_service import notifier

router = APIRouter(prefix="/api/telegram", tags=["telegram"])
logger = logging.getLogger(__name__)


@router.get("/bot/info", response_model=BotInfoResponse)
async def get_bot_info():
    """Whether the bot is configured and which channel it posts to"""

    return notifier.status()


@router.post("/notify/lesson", response_model=TelegramActionResponse)
async def notify_new_lesson(
    request: LessonNotificationRequest,
    admin_id: int = Depends(require_admin)
):
    """Announce a lesson in the channel (admin only)"""

    sent = await notifier.notify_channel_new_lesson(request.title, request.path)
    logger.info(f"Admin {admin_id} announced lesson {request.path}, delivered={sent}")
    return TelegramActionResponse(
        success=sent,
        message="Notification sent" if sent else "Notification not delivered"
    )


@router.post("/welcome", response_model=TelegramActionResponse)
async def send_welcome(
    request: WelcomeRequest,
    caller_id: Optional[int] = Depends(get_caller_id)
):
    """Send the welcome message to a new subscriber (the user themselves or an admin)"""

    if caller_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Telegram identity required"
        )
    if caller_id != request.telegram_id and not is_admin(caller_id, settings.ADMIN_IDS):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Cannot send a welcome message to another user"
        )

    sent = await notifier.send_welcome_message(request.telegram_id, request.first_name)
    return TelegramActionResponse(
        success=sent,
        message="Welcome message sent" if sent else "Welcome message not delivered",
        telegram_id=request.telegram_id
    )


@router.post("/send-message", response_model=TelegramActionResponse)
async def send_message(
    request: SendMessageRequest,
    admin_id: int = Depends(require_admin)
):
    """
    Send a message to the channel or to one user (admin only)

    - target "channel" broadcasts to the configured channel
    - a numeric target is treated as a Telegram user id
    """

    if not request.message.strip():
        raise HTTPException(status_code=400, detail="Message is required")

    try:
        sent = await notifier.send_admin_message(request.message, request.target)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid target")

    if request.target == "channel":
        destination = "channel"
        telegram_id = None
    else:
        telegram_id = int(request.target)
        destination = f"user {telegram_id}"

    logger.info(f"Admin {admin_id} sent a message to {destination}, delivered={sent}")
    return TelegramActionResponse(
        success=sent,
        message=f"Message sent to {destination}" if sent else f"Message not delivered to {destination}",
        telegram_id=telegram_id
    )
