"""
Pydantic schemas for Telegram bot endpoints
"""
from pydantic import BaseModel, Field
from typing import Optional


class BotInfoResponse(BaseModel):
    configured: bool
    channel: Optional[str] = None
    message: Optional[str] = None


class LessonNotificationRequest(BaseModel):
    """New lesson announcement for the channel"""
    title: str = Field(..., min_length=1, max_length=255)
    path: str = Field(..., min_length=1, max_length=512)


class WelcomeRequest(BaseModel):
    telegram_id: int
    first_name: Optional[str] = Field(None, max_length=255)


class SendMessageRequest(BaseModel):
    """Admin message for the channel or a single user"""
    message: str = Field("", max_length=4096)
    target: str = Field("channel", description='"channel" or a numeric Telegram user id')


class TelegramActionResponse(BaseModel):
    success: bool
    message: str
    telegram_id: Optional[int] = None
