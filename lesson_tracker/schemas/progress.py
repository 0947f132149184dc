"""
Pydantic schemas for reading sessions and progress tracking
"""
from pydantic import BaseModel, Field
from typing import Any, Dict, Optional
from datetime import datetime


class ProgressRecord(BaseModel):
    """Immutable snapshot of one user's progress on one lesson"""
    telegram_id: int
    lesson_path: str
    time_spent: int = 0  # milliseconds
    scroll_progress: int = 0
    reading_speed: float = 0.0
    completion_score: float = 0.0
    engagement_level: str = "low"
    visits: int = 0
    last_visited: Optional[datetime] = None
    completed: bool = False
    completed_at: Optional[datetime] = None

    class Config:
        frozen = True
        from_attributes = True


class ReadingSession(BaseModel):
    """In-memory state of an active reading session (timestamps in epoch ms)"""
    telegram_id: int
    lesson_path: str
    start_time: int
    last_activity_time: int
    active_time: int = 0
    scroll_progress: int = 0
    word_count: int = 0
    engagement_points: int = 0

    class Config:
        frozen = True


class SessionStartRequest(BaseModel):
    """Schema for starting a reading session"""
    telegram_id: int
    lesson_path: str = Field(..., min_length=1, max_length=500)
    word_count: int = Field(..., ge=0, description="Lesson word count")


class ScrollUpdateRequest(BaseModel):
    """Schema for reporting scroll position"""
    telegram_id: int
    lesson_path: str = Field(..., min_length=1, max_length=500)
    scroll_progress: int = Field(..., ge=0, le=100, description="Scroll percentage")


class SessionEndRequest(BaseModel):
    """Schema for ending a reading session"""
    telegram_id: int
    lesson_path: str = Field(..., min_length=1, max_length=500)


class TrackReadingRequest(BaseModel):
    """One-shot reading report (legacy clients)"""
    telegram_id: int
    lesson_path: str = Field(..., min_length=1, max_length=500)
    active_time: int = Field(..., ge=0, description="Active reading time in milliseconds")
    scroll_progress: int = Field(0, ge=0, le=100)


class AnalyticsEventRequest(BaseModel):
    """Client analytics event"""
    telegram_id: int
    event_type: str = Field(..., min_length=1, max_length=100)
    lesson_path: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)


class ProgressMetrics(BaseModel):
    """Reading metrics for one lesson"""
    time_spent: int
    scroll_progress: int
    reading_speed: float
    completion_score: float
    engagement_level: str
    visits: Optional[int] = None
    last_visited: Optional[int] = None  # epoch ms
    completed: Optional[bool] = None


class SessionOutcome(BaseModel):
    """Result of ending a session"""
    metrics: ProgressMetrics
    newly_completed: bool = False


class StatusResponse(BaseModel):
    """Generic acknowledgement"""
    status: str = "success"
