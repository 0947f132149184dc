"""
Reading session and progress API endpoints
"""
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session
from typing import List
import logging

from lesson_tracker.database import get_db
from lesson_tracker.schemas.progress import (
    AnalyticsEventRequest, ProgressMetrics, ProgressRecord, ReadingSession,
    ScrollUpdateRequest, SessionEndRequest, SessionStartRequest, StatusResponse,
    TrackReadingRequest
)
from lesson_tracker.services.lesson_service import lesson_service
from lesson_tracker.services.progress_service import progress_service
from lesson_tracker.services.session_tracker import session_tracker
from lesson_tracker.services.subscription_service import subscription_service
from lesson_tracker.services.telegram_service import notifier

router = APIRouter(prefix="/api/progress", tags=["progress"])
logger = logging.getLogger(__name__)


@router.post("/session/start", response_model=ReadingSession)
async def start_session(
    request: SessionStartRequest,
    db: Session = Depends(get_db)
):
    """
    Start a reading session for a lesson

    - Premium lessons require an active subscription
    - Counts a visit immediately
    - Replaces any unfinished session for the same lesson
    """

    if not subscription_service.has_access(db, request.telegram_id, request.lesson_path):
        raise HTTPException(status_code=403, detail="Subscription required for this lesson")

    return session_tracker.start_session(
        db,
        request.telegram_id,
        request.lesson_path,
        request.word_count
    )


@router.post("/session/scroll", response_model=StatusResponse)
async def update_scroll(request: ScrollUpdateRequest):
    """
    Report the current scroll position

    Reports for sessions that are not active are ignored.
    """

    session = session_tracker.update_scroll(
        request.telegram_id,
        request.lesson_path,
        request.scroll_progress
    )
    return StatusResponse(status="updated" if session else "no_active_session")


@router.post(
    "/session/end",
    response_model=ProgressMetrics,
    responses={204: {"description": "No active session"}}
)
async def end_session(
    request: SessionEndRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db)
):
    """
    End a reading session and return its metrics

    Returns 204 when no session is active. A congratulation message is sent
    through Telegram the first time a lesson is completed.
    """

    outcome = session_tracker.end_session(db, request.telegram_id, request.lesson_path)
    if outcome is None:
        return Response(status_code=204)

    if outcome.newly_completed:
        lesson = lesson_service.get_lesson(db, request.lesson_path)
        title = lesson.title if lesson else request.lesson_path.rsplit("/", 1)[-1]
        background_tasks.add_task(notifier.notify_lesson_completion, request.telegram_id, title)

    return outcome.metrics


@router.get("/metrics", response_model=ProgressMetrics)
async def get_metrics(
    telegram_id: int,
    lesson_path: str = Query(..., min_length=1),
    db: Session = Depends(get_db)
):
    """Last known metrics for a lesson, or a "new" placeholder"""

    return progress_service.get_metrics(db, telegram_id, lesson_path)


@router.get("/user/{telegram_id}", response_model=List[ProgressRecord])
async def get_user_progress(
    telegram_id: int,
    db: Session = Depends(get_db)
):
    """All progress records of a user"""

    logger.info(f"Getting user progress for {telegram_id}")
    return progress_service.get_user_progress(db, telegram_id)


@router.post("/track", response_model=ProgressRecord)
async def track_reading(
    request: TrackReadingRequest,
    db: Session = Depends(get_db)
):
    """One-shot reading report for clients without live sessions"""

    return progress_service.track_reading(
        db,
        request.telegram_id,
        request.lesson_path,
        request.active_time,
        request.scroll_progress
    )


@router.post("/event", response_model=StatusResponse)
async def track_event(request: AnalyticsEventRequest):
    """Queue a client analytics event"""

    queued = progress_service.track_event(
        request.telegram_id,
        request.event_type,
        request.lesson_path,
        request.data
    )
    return StatusResponse(status="queued" if queued else "dropped")
