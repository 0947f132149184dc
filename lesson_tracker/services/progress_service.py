"""
Progress queries and one-shot tracking
"""
import logging
import time
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from lesson_tracker.schemas.progress import ProgressMetrics, ProgressRecord
from lesson_tracker.services.progress_store import ProgressStore, progress_store
from lesson_tracker.services.user_store import UserStore, user_store
from lesson_tracker.utils.cache import NullCache, cache_service, statistics_key

logger = logging.getLogger(__name__)


def to_epoch_ms(value: Optional[datetime]) -> Optional[int]:
    if value is None:
        return None
    return int(value.timestamp() * 1000)


class ProgressService:
    """Service for reading stored progress and recording one-shot reports"""

    def __init__(
        self,
        store: ProgressStore = progress_store,
        users: UserStore = user_store,
        cache: NullCache = cache_service
    ):
        self.store = store
        self.users = users
        self.cache = cache

    def get_metrics(self, db: Session, telegram_id: int, lesson_path: str) -> ProgressMetrics:
        """
        Last known metrics for a lesson

        Returns a "new" placeholder when nothing was recorded yet.
        """
        record = self.store.find_by_user_and_lesson(db, telegram_id, lesson_path)
        if record is None:
            return ProgressMetrics(
                time_spent=0,
                scroll_progress=0,
                reading_speed=0.0,
                completion_score=0.0,
                engagement_level="new",
                visits=0,
                completed=False
            )

        return ProgressMetrics(
            time_spent=record.time_spent,
            scroll_progress=record.scroll_progress,
            reading_speed=record.reading_speed,
            completion_score=record.completion_score,
            engagement_level=record.engagement_level,
            visits=record.visits,
            last_visited=to_epoch_ms(record.last_visited),
            completed=record.completed
        )

    def get_user_progress(self, db: Session, telegram_id: int) -> List[ProgressRecord]:
        return self.store.find_by_user(db, telegram_id)

    def track_reading(
        self,
        db: Session,
        telegram_id: int,
        lesson_path: str,
        active_time_ms: int,
        scroll_pct: int
    ) -> ProgressRecord:
        """Add a reading report without a live session"""
        if active_time_ms < 0:
            raise ValueError("active_time_ms must be non-negative")

        record = self.store.find_or_new(db, telegram_id, lesson_path)
        stored = self.store.upsert(db, record.model_copy(update={
            "time_spent": record.time_spent + active_time_ms,
            "scroll_progress": min(max(scroll_pct, 0), 100),
            "visits": record.visits + 1,
            "last_visited": datetime.now(),
        }))
        self.users.touch(db, telegram_id)
        self.cache.delete(statistics_key(telegram_id))

        logger.info(f"Tracked reading session for user {telegram_id} on lesson {lesson_path}")
        return stored

    def track_event(
        self,
        telegram_id: int,
        event_type: str,
        lesson_path: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None
    ) -> bool:
        """Queue an analytics event in the cache for batch processing"""
        event = dict(data or {})
        event.update({
            "telegram_id": telegram_id,
            "event_type": event_type,
            "lesson_path": lesson_path,
            "timestamp": int(time.time() * 1000),
        })
        logger.debug(f"Tracking event {event_type} for user {telegram_id} on lesson {lesson_path}")
        return self.cache.push_event(event)


# Global instance
progress_service = ProgressService()
