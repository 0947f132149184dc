"""
Reading session tracking
Holds active sessions in memory and turns them into durable progress on end
"""
import logging
import threading
import time
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from lesson_tracker.config import settings
from lesson_tracker.schemas.progress import (
    ProgressMetrics, ProgressRecord, ReadingSession, SessionOutcome
)
from lesson_tracker.services.engagement_service import EngagementScorer, engagement_scorer
from lesson_tracker.services.progress_store import ProgressStore, progress_store
from lesson_tracker.services.user_store import UserStore, user_store
from lesson_tracker.utils.cache import NullCache, cache_service, statistics_key

logger = logging.getLogger(__name__)

SessionKey = Tuple[int, str]

# (scroll threshold, points awarded), highest first
SCROLL_MILESTONES = ((90, 100), (75, 75), (50, 50), (25, 25))


def current_time_ms() -> int:
    return int(time.time() * 1000)


def milestone_points(scroll_pct: int) -> int:
    """Engagement points earned by reaching a scroll depth"""
    for threshold, points in SCROLL_MILESTONES:
        if scroll_pct >= threshold:
            return points
    return 0


class ReadingSessionTracker:
    """
    In-memory reading sessions keyed by (telegram_id, lesson_path)

    Every read-modify-write of the session map happens under one lock, so a
    scroll update can never interleave with an end for the same key. Database
    work runs outside the lock.
    """

    def __init__(
        self,
        store: ProgressStore = progress_store,
        users: UserStore = user_store,
        scorer: EngagementScorer = engagement_scorer,
        cache: NullCache = cache_service,
        clock: Callable[[], int] = current_time_ms,
        activity_window_ms: int = None,
        completion_threshold: float = None
    ):
        if activity_window_ms is None:
            activity_window_ms = settings.ACTIVITY_WINDOW_MS
        if completion_threshold is None:
            completion_threshold = settings.COMPLETION_THRESHOLD

        self.store = store
        self.users = users
        self.scorer = scorer
        self.cache = cache
        self.clock = clock
        self.activity_window_ms = activity_window_ms
        self.completion_threshold = completion_threshold

        self._sessions: Dict[SessionKey, ReadingSession] = {}
        self._lock = threading.Lock()

    def start_session(
        self,
        db: Session,
        telegram_id: int,
        lesson_path: str,
        word_count: int
    ) -> ReadingSession:
        """
        Start (or restart) a session and count a visit

        A previous unfinished session for the same key is discarded.
        """
        if word_count < 0:
            raise ValueError("word_count must be non-negative")

        now = self.clock()
        session = ReadingSession(
            telegram_id=telegram_id,
            lesson_path=lesson_path,
            start_time=now,
            last_activity_time=now,
            word_count=word_count
        )

        with self._lock:
            replaced = self._sessions.get((telegram_id, lesson_path)) is not None
            self._sessions[(telegram_id, lesson_path)] = session

        if replaced:
            logger.info(f"Restarted session for user {telegram_id} on lesson {lesson_path}")
        else:
            logger.info(f"Started session for user {telegram_id} on lesson {lesson_path}")

        self.users.touch(db, telegram_id)
        self._increment_visits(db, telegram_id, lesson_path)

        return session

    def update_scroll(self, telegram_id: int, lesson_path: str, scroll_pct: int) -> Optional[ReadingSession]:
        """
        Record a scroll report; returns the updated session or None if no session is active

        Gaps shorter than the activity window count as reading time, longer
        gaps are treated as the reader having stepped away.
        """
        key = (telegram_id, lesson_path)
        with self._lock:
            session = self._sessions.get(key)
            if session is None:
                return None

            now = self.clock()
            elapsed = now - session.last_activity_time
            active_time = session.active_time
            if 0 <= elapsed < self.activity_window_ms:
                active_time += elapsed

            updated = session.model_copy(update={
                "active_time": active_time,
                "scroll_progress": max(session.scroll_progress, scroll_pct),
                "last_activity_time": now,
                "engagement_points": max(session.engagement_points, milestone_points(scroll_pct)),
            })
            self._sessions[key] = updated

        return updated

    def end_session(self, db: Session, telegram_id: int, lesson_path: str) -> Optional[SessionOutcome]:
        """
        End a session, score it and persist the result

        Returns None when there is no active session for the key.
        """
        with self._lock:
            session = self._sessions.pop((telegram_id, lesson_path), None)

        if session is None:
            logger.warning(f"No active session found for user {telegram_id} on lesson {lesson_path}")
            return None

        now = self.clock()
        total_time = session.active_time + max(now - session.last_activity_time, 0)

        reading_speed = self.scorer.reading_speed(session.word_count, total_time)
        completion_score = self.scorer.completion_score(
            total_time,
            session.scroll_progress,
            session.engagement_points,
            session.word_count
        )
        engagement_level = self.scorer.engagement_level(completion_score)

        previous = self.store.find_or_new(db, telegram_id, lesson_path)
        newly_completed = not previous.completed and completion_score >= self.completion_threshold
        visited_at = datetime.now()

        stored = self.store.upsert(db, previous.model_copy(update={
            "time_spent": previous.time_spent + total_time,
            "scroll_progress": session.scroll_progress,
            "reading_speed": reading_speed,
            "completion_score": completion_score,
            "engagement_level": engagement_level,
            "last_visited": visited_at,
            "completed": previous.completed or newly_completed,
            "completed_at": visited_at if newly_completed else previous.completed_at,
        }))
        self.users.touch(db, telegram_id)
        self.cache.delete(statistics_key(telegram_id))

        logger.info(
            f"Ended session for user {telegram_id} on lesson {lesson_path}: "
            f"active={total_time}ms, scroll={session.scroll_progress}%, "
            f"score={completion_score:.2f}, completed={stored.completed}"
        )

        return SessionOutcome(
            metrics=ProgressMetrics(
                time_spent=total_time,
                scroll_progress=session.scroll_progress,
                reading_speed=reading_speed,
                completion_score=completion_score,
                engagement_level=engagement_level,
                completed=stored.completed
            ),
            newly_completed=newly_completed
        )

    def get_session(self, telegram_id: int, lesson_path: str) -> Optional[ReadingSession]:
        with self._lock:
            return self._sessions.get((telegram_id, lesson_path))

    def active_count(self) -> int:
        with self._lock:
            return len(self._sessions)

    def reap_idle_sessions(self, max_idle_ms: int) -> List[ReadingSession]:
        """Drop sessions with no activity for longer than max_idle_ms"""
        cutoff = self.clock() - max_idle_ms
        with self._lock:
            stale = [key for key, s in self._sessions.items() if s.last_activity_time < cutoff]
            reaped = [self._sessions.pop(key) for key in stale]

        if reaped:
            logger.info(f"Reaped {len(reaped)} idle reading sessions")
        return reaped

    def discard_sessions(self, lesson_paths: Iterable[str]) -> List[ReadingSession]:
        """Drop every active session on the given lessons without persisting it"""
        paths = set(lesson_paths)
        with self._lock:
            keys = [key for key in self._sessions if key[1] in paths]
            discarded = [self._sessions.pop(key) for key in keys]

        if discarded:
            logger.info(f"Discarded {len(discarded)} active sessions on deleted lessons")
        return discarded

    def clear(self):
        with self._lock:
            self._sessions.clear()

    def _increment_visits(self, db: Session, telegram_id: int, lesson_path: str) -> ProgressRecord:
        record = self.store.find_or_new(db, telegram_id, lesson_path)
        stored = self.store.upsert(db, record.model_copy(update={
            "visits": record.visits + 1,
            "last_visited": datetime.now(),
        }))
        self.cache.delete(statistics_key(telegram_id))
        return stored


# Global instance
session_tracker = ReadingSessionTracker()
