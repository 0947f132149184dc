"""
Progress store - per-user, per-lesson progress rows as immutable snapshots
"""
import logging
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session, joinedload

from lesson_tracker.models import User, UserProgress
from lesson_tracker.schemas.progress import ProgressRecord
from lesson_tracker.services.user_store import user_store

logger = logging.getLogger(__name__)

WRITABLE_FIELDS = (
    "time_spent", "scroll_progress", "reading_speed", "completion_score",
    "engagement_level", "visits", "last_visited", "completed", "completed_at",
)


class ProgressStore:
    """Persistence adapter for UserProgress rows"""

    def _query(self, db: Session):
        return db.query(UserProgress).join(User).options(joinedload(UserProgress.user))

    def find_by_user(self, db: Session, telegram_id: int) -> List[ProgressRecord]:
        rows = self._query(db).filter(User.telegram_id == telegram_id).all()
        return [ProgressRecord.model_validate(row) for row in rows]

    def find_by_user_and_lesson(
        self,
        db: Session,
        telegram_id: int,
        lesson_path: str
    ) -> Optional[ProgressRecord]:
        row = self._get_row(db, telegram_id, lesson_path)
        return ProgressRecord.model_validate(row) if row else None

    def find_or_new(self, db: Session, telegram_id: int, lesson_path: str) -> ProgressRecord:
        """Stored record, or a fresh unsaved one with zeroed metrics"""
        record = self.find_by_user_and_lesson(db, telegram_id, lesson_path)
        if record is None:
            record = ProgressRecord(telegram_id=telegram_id, lesson_path=lesson_path)
        return record

    def upsert(self, db: Session, record: ProgressRecord) -> ProgressRecord:
        """Insert or overwrite the row for (user, lesson); the user is created lazily"""
        row = self._get_row(db, record.telegram_id, record.lesson_path)
        if row is None:
            user = user_store.get_or_create_row(db, record.telegram_id)
            row = UserProgress(user=user, lesson_path=record.lesson_path, created_at=datetime.now())
            db.add(row)

        for field in WRITABLE_FIELDS:
            setattr(row, field, getattr(record, field))

        db.commit()
        db.refresh(row)
        return ProgressRecord.model_validate(row)

    def delete_by_lessons(self, db: Session, lesson_paths: Iterable[str]) -> int:
        """Delete every user's progress for the given lessons (no commit)"""
        paths = list(lesson_paths)
        if not paths:
            return 0
        deleted = db.query(UserProgress).filter(
            UserProgress.lesson_path.in_(paths)
        ).delete(synchronize_session=False)
        logger.info(f"Deleted {deleted} progress rows for {len(paths)} lessons")
        return deleted

    def _get_row(self, db: Session, telegram_id: int, lesson_path: str) -> Optional[UserProgress]:
        return self._query(db).filter(
            User.telegram_id == telegram_id,
            UserProgress.lesson_path == lesson_path
        ).first()


# Global instance
progress_store = ProgressStore()
