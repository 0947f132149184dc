"""
Lesson catalogue: structure, content lookup, search, upload and deletion
"""
import logging
import re
from typing import List, Optional

from sqlalchemy.orm import Session

from lesson_tracker.config import LevelConfig, settings
from lesson_tracker.models import Lesson
from lesson_tracker.schemas.lesson import (
    DeleteResponse, FolderStructure, FolderSummary, LessonContent, LessonStructureResponse,
    LessonSummary, LessonUploadResponse
)
from lesson_tracker.services.progress_store import ProgressStore, progress_store
from lesson_tracker.services.session_tracker import ReadingSessionTracker, session_tracker
from lesson_tracker.services.subscription_service import SubscriptionService, subscription_service
from lesson_tracker.utils.cache import LESSON_STRUCTURE_KEY, NullCache, cache_service, STATISTICS_PREFIX

logger = logging.getLogger(__name__)

HEADING_PATTERN = re.compile(r"^#\s+(.+?)\s*$", re.MULTILINE)
SEARCH_LIMIT = 50


def count_words(text: str) -> int:
    return len(text.split())


def extract_title(content: str, fallback: str) -> str:
    """First level-one Markdown heading, else the fallback"""
    match = HEADING_PATTERN.search(content)
    return match.group(1) if match else fallback


def lesson_path(folder: str, name: str) -> str:
    return f"{folder.strip('/')}/{name.strip('/')}"


class LessonService:
    """Service for browsing and managing lessons"""

    def __init__(
        self,
        store: ProgressStore = progress_store,
        cache: NullCache = cache_service,
        access: SubscriptionService = subscription_service,
        tracker: ReadingSessionTracker = session_tracker,
        levels: List[LevelConfig] = None
    ):
        self.store = store
        self.tracker = tracker
        self.cache = cache
        self.access = access
        self.levels = levels if levels is not None else settings.LEVELS

    def get_structure(self, db: Session) -> LessonStructureResponse:
        """
        Folders with their lessons

        Folders matching a configured level come first in rank order, the
        rest follow alphabetically.
        """
        cached = self.cache.get(LESSON_STRUCTURE_KEY)
        if cached:
            return LessonStructureResponse.model_validate(cached)

        lessons = db.query(Lesson).order_by(Lesson.folder, Lesson.path).all()

        folders = {}
        for lesson in lessons:
            folders.setdefault(lesson.folder, []).append(self._summary(lesson))

        structure = [
            FolderStructure(
                folder=folder,
                rank=self._folder_rank(folder),
                is_premium=self.access.is_premium_lesson(folder),
                lessons=items
            )
            for folder, items in folders.items()
        ]
        structure.sort(key=lambda f: (f.rank is None, f.rank or 0, f.folder))

        response = LessonStructureResponse(structure=structure)
        self.cache.set(LESSON_STRUCTURE_KEY, response.model_dump(mode="json"), ttl=settings.LESSON_CACHE_TTL)
        logger.info(f"Lesson structure built with {len(structure)} folders")
        return response

    def get_lesson(self, db: Session, path: str) -> Optional[LessonContent]:
        lesson = db.query(Lesson).filter(Lesson.path == path).first()
        if lesson is None:
            return None
        return LessonContent(
            path=lesson.path,
            folder=lesson.folder,
            title=lesson.title,
            content=lesson.content,
            word_count=lesson.word_count,
            is_premium=self.access.is_premium_lesson(lesson.path)
        )

    def search(self, db: Session, query: str, limit: int = SEARCH_LIMIT) -> List[LessonSummary]:
        """Case-insensitive substring search over titles and content"""
        needle = query.strip().lower()
        if not needle:
            return []

        matches = [
            lesson for lesson in db.query(Lesson).order_by(Lesson.path).all()
            if needle in lesson.title.lower() or needle in lesson.content.lower()
        ]
        return [self._summary(lesson) for lesson in matches[:limit]]

    def get_folders(self, db: Session) -> List[FolderSummary]:
        """Folders in structure order with their lesson paths"""
        return [
            FolderSummary(
                name=folder.folder,
                rank=folder.rank,
                is_premium=folder.is_premium,
                lesson_count=len(folder.lessons),
                lesson_paths=[lesson.path for lesson in folder.lessons]
            )
            for folder in self.get_structure(db).structure
        ]

    def resolve_link(self, db: Session, name: str) -> Optional[str]:
        """
        Path of the first lesson whose title contains the link name

        Internal lesson links in Markdown reference lessons by (part of) their title.
        """
        needle = name.strip().lower()
        if not needle:
            return None

        for lesson in db.query(Lesson).order_by(Lesson.path).all():
            if needle in lesson.title.lower():
                return lesson.path
        return None

    def save_lesson(self, db: Session, folder: str, name: str, content: str) -> LessonUploadResponse:
        """Create or replace the lesson stored at folder/name"""
        folder = folder.strip().strip("/")
        name = name.strip().strip("/")
        if not folder or not name:
            raise ValueError("folder and lesson name are required")

        path = lesson_path(folder, name)
        lesson = db.query(Lesson).filter(Lesson.path == path).first()
        created = lesson is None
        if created:
            lesson = Lesson(path=path, folder=folder)
            db.add(lesson)

        lesson.title = extract_title(content, name)
        lesson.content = content
        lesson.word_count = count_words(content)

        db.commit()
        db.refresh(lesson)
        self.cache.delete(LESSON_STRUCTURE_KEY)

        logger.info(f"{'Created' if created else 'Updated'} lesson {path} ({lesson.word_count} words)")
        return LessonUploadResponse(
            path=lesson.path,
            title=lesson.title,
            word_count=lesson.word_count,
            created=created
        )

    def delete_lesson(self, db: Session, path: str) -> Optional[DeleteResponse]:
        """Delete one lesson and all progress recorded for it"""
        lesson = db.query(Lesson).filter(Lesson.path == path).first()
        if lesson is None:
            return None
        return self._delete(db, [lesson])

    def delete_folder(self, db: Session, folder: str) -> Optional[DeleteResponse]:
        """Delete every lesson of a folder and all progress recorded for them"""
        lessons = db.query(Lesson).filter(Lesson.folder == folder.strip("/")).all()
        if not lessons:
            return None
        return self._delete(db, lessons)

    def _delete(self, db: Session, lessons: List[Lesson]) -> DeleteResponse:
        paths = [lesson.path for lesson in lessons]
        # Sessions on deleted lessons must not write progress back
        self.tracker.discard_sessions(paths)
        deleted_progress = self.store.delete_by_lessons(db, paths)
        for lesson in lessons:
            db.delete(lesson)
        db.commit()

        self.cache.delete(LESSON_STRUCTURE_KEY)
        self.cache.delete_pattern(f"{STATISTICS_PREFIX}*")

        logger.info(f"Deleted {len(paths)} lessons and {deleted_progress} progress rows")
        return DeleteResponse(deleted_lessons=len(paths), deleted_progress_rows=deleted_progress)

    def _summary(self, lesson: Lesson) -> LessonSummary:
        return LessonSummary(
            path=lesson.path,
            title=lesson.title,
            word_count=lesson.word_count,
            is_premium=self.access.is_premium_lesson(lesson.path)
        )

    def _folder_rank(self, folder: str) -> Optional[int]:
        for level in self.levels:
            if level.label in folder:
                return level.rank
        return None


# Global instance
lesson_service = LessonService()
