"""
Lesson browsing and administration API endpoints
"""
from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, HTTPException, Query, UploadFile
from sqlalchemy.orm import Session
from typing import Optional
import logging
import os

from lesson_tracker.api.deps import get_caller_id, require_admin
from lesson_tracker.database import get_db
from lesson_tracker.schemas.lesson import (
    DeleteResponse, FolderListResponse, LessonContent, LessonSearchResponse,
    LessonStructureResponse, LessonUploadResponse, ResolvedLink
)
from lesson_tracker.services.lesson_service import lesson_service
from lesson_tracker.services.subscription_service import subscription_service
from lesson_tracker.services.telegram_service import notifier

router = APIRouter(prefix="/api/lessons", tags=["lessons"])
logger = logging.getLogger(__name__)

MAX_LESSON_BYTES = 2 * 1024 * 1024


@router.get("/structure", response_model=LessonStructureResponse)
async def get_lesson_structure(db: Session = Depends(get_db)):
    """Folders in level order with their lessons"""

    return lesson_service.get_structure(db)


@router.get("/folders", response_model=FolderListResponse)
async def list_folders(db: Session = Depends(get_db)):
    """Folder names in level order with their lesson paths"""

    return FolderListResponse(folders=lesson_service.get_folders(db))


@router.get("/resolve", response_model=ResolvedLink)
async def resolve_lesson_link(
    name: str = Query(..., min_length=1, max_length=255),
    db: Session = Depends(get_db)
):
    """Resolve an internal lesson link by title to the lesson path"""

    path = lesson_service.resolve_link(db, name)
    if path is None:
        raise HTTPException(status_code=404, detail=f"Link not found: {name}")
    return ResolvedLink(name=name, path=path)


@router.get("/content", response_model=LessonContent)
async def get_lesson_content(
    path: str = Query(..., min_length=1),
    caller_id: Optional[int] = Depends(get_caller_id),
    db: Session = Depends(get_db)
):
    """
    Get lesson content

    Premium lessons require a caller with premium access or an active subscription.
    """

    lesson = lesson_service.get_lesson(db, path)
    if lesson is None:
        raise HTTPException(status_code=404, detail="Lesson not found")

    if not subscription_service.has_access(db, caller_id, path):
        raise HTTPException(status_code=403, detail="Subscription required for this lesson")

    return lesson


@router.get("/search", response_model=LessonSearchResponse)
async def search_lessons(
    q: str = Query(..., min_length=1, max_length=200),
    db: Session = Depends(get_db)
):
    """Search lessons by title or content"""

    logger.info(f"Searching lessons with query: {q}")
    return LessonSearchResponse(results=lesson_service.search(db, q))


@router.post("/upload", response_model=LessonUploadResponse, status_code=201)
async def upload_lesson(
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    folder: str = Form(..., min_length=1, max_length=255),
    admin_id: int = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """
    Upload a Markdown lesson into a folder (admin only)

    - Accepts .md files up to 2 MB
    - Replaces an existing lesson with the same name
    - Notifies admins and the channel through Telegram
    """

    if not file.filename or not file.filename.lower().endswith(".md"):
        raise HTTPException(status_code=400, detail="Only Markdown (.md) files are allowed")

    raw = await file.read()
    if len(raw) > MAX_LESSON_BYTES:
        raise HTTPException(status_code=413, detail="Lesson file is too large")

    try:
        content = raw.decode("utf-8")
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="Lesson file must be UTF-8 encoded")

    name = os.path.splitext(os.path.basename(file.filename))[0]
    try:
        result = lesson_service.save_lesson(db, folder, name, content)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    background_tasks.add_task(notifier.notify_admins_lesson_uploaded, result.title, str(admin_id))
    background_tasks.add_task(notifier.notify_channel_new_lesson, result.title, result.path)
    return result


@router.delete("", response_model=DeleteResponse)
async def delete_lesson(
    path: str = Query(..., min_length=1),
    admin_id: int = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Delete a lesson and the progress recorded for it (admin only)"""

    result = lesson_service.delete_lesson(db, path)
    if result is None:
        raise HTTPException(status_code=404, detail="Lesson not found")
    logger.info(f"Admin {admin_id} deleted lesson {path}")
    return result


@router.delete("/folder", response_model=DeleteResponse)
async def delete_folder(
    folder: str = Query(..., min_length=1),
    admin_id: int = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Delete a folder's lessons and the progress recorded for them (admin only)"""

    result = lesson_service.delete_folder(db, folder)
    if result is None:
        raise HTTPException(status_code=404, detail="Folder not found")
    logger.info(f"Admin {admin_id} deleted folder {folder}")
    return result
