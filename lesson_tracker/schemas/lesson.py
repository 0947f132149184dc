"""
Pydantic schemas for lesson browsing and administration
"""
from pydantic import BaseModel
from typing import List, Optional


class LessonSummary(BaseModel):
    """Lesson entry in the structure tree"""
    path: str
    title: str
    word_count: int
    is_premium: bool


class FolderStructure(BaseModel):
    """A folder with its lessons"""
    folder: str
    rank: Optional[int] = None
    is_premium: bool
    lessons: List[LessonSummary]


class LessonStructureResponse(BaseModel):
    structure: List[FolderStructure]


class LessonContent(BaseModel):
    """Full lesson content (raw Markdown)"""
    path: str
    folder: str
    title: str
    content: str
    word_count: int
    is_premium: bool

    class Config:
        from_attributes = True


class LessonSearchResponse(BaseModel):
    results: List[LessonSummary]


class FolderSummary(BaseModel):
    """A folder without its lesson bodies"""
    name: str
    rank: Optional[int] = None
    is_premium: bool
    lesson_count: int
    lesson_paths: List[str]


class FolderListResponse(BaseModel):
    folders: List[FolderSummary]


class ResolvedLink(BaseModel):
    """Path an internal lesson link points to"""
    name: str
    path: str


class LessonUploadResponse(BaseModel):
    """Response after lesson upload"""
    path: str
    title: str
    word_count: int
    created: bool


class DeleteResponse(BaseModel):
    """Response after deleting lessons"""
    deleted_lessons: int
    deleted_progress_rows: int
