"""
Lesson model - uploaded Markdown lessons grouped by folder
"""
from datetime import datetime

from sqlalchemy import Column, Integer, String, Text, DateTime

from lesson_tracker.database import Base


class Lesson(Base):
    """
    Lessons table - raw Markdown content addressed by "<folder>/<name>" path
    """
    __tablename__ = "lessons"

    id = Column(Integer, primary_key=True, autoincrement=True)
    path = Column(String(500), unique=True, nullable=False, index=True)
    folder = Column(String(255), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=False, default="")
    word_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    def __repr__(self):
        return f"<Lesson(path={self.path}, words={self.word_count})>"
