"""
UserProgress model - per-user, per-lesson reading progress
"""
from datetime import datetime

from sqlalchemy import (
    Column, Integer, BigInteger, String, Boolean, Float, DateTime,
    ForeignKey, UniqueConstraint
)
from sqlalchemy.orm import relationship

from lesson_tracker.database import Base


class UserProgress(Base):
    """
    User progress table - accumulated reading metrics for one lesson
    """
    __tablename__ = "user_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "lesson_path", name="uq_user_progress_user_lesson"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    lesson_path = Column(String(500), nullable=False, index=True)
    time_spent = Column(BigInteger, nullable=False, default=0)  # milliseconds
    scroll_progress = Column(Integer, nullable=False, default=0)  # 0 to 100
    reading_speed = Column(Float, nullable=False, default=0.0)  # words per minute
    completion_score = Column(Float, nullable=False, default=0.0)  # 0.0 to 1.0
    engagement_level = Column(String(16), nullable=False, default="low")
    visits = Column(Integer, nullable=False, default=0)
    last_visited = Column(DateTime)
    completed = Column(Boolean, nullable=False, default=False)
    completed_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    user = relationship("User", back_populates="progress")

    @property
    def telegram_id(self):
        return self.user.telegram_id if self.user else None

    def __repr__(self):
        return f"<UserProgress(user_id={self.user_id}, lesson={self.lesson_path}, completed={self.completed})>"
