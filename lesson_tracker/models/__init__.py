"""
Database models package
"""
from lesson_tracker.models.user import User
from lesson_tracker.models.user_progress import UserProgress
from lesson_tracker.models.lesson import Lesson

__all__ = ["User", "UserProgress", "Lesson"]
