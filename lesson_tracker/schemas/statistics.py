"""
Pydantic schemas for statistics endpoints
"""
from pydantic import BaseModel, Field
from typing import Dict, List, Optional
from datetime import datetime


class RecentActivity(BaseModel):
    """Summary of a recently visited lesson"""
    lesson_path: str
    last_visited: Optional[datetime] = None
    time_spent: int
    completed: bool
    completion_score: float


class UserStatistics(BaseModel):
    """Complete statistics block for a user"""
    telegram_id: int
    total_lessons_viewed: int = 0
    total_lessons_completed: int = 0
    total_time_spent: int = 0  # milliseconds
    average_reading_speed: float = 0.0
    completion_rate: float = 0.0
    current_streak: int = 0
    longest_streak: int = 0
    total_visits: int = 0
    last_activity: Optional[datetime] = None
    engagement_level: str = "new"
    level_progress: Dict[str, float] = Field(default_factory=dict)
    recent_activity: List[RecentActivity] = Field(default_factory=list)
    achievements: List[str] = Field(default_factory=list)


class LearningInsights(BaseModel):
    """Free-text guidance derived from statistics"""
    reading_pace: str
    streak: str
    completion: str
    next_action: str


class AchievementsSummary(BaseModel):
    """Achievements with the figures they were derived from"""
    achievements: List[str]
    total_completed: int
    current_streak: int


class StreakResponse(BaseModel):
    telegram_id: int
    current_streak: int
