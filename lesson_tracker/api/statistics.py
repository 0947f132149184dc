"""
User statistics API endpoints
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Dict
import logging

from lesson_tracker.database import get_db
from lesson_tracker.schemas.statistics import (
    AchievementsSummary, LearningInsights, StreakResponse, UserStatistics
)
from lesson_tracker.services.statistics_service import statistics_service

router = APIRouter(prefix="/api/statistics", tags=["statistics"])
logger = logging.getLogger(__name__)


@router.get("/user/{telegram_id}", response_model=UserStatistics)
async def get_user_statistics(
    telegram_id: int,
    db: Session = Depends(get_db)
):
    """
    Get comprehensive statistics for a user

    Returns:
    - Lesson counts, total time and average reading speed
    - Completion rate, current and longest streak
    - Level-by-level progress and recent activity
    - Achievements and overall engagement level
    """

    logger.info(f"Getting statistics for user {telegram_id}")
    return statistics_service.get_user_statistics(db, telegram_id)


@router.get("/streak/{telegram_id}", response_model=StreakResponse)
async def get_current_streak(
    telegram_id: int,
    db: Session = Depends(get_db)
):
    """Current learning streak in days"""

    return StreakResponse(
        telegram_id=telegram_id,
        current_streak=statistics_service.get_current_streak(db, telegram_id)
    )


@router.get("/insights/{telegram_id}", response_model=LearningInsights)
async def get_learning_insights(
    telegram_id: int,
    db: Session = Depends(get_db)
):
    """Reading pace, streak and completion guidance plus the next recommended action"""

    return statistics_service.get_learning_insights(db, telegram_id)


@router.get("/levels/{telegram_id}", response_model=Dict[str, float])
async def get_level_progress(
    telegram_id: int,
    db: Session = Depends(get_db)
):
    """Completion percentage per course level"""

    return statistics_service.get_level_progress(db, telegram_id)


@router.get("/achievements/{telegram_id}", response_model=AchievementsSummary)
async def get_achievements(
    telegram_id: int,
    db: Session = Depends(get_db)
):
    """Earned achievements"""

    return statistics_service.get_achievements_summary(db, telegram_id)
