"""
Statistics service for reading progress, streaks and achievements
"""
import logging
from datetime import date, timedelta
from typing import Callable, Dict, List, Optional, Set

from sqlalchemy.orm import Session

from lesson_tracker.config import LevelConfig, settings
from lesson_tracker.schemas.progress import ProgressRecord
from lesson_tracker.schemas.statistics import (
    AchievementsSummary, LearningInsights, RecentActivity, UserStatistics
)
from lesson_tracker.services.progress_store import ProgressStore, progress_store
from lesson_tracker.services.user_store import UserStore, user_store
from lesson_tracker.utils.cache import NullCache, cache_service, statistics_key

logger = logging.getLogger(__name__)

RECENT_ACTIVITY_LIMIT = 10

# Achievement thresholds
SPEED_READER_WPM = 250
DEDICATED_LEARNER_MS = 10 * 60 * 60 * 1000
WEEK_STREAK_DAYS = 7
MONTH_STREAK_DAYS = 30

# Overview engagement thresholds on total time spent (milliseconds)
EXPERT_TIME_MS = 60 * 60 * 1000
ADVANCED_TIME_MS = 30 * 60 * 1000


def active_dates(records: List[ProgressRecord]) -> Set[date]:
    """Distinct calendar dates on which lessons were last visited"""
    return {r.last_visited.date() for r in records if r.last_visited is not None}


def current_streak(records: List[ProgressRecord], today: Optional[date] = None) -> int:
    """
    Consecutive active days ending today, or yesterday if there was no activity today
    """
    days = active_dates(records)
    if not days:
        return 0

    today = today or date.today()
    yesterday = today - timedelta(days=1)
    if today not in days and yesterday not in days:
        return 0

    cursor = today if today in days else yesterday
    streak = 0
    while cursor in days:
        streak += 1
        cursor -= timedelta(days=1)
    return streak


def longest_streak(records: List[ProgressRecord]) -> int:
    """Longest run of consecutive active days ever"""
    days = sorted(active_dates(records))
    if not days:
        return 0

    max_streak = 1
    run = 1
    for prev_day, day in zip(days, days[1:]):
        if (day - prev_day).days == 1:
            run += 1
            max_streak = max(max_streak, run)
        else:
            run = 1
    return max_streak


def average_reading_speed(records: List[ProgressRecord]) -> float:
    speeds = [r.reading_speed for r in records if r.reading_speed > 0]
    if not speeds:
        return 0.0
    return sum(speeds) / len(speeds)


def completion_rate(records: List[ProgressRecord]) -> float:
    if not records:
        return 0.0
    completed = sum(1 for r in records if r.completed)
    return completed * 100.0 / len(records)


def level_progress(records: List[ProgressRecord], levels: List[LevelConfig]) -> Dict[str, float]:
    """Completion percentage per level, in level rank order"""
    progress = {}
    for level in sorted(levels, key=lambda lv: lv.rank):
        in_level = [r for r in records if level.label in r.lesson_path]
        if not in_level:
            progress[level.label] = 0.0
            continue
        completed = sum(1 for r in in_level if r.completed)
        progress[level.label] = completed * 100.0 / len(in_level)
    return progress


def recent_activity(records: List[ProgressRecord], limit: int = RECENT_ACTIVITY_LIMIT) -> List[RecentActivity]:
    visited = [r for r in records if r.last_visited is not None]
    visited.sort(key=lambda r: r.last_visited, reverse=True)
    return [
        RecentActivity(
            lesson_path=r.lesson_path,
            last_visited=r.last_visited,
            time_spent=r.time_spent,
            completed=r.completed,
            completion_score=r.completion_score
        )
        for r in visited[:limit]
    ]


def level_master_badge(label: str) -> str:
    return "LEVEL_MASTER_" + label.upper().replace(" ", "_")


def achievements(stats: UserStatistics) -> List[str]:
    """Every achievement whose rule the aggregate figures satisfy"""
    earned = []

    if stats.total_lessons_completed >= 1:
        earned.append("FIRST_LESSON")
    if stats.total_lessons_completed >= 5:
        earned.append("FIVE_LESSONS")
    if stats.total_lessons_completed >= 10:
        earned.append("TEN_LESSONS")
    if stats.current_streak >= WEEK_STREAK_DAYS:
        earned.append("WEEK_STREAK")
    if stats.current_streak >= MONTH_STREAK_DAYS:
        earned.append("MONTH_STREAK")
    if stats.average_reading_speed > SPEED_READER_WPM:
        earned.append("SPEED_READER")
    if stats.total_time_spent > DEDICATED_LEARNER_MS:
        earned.append("DEDICATED_LEARNER")

    for label, progress in stats.level_progress.items():
        if progress >= 100.0:
            earned.append(level_master_badge(label))

    return earned


def overview_engagement_level(total_visits: int, rate: float, total_time_ms: int) -> str:
    """How engaged a user is overall (distinct from the per-session label)"""
    if total_visits == 0:
        return "new"
    if total_visits < 5:
        return "beginner"
    if rate > 75 and total_time_ms > EXPERT_TIME_MS:
        return "expert"
    if rate > 50 and total_time_ms > ADVANCED_TIME_MS:
        return "advanced"
    if rate > 25:
        return "intermediate"
    return "casual"


def learning_insights(stats: UserStatistics) -> LearningInsights:
    """Guidance texts keyed off reading speed, streak and completion rate"""
    if stats.average_reading_speed < 150:
        pace = "Your reading speed is below average. Try to focus more during reading sessions."
    elif stats.average_reading_speed > 250:
        pace = "Excellent reading speed! You're a fast learner."
    else:
        pace = "Good reading speed. Keep it up!"

    if stats.current_streak == 0:
        streak = "Start your learning streak today!"
    elif stats.current_streak < WEEK_STREAK_DAYS:
        streak = f"Keep going! {WEEK_STREAK_DAYS - stats.current_streak} more days to a week streak!"
    else:
        streak = f"Amazing! You've been learning for {stats.current_streak} days straight!"

    if stats.completion_rate < 50:
        completion = "Try to complete more lessons to improve your understanding."
    elif stats.completion_rate < 80:
        completion = "Good progress! Aim to complete more lessons."
    else:
        completion = "Excellent completion rate! You're very thorough."

    return LearningInsights(
        reading_pace=pace,
        streak=streak,
        completion=completion,
        next_action=next_recommended_action(stats)
    )


def next_recommended_action(stats: UserStatistics) -> str:
    if stats.total_lessons_viewed == 0:
        return "Start with your first lesson in the Beginner level"
    if stats.current_streak == 0:
        return "Resume your learning to maintain your streak"
    if stats.completion_rate < 50:
        return "Focus on completing the lessons you've started"
    return "Continue to the next lesson in your current level"


class StatisticsService:
    """Service for generating user statistics"""

    def __init__(
        self,
        store: ProgressStore = progress_store,
        users: UserStore = user_store,
        cache: NullCache = cache_service,
        levels: List[LevelConfig] = None,
        today: Callable[[], date] = date.today
    ):
        self.store = store
        self.users = users
        self.cache = cache
        self.levels = levels if levels is not None else settings.LEVELS
        self.today = today

    def compute_statistics(
        self,
        telegram_id: int,
        records: List[ProgressRecord],
        today: Optional[date] = None
    ) -> UserStatistics:
        """
        Derive the full statistics block from a user's progress records

        Args:
            telegram_id: Telegram user id
            records: All progress records of the user
            today: Reference date for the current streak (defaults to today)

        Returns:
            UserStatistics with achievements filled in
        """
        total = len(records)
        completed = sum(1 for r in records if r.completed)
        total_time = sum(r.time_spent for r in records)
        total_visits = sum(r.visits for r in records)
        rate = completion_rate(records)
        visited = [r.last_visited for r in records if r.last_visited is not None]

        stats = UserStatistics(
            telegram_id=telegram_id,
            total_lessons_viewed=total,
            total_lessons_completed=completed,
            total_time_spent=total_time,
            average_reading_speed=average_reading_speed(records),
            completion_rate=rate,
            current_streak=current_streak(records, today),
            longest_streak=longest_streak(records),
            total_visits=total_visits,
            last_activity=max(visited) if visited else None,
            engagement_level=overview_engagement_level(total_visits, rate, total_time),
            level_progress=level_progress(records, self.levels),
            recent_activity=recent_activity(records)
        )
        return stats.model_copy(update={"achievements": achievements(stats)})

    def get_user_statistics(self, db: Session, telegram_id: int) -> UserStatistics:
        """
        Statistics for a user, served from cache when available

        Unknown users get a zero-valued placeholder. Cached blocks are only
        reused on the day they were computed since the current streak depends
        on the date.
        """
        today = self.today()
        cached = self.cache.get(statistics_key(telegram_id))
        if cached and cached.get("computed_on") == today.isoformat():
            return UserStatistics.model_validate(cached["stats"])

        user = self.users.find_by_telegram_id(db, telegram_id)
        if user is None:
            return UserStatistics(
                telegram_id=telegram_id,
                level_progress={level.label: 0.0 for level in self.levels}
            )

        records = self.store.find_by_user(db, telegram_id)
        stats = self.compute_statistics(telegram_id, records, today=today)
        if stats.last_activity is None:
            stats = stats.model_copy(update={"last_activity": user.last_active})

        self.cache.set(
            statistics_key(telegram_id),
            {"computed_on": today.isoformat(), "stats": stats.model_dump(mode="json")},
            ttl=settings.STATISTICS_CACHE_TTL
        )
        logger.info(f"Computed statistics for user {telegram_id}: {stats.total_lessons_viewed} lessons")
        return stats

    def get_current_streak(self, db: Session, telegram_id: int) -> int:
        return self.get_user_statistics(db, telegram_id).current_streak

    def get_level_progress(self, db: Session, telegram_id: int) -> Dict[str, float]:
        return self.get_user_statistics(db, telegram_id).level_progress

    def get_achievements_summary(self, db: Session, telegram_id: int) -> AchievementsSummary:
        stats = self.get_user_statistics(db, telegram_id)
        return AchievementsSummary(
            achievements=stats.achievements,
            total_completed=stats.total_lessons_completed,
            current_streak=stats.current_streak
        )

    def get_learning_insights(self, db: Session, telegram_id: int) -> LearningInsights:
        return learning_insights(self.get_user_statistics(db, telegram_id))


# Global instance
statistics_service = StatisticsService()
