from datetime import date, datetime, timedelta

import pytest

from lesson_tracker.config import DEFAULT_LEVELS
from lesson_tracker.schemas.progress import ProgressRecord
from lesson_tracker.schemas.statistics import UserStatistics
from lesson_tracker.services import statistics_service as stats_module
from lesson_tracker.services.progress_store import progress_store
from lesson_tracker.services.statistics_service import StatisticsService
from lesson_tracker.services.user_store import user_store
from lesson_tracker.utils.cache import NullCache

BEGINNER = "Начальный уровень (Бесплатно)"
MIDDLE = "Средний уровень (Подписка)"
TODAY = date(2024, 3, 15)


def record(path, days_ago=None, completed=False, speed=0.0, time_spent=0, visits=1):
    last_visited = None
    if days_ago is not None:
        last_visited = datetime.combine(TODAY - timedelta(days=days_ago), datetime.min.time()).replace(hour=12)
    return ProgressRecord(
        telegram_id=1,
        lesson_path=path,
        last_visited=last_visited,
        completed=completed,
        reading_speed=speed,
        time_spent=time_spent,
        visits=visits
    )


@pytest.fixture
def service():
    return StatisticsService(cache=NullCache(), levels=DEFAULT_LEVELS)


def test_streak_counts_back_from_today():
    records = [record(f"{BEGINNER}/{i}", days_ago=i) for i in range(3)]
    assert stats_module.current_streak(records, TODAY) == 3


def test_streak_may_start_yesterday():
    records = [record(f"{BEGINNER}/{i}", days_ago=i) for i in (1, 2)]
    assert stats_module.current_streak(records, TODAY) == 2


def test_streak_broken_after_two_idle_days():
    records = [record(f"{BEGINNER}/{i}", days_ago=i) for i in (2, 3, 4)]
    assert stats_module.current_streak(records, TODAY) == 0
    assert stats_module.longest_streak(records) == 3


def test_same_day_visits_count_once():
    records = [record(f"{BEGINNER}/{i}", days_ago=0) for i in range(4)]
    assert stats_module.current_streak(records, TODAY) == 1


def test_longest_streak_finds_best_run():
    days = [0, 1, 5, 6, 7, 8, 20]
    records = [record(f"{BEGINNER}/{d}", days_ago=d) for d in days]
    assert stats_module.longest_streak(records) == 4
    assert stats_module.longest_streak([]) == 0


def test_average_speed_ignores_unread_lessons():
    records = [
        record(f"{BEGINNER}/a", speed=200.0),
        record(f"{BEGINNER}/b", speed=300.0),
        record(f"{BEGINNER}/c", speed=0.0),
    ]
    assert stats_module.average_reading_speed(records) == pytest.approx(250.0)


def test_level_progress_in_rank_order():
    records = [
        record(f"{BEGINNER}/a", completed=True),
        record(f"{BEGINNER}/b"),
        record(f"{MIDDLE}/a", completed=True),
    ]
    progress = stats_module.level_progress(records, list(reversed(DEFAULT_LEVELS)))

    assert list(progress) == [level.label for level in DEFAULT_LEVELS]
    assert progress[BEGINNER] == pytest.approx(50.0)
    assert progress[MIDDLE] == pytest.approx(100.0)
    assert progress["Эксперт уровень (Подписка)"] == 0.0


def test_achievements_example():
    stats = UserStatistics(
        telegram_id=1,
        total_lessons_completed=12,
        current_streak=8,
        average_reading_speed=260.0,
        total_time_spent=60000,
        level_progress={BEGINNER: 100.0, MIDDLE: 40.0}
    )
    assert stats_module.achievements(stats) == [
        "FIRST_LESSON",
        "FIVE_LESSONS",
        "TEN_LESSONS",
        "WEEK_STREAK",
        "SPEED_READER",
        "LEVEL_MASTER_НАЧАЛЬНЫЙ_УРОВЕНЬ_(БЕСПЛАТНО)",
    ]


def test_no_achievements_for_new_user():
    assert stats_module.achievements(UserStatistics(telegram_id=1)) == []


def test_dedicated_learner_after_ten_hours():
    stats = UserStatistics(telegram_id=1, total_time_spent=10 * 60 * 60 * 1000 + 1)
    assert stats_module.achievements(stats) == ["DEDICATED_LEARNER"]


@pytest.mark.parametrize("visits,rate,time_ms,level", [
    (0, 0.0, 0, "new"),
    (4, 100.0, 10 ** 8, "beginner"),
    (10, 80.0, 61 * 60 * 1000, "expert"),
    (10, 80.0, 31 * 60 * 1000, "advanced"),
    (10, 30.0, 10 ** 8, "intermediate"),
    (10, 10.0, 10 ** 8, "casual"),
])
def test_overview_engagement_level(visits, rate, time_ms, level):
    assert stats_module.overview_engagement_level(visits, rate, time_ms) == level


def test_insights_for_new_user():
    insights = stats_module.learning_insights(UserStatistics(telegram_id=1))
    assert insights.streak == "Start your learning streak today!"
    assert insights.next_action == "Start with your first lesson in the Beginner level"


def test_insights_for_active_reader():
    stats = UserStatistics(
        telegram_id=1,
        total_lessons_viewed=5,
        completion_rate=90.0,
        current_streak=3,
        average_reading_speed=300.0
    )
    insights = stats_module.learning_insights(stats)
    assert insights.reading_pace == "Excellent reading speed! You're a fast learner."
    assert insights.streak == "Keep going! 4 more days to a week streak!"
    assert insights.completion == "Excellent completion rate! You're very thorough."
    assert insights.next_action == "Continue to the next lesson in your current level"


def test_compute_statistics(service):
    records = [
        record(f"{BEGINNER}/a", days_ago=0, completed=True, speed=220.0, time_spent=120000, visits=3),
        record(f"{BEGINNER}/b", days_ago=1, speed=180.0, time_spent=60000, visits=2),
    ]
    stats = service.compute_statistics(1, records, today=TODAY)

    assert stats.total_lessons_viewed == 2
    assert stats.total_lessons_completed == 1
    assert stats.total_time_spent == 180000
    assert stats.average_reading_speed == pytest.approx(200.0)
    assert stats.completion_rate == pytest.approx(50.0)
    assert stats.current_streak == 2
    assert stats.longest_streak == 2
    assert stats.total_visits == 5
    assert stats.last_activity == records[0].last_visited
    assert stats.engagement_level == "intermediate"
    assert stats.level_progress[BEGINNER] == pytest.approx(50.0)
    assert [a.lesson_path for a in stats.recent_activity] == [f"{BEGINNER}/a", f"{BEGINNER}/b"]
    assert stats.achievements == ["FIRST_LESSON"]


def test_unknown_user_gets_placeholder(service, db):
    stats = service.get_user_statistics(db, 12345)

    assert stats.total_lessons_viewed == 0
    assert stats.engagement_level == "new"
    assert stats.level_progress == {level.label: 0.0 for level in DEFAULT_LEVELS}
    assert user_store.find_by_telegram_id(db, 12345) is None


def test_user_statistics_from_store(service, db):
    progress_store.upsert(db, ProgressRecord(
        telegram_id=7,
        lesson_path=f"{BEGINNER}/a",
        completed=True,
        time_spent=90000,
        visits=1,
        last_visited=datetime.now()
    ))

    stats = service.get_user_statistics(db, 7)

    assert stats.total_lessons_completed == 1
    assert stats.current_streak == 1
    assert service.get_current_streak(db, 7) == 1
    assert "FIRST_LESSON" in service.get_achievements_summary(db, 7).achievements
    assert service.get_level_progress(db, 7)[BEGINNER] == pytest.approx(100.0)


class DictCache(NullCache):
    def __init__(self):
        self.data = {}

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value, ttl=None):
        self.data[key] = value
        return True


def test_cached_statistics_are_served(db):
    cache = DictCache()
    service = StatisticsService(cache=cache, levels=DEFAULT_LEVELS, today=lambda: TODAY)
    user_store.get_or_create(db, 8)

    first = service.get_user_statistics(db, 8)
    assert cache.data["stats:user:8"]["computed_on"] == "2024-03-15"

    cache.data["stats:user:8"]["stats"]["total_visits"] = 99
    assert service.get_user_statistics(db, 8).total_visits == 99
    assert first.total_visits == 0


def test_cached_statistics_expire_at_midnight(db):
    days = iter([TODAY, TODAY + timedelta(days=2)])
    cache = DictCache()
    service = StatisticsService(cache=cache, levels=DEFAULT_LEVELS, today=lambda: next(days))
    user_store.get_or_create(db, 8)
    cache.data["stats:user:8"] = {
        "computed_on": "2024-03-14",
        "stats": UserStatistics(telegram_id=8, current_streak=5).model_dump(mode="json")
    }

    assert service.get_user_statistics(db, 8).current_streak == 0
    assert cache.data["stats:user:8"]["computed_on"] == "2024-03-15"

    cache.data["stats:user:8"]["stats"]["current_streak"] = 3
    assert service.get_user_statistics(db, 8).current_streak == 0
    assert cache.data["stats:user:8"]["computed_on"] == "2024-03-17"
