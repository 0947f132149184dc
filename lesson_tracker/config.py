"""
Configuration management using Pydantic Settings
"""
from pydantic import BaseModel
from pydantic_settings import BaseSettings
from typing import List


class LevelConfig(BaseModel):
    """A named course level; lessons belong to a level when their path contains the label"""
    label: str
    rank: int
    premium: bool = False


DEFAULT_LEVELS = [
    LevelConfig(label="Начальный уровень (Бесплатно)", rank=1, premium=False),
    LevelConfig(label="Средний уровень (Подписка)", rank=2, premium=True),
    LevelConfig(label="Продвинутый уровень (Подписка)", rank=3, premium=True),
    LevelConfig(label="Эксперт уровень (Подписка)", rank=4, premium=True),
]


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Database
    DATABASE_URL: str = "sqlite:///./lesson_tracker.db"

    # Redis (empty disables caching)
    REDIS_URL: str = ""

    # Application
    APP_NAME: str = "Lesson Tracker"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:8000"]

    # Rate Limiting
    RATE_LIMIT_PER_MINUTE: int = 120
    RATE_LIMIT_PER_HOUR: int = 3000

    # Telegram
    TELEGRAM_BOT_TOKEN: str = ""
    TELEGRAM_CHANNEL_ID: str = ""
    ADMIN_IDS: List[int] = []

    # Course levels and premium markers
    LEVELS: List[LevelConfig] = DEFAULT_LEVELS
    PREMIUM_MARKERS: List[str] = ["🎓"]

    # Reading session tracking
    ACTIVITY_WINDOW_MS: int = 30000
    AVERAGE_WPM: int = 200
    COMPLETION_THRESHOLD: float = 0.8
    SESSION_IDLE_TIMEOUT_SECONDS: int = 6 * 60 * 60
    SESSION_REAPER_INTERVAL_SECONDS: int = 15 * 60

    # Cache TTLs (seconds)
    STATISTICS_CACHE_TTL: int = 600
    LESSON_CACHE_TTL: int = 600
    SUBSCRIPTION_CACHE_TTL: int = 300
    ANALYTICS_EVENTS_MAX: int = 10000

    # Subscriptions
    DEFAULT_SUBSCRIPTION_DAYS: int = 30

    # Logging
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = True


# Global settings instance
settings = Settings()
