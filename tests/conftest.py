import os

# Configure before lesson_tracker builds its global settings and collaborators
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["REDIS_URL"] = ""
os.environ["TELEGRAM_BOT_TOKEN"] = ""
os.environ["ADMIN_IDS"] = "[999]"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import lesson_tracker.models  # noqa: F401
from lesson_tracker.config import settings
from lesson_tracker.database import Base, get_db
from lesson_tracker.main import app
from lesson_tracker.services.session_tracker import session_tracker
from lesson_tracker.utils.rate_limiter import rate_limiter

ADMIN_ID = 999


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def isolated_globals(monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_IDS", [ADMIN_ID])
    monkeypatch.setattr(settings, "TELEGRAM_BOT_TOKEN", "")
    session_tracker.clear()
    rate_limiter.reset()
    yield
    session_tracker.clear()


@pytest.fixture
def admin_headers():
    return {"X-Telegram-User-Id": str(ADMIN_ID)}


class FakeClock:
    """Millisecond clock advanced by hand"""

    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def clock():
    return FakeClock()
