"""Pytest fixtures for testing"""

import uuid
from datetime import datetime, timedelta
from typing import Callable, Optional

import pytest
from fastapi.testclient import TestClient

from moneylens_guard.api.main import create_app
from moneylens_guard.config import Settings
from moneylens_guard.context import GuardContext
from moneylens_guard.domain.models import Location, Preferences, Transaction
from moneylens_guard.infrastructure.database.session import create_session_factory
from moneylens_guard.infrastructure.preferences import InMemoryKeyValueStore, SqlKeyValueStore

# Wednesday, 2pm
WEEKDAY_AFTERNOON = datetime(2026, 10, 21, 14, 0)


class FakeClock:
    """Callable clock that only moves when told to"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class PreferenceHolder:
    """Mutable preferences, handed to components as a callable"""

    def __init__(self, preferences: Optional[Preferences] = None):
        self.value = preferences or Preferences()

    def __call__(self) -> Preferences:
        return self.value


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(WEEKDAY_AFTERNOON)


@pytest.fixture
def prefs() -> PreferenceHolder:
    return PreferenceHolder(Preferences(daily_limit=200, weekly_limit=1000, monthly_limit=4000))


@pytest.fixture
def make_tx(clock: FakeClock) -> Callable[..., Transaction]:
    """Transaction factory defaulting to the fake clock's current time"""

    def _make(
        amount: float,
        merchant: str = "Starbucks",
        category: str = "food",
        at: Optional[datetime] = None,
        location: Optional[Location] = None,
    ) -> Transaction:
        return Transaction(
            id=str(uuid.uuid4()),
            amount=amount,
            merchant=merchant,
            category=category,
            timestamp=at or clock(),
            location=location,
        )

    return _make


@pytest.fixture
def test_settings() -> Settings:
    return Settings(database_url="sqlite://", notification_webhook_url=None, log_level="WARNING")


@pytest.fixture
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def sql_store(tmp_path) -> SqlKeyValueStore:
    """Key-value store backed by a throwaway SQLite file"""
    return SqlKeyValueStore(create_session_factory(f"sqlite:///{tmp_path / 'test.db'}"))


@pytest.fixture
def context(store: InMemoryKeyValueStore, test_settings: Settings, clock: FakeClock) -> GuardContext:
    return GuardContext(store, test_settings, clock=clock)


@pytest.fixture
def client(context: GuardContext, test_settings: Settings) -> TestClient:
    """FastAPI test client bound to the test context (lifespan scans not started)"""
    app = create_app(context=context, config=test_settings)
    return TestClient(app)
