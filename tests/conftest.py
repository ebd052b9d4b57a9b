"""Shared fixtures for authbridge tests."""

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine

from authbridge.app.core.config import Settings

TEST_SECRET = "test-better-auth-secret-0123456789abcdef"


class FakeClock:
    """Manually advanced clock returning epoch seconds."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeDateTimeClock:
    """Manually advanced clock returning aware UTC datetimes."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def datetime_clock():
    return FakeDateTimeClock()


@pytest.fixture
def settings(tmp_path):
    """Settings isolated from the environment and any .env file."""
    return Settings(
        _env_file=None,
        environment="development",
        database_url=f"sqlite+aiosqlite:///{tmp_path}/authbridge-test.db",
        better_auth_secret=TEST_SECRET,
        better_auth_upstream_url="http://upstream.test",
    )


@pytest_asyncio.fixture
async def engine(tmp_path):
    """Async SQLite engine on a temporary database file."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path}/challenges.db")
    yield engine
    await engine.dispose()
