"""Unit test fixtures with mocked DB and services."""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from gateway.dependencies import get_db
from gateway.main import app
from gateway.services.rate_limit import SlidingWindowRateLimiter


class FakeClock:
    """Manually advanced monotonic clock for rate-limiter tests."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_api_key(
    id="5f0c1f3e-6f43-4a43-9a54-6ad4c1f1a001",
    key="sk_" + "a" * 32,
    name="test-key",
    usage_count=1,
    is_active=True,
    rate_limit=None,
):
    """Helper to create an api_keys row dict for tests."""
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    return {
        "id": id,
        "key": key,
        "name": name,
        "usage_count": usage_count,
        "is_active": int(is_active),
        "rate_limit": rate_limit,
        "created_at": now,
        "updated_at": now,
    }


def make_conn_with_cursor(fetchone=None, fetchall=None, rowcount=1):
    """Create a mock aiomysql connection whose cursor returns the given rows."""
    conn = MagicMock()
    cursor = AsyncMock()
    cursor.fetchone = AsyncMock(return_value=fetchone)
    cursor.fetchall = AsyncMock(return_value=fetchall if fetchall is not None else [])
    cursor.rowcount = rowcount
    cursor.__aenter__ = AsyncMock(return_value=cursor)
    cursor.__aexit__ = AsyncMock(return_value=False)
    conn.cursor = MagicMock(return_value=cursor)
    conn.begin = AsyncMock()
    conn.commit = AsyncMock()
    conn.rollback = AsyncMock()
    return conn, cursor


def fake_connection_factory(conn):
    """Build a get_connection() replacement that yields ``conn``."""

    @asynccontextmanager
    async def _factory():
        yield conn

    return _factory


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def mock_db_api_keys():
    """Mock for gateway.db.api_keys module functions."""
    mock = MagicMock()
    mock.create_api_key = AsyncMock()
    mock.find_and_increment_active_key = AsyncMock()
    mock.get_api_key_by_key = AsyncMock()
    mock.get_api_key_id = AsyncMock()
    mock.get_api_key_by_id = AsyncMock()
    mock.list_api_keys = AsyncMock()
    mock.set_api_key_active = AsyncMock()
    mock.delete_api_key = AsyncMock()
    mock.count_api_keys = AsyncMock()
    return mock


@pytest.fixture
def mock_db_requests():
    """Mock for gateway.db.requests module functions."""
    mock = MagicMock()
    mock.insert_request_record = AsyncMock()
    mock.count_requests = AsyncMock()
    mock.average_latency = AsyncMock()
    mock.top_endpoints = AsyncMock()
    mock.status_buckets = AsyncMock()
    mock.usage_summary = AsyncMock()
    mock.daily_counts = AsyncMock()
    return mock


@pytest.fixture
def route_conn():
    """Connection handed to route handlers through the get_db override."""
    return MagicMock()


@pytest.fixture
async def client(route_conn):
    """Async HTTP test client with no database, a fresh limiter and a mock recorder."""

    async def _override_get_db():
        yield route_conn

    original_limiter = app.state.rate_limiter
    original_recorder = app.state.recorder
    app.state.rate_limiter = SlidingWindowRateLimiter()
    app.state.recorder = MagicMock()
    app.dependency_overrides[get_db] = _override_get_db

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c

    app.dependency_overrides.pop(get_db, None)
    app.state.rate_limiter = original_limiter
    app.state.recorder = original_recorder
