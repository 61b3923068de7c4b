"""Pytest fixtures for backend tests."""
import json
from typing import Any, Generator, Sequence

import pytest
import redis.asyncio as redis
from fastapi.testclient import TestClient

from dreamslot.logic.catalog import CATALOG, hidden_item, standard_items
from dreamslot.logic.models import ProgressionState
from dreamslot.logic.rng import RNGBase
from dreamslot.main import app
from dreamslot.redis_service import RedisService
from dreamslot.telemetry import LoggingTelemetrySink


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (full progression simulations)"
    )


class MockRedis:
    """Mock Redis client for testing."""

    def __init__(self):
        self._store: dict[str, str] = {}
        self._last_set_ex: int | None = None  # Track last SET EX value for TTL tests
        self._last_setex_ttl: int | None = None
        self.fail = False  # Simulate an unreachable server

    def _check(self) -> None:
        if self.fail:
            raise redis.ConnectionError("mock redis unavailable")

    async def get(self, key: str) -> str | None:
        self._check()
        return self._store.get(key)

    async def set(
        self, key: str, value: str, nx: bool = False, ex: int | None = None
    ) -> bool | None:
        self._check()
        if nx and key in self._store:
            return None
        self._store[key] = value
        self._last_set_ex = ex
        return True

    async def setex(self, key: str, ttl: int, value: str) -> bool:
        self._check()
        self._store[key] = value
        self._last_setex_ttl = ttl
        return True

    async def delete(self, key: str) -> int:
        self._check()
        if key in self._store:
            del self._store[key]
            return 1
        return 0

    async def eval(self, script: str, numkeys: int, *args) -> int:
        """
        Execute Lua script (simplified mock for compare-and-delete).

        KEYS[1] = args[0] (key), ARGV[1] = args[1] (expected value).
        The round script compares the stored record's round_id instead.
        Returns 1 if deleted, 0 if value didn't match.
        """
        self._check()
        key = args[0]
        expected_value = args[1]
        current = self._store.get(key)
        if current is not None and script == RedisService.CLEAR_ROUND_SCRIPT:
            try:
                current = json.loads(current).get("round_id")
            except (ValueError, AttributeError):
                current = None
        if current is not None and current == expected_value:
            del self._store[key]
            return 1
        return 0

    async def close(self) -> None:
        pass

    def expire_lock(self, player_id: str) -> None:
        """Drop a player's spin guard as if its TTL ran out."""
        self._store.pop(f"{RedisService.LOCK_PREFIX}{player_id}", None)

    def clear(self) -> None:
        self._store.clear()
        self._last_set_ex = None
        self._last_setex_ttl = None
        self.fail = False


class ScriptedRNG(RNGBase):
    """Replays a fixed list of draws, then returns 0.0 forever."""

    def __init__(self, draws: Sequence[float] = ()):
        self._draws = list(draws)
        self.calls = 0

    def random(self) -> float:
        self.calls += 1
        if self._draws:
            return self._draws.pop(0)
        return 0.0


class RecordingTelemetrySink:
    """Telemetry sink that keeps every event."""

    def __init__(self):
        self.events: list[tuple[str, dict[str, Any]]] = []

    def emit(self, event_name: str, data: dict[str, Any]) -> None:
        self.events.append((event_name, data))

    def named(self, event_name: str) -> list[dict[str, Any]]:
        return [data for name, data in self.events if name == event_name]


def make_progression(
    standard_count: int = 0, pull_count: int = 0, hidden: bool = False
) -> ProgressionState:
    """Progression with the first standard_count catalog items unlocked."""
    unlocked = {item.id for item in standard_items()[:standard_count]}
    if hidden:
        unlocked.add(hidden_item().id)
    return ProgressionState(unlocked=unlocked, pull_count=pull_count)


@pytest.fixture
def catalog():
    return CATALOG


@pytest.fixture
def mock_redis() -> MockRedis:
    """Create a fresh mock Redis for each test."""
    return MockRedis()


@pytest.fixture
def redis_service_with_mock(mock_redis: MockRedis) -> Generator[RedisService, None, None]:
    """Create RedisService with mock client."""
    service = RedisService()
    service._client = mock_redis
    yield service
    mock_redis.clear()


@pytest.fixture
def client_with_mock_redis(mock_redis: MockRedis) -> Generator[TestClient, None, None]:
    """Create TestClient with mocked Redis."""
    from dreamslot.redis_service import redis_service

    # Patch the global redis_service client
    original_client = redis_service._client
    redis_service._client = mock_redis

    with TestClient(app) as client:
        yield client

    # Restore original
    redis_service._client = original_client
    mock_redis.clear()


@pytest.fixture
def recording_telemetry() -> Generator[RecordingTelemetrySink, None, None]:
    """Route server telemetry into a RecordingTelemetrySink."""
    from dreamslot.telemetry import telemetry_service

    sink = RecordingTelemetrySink()
    telemetry_service.set_sink(sink)
    yield sink
    telemetry_service.set_sink(LoggingTelemetrySink())


@pytest.fixture
def scripted_engine(monkeypatch):
    """Swap the server engine's RNG for scripted draws."""
    from dreamslot import main

    def _script(*draws: float) -> ScriptedRNG:
        rng = ScriptedRNG(draws)
        monkeypatch.setattr(main.engine, "rng", rng)
        return rng

    return _script


@pytest.fixture
def no_flavor_key(monkeypatch):
    """Force the flavor service onto its offline fallback."""
    from dreamslot.flavor import flavor_service

    monkeypatch.setattr(flavor_service, "api_key", "")
