"""Progress persistence tests (RedisService with MockRedis)."""
import json

import pytest

from dreamslot.config import settings
from dreamslot.logic.catalog import get_item
from dreamslot.logic.models import OutcomeKind, ProgressionState, SpinResult
from dreamslot.logic.rounds import PendingRound
from dreamslot.redis_service import PlayerProgressStore, RedisService
from tests.conftest import MockRedis


PLAYER_ID = "test-player-progress"
UNLOCKED_KEY = f"progress:player:{PLAYER_ID}:unlocked"
PULLS_KEY = f"progress:player:{PLAYER_ID}:pulls"


class TestLoadProgress:
    @pytest.mark.asyncio
    async def test_absent_keys_yield_empty_state(self, redis_service_with_mock: RedisService):
        state = await redis_service_with_mock.load_progress(PLAYER_ID)
        assert state == ProgressionState()

    @pytest.mark.asyncio
    async def test_round_trip(self, redis_service_with_mock: RedisService, mock_redis: MockRedis):
        state = ProgressionState(unlocked={"moon", "sheep"}, pull_count=77)
        assert await redis_service_with_mock.save_progress(PLAYER_ID, state) is True

        assert json.loads(mock_redis._store[UNLOCKED_KEY]) == ["moon", "sheep"]
        assert mock_redis._store[PULLS_KEY] == "77"
        assert await redis_service_with_mock.load_progress(PLAYER_ID) == state

    @pytest.mark.asyncio
    async def test_corrupt_unlocked_set_is_discarded(
        self, redis_service_with_mock: RedisService, mock_redis: MockRedis
    ):
        mock_redis._store[UNLOCKED_KEY] = "{not json"
        mock_redis._store[PULLS_KEY] = "12"

        state = await redis_service_with_mock.load_progress(PLAYER_ID)

        assert state.unlocked == set()
        assert state.pull_count == 12
        assert UNLOCKED_KEY not in mock_redis._store

    @pytest.mark.asyncio
    async def test_non_list_unlocked_is_discarded(
        self, redis_service_with_mock: RedisService, mock_redis: MockRedis
    ):
        mock_redis._store[UNLOCKED_KEY] = json.dumps({"sheep": True})
        state = await redis_service_with_mock.load_progress(PLAYER_ID)
        assert state.unlocked == set()

    @pytest.mark.asyncio
    async def test_corrupt_pull_count_is_discarded(
        self, redis_service_with_mock: RedisService, mock_redis: MockRedis
    ):
        mock_redis._store[UNLOCKED_KEY] = json.dumps(["sheep"])
        mock_redis._store[PULLS_KEY] = "many"

        state = await redis_service_with_mock.load_progress(PLAYER_ID)

        assert state.unlocked == {"sheep"}
        assert state.pull_count == 0
        assert PULLS_KEY not in mock_redis._store

    @pytest.mark.asyncio
    async def test_unknown_ids_are_dropped(
        self, redis_service_with_mock: RedisService, mock_redis: MockRedis
    ):
        mock_redis._store[UNLOCKED_KEY] = json.dumps(["sheep", "dragon", 3])
        state = await redis_service_with_mock.load_progress(PLAYER_ID)
        assert state.unlocked == {"sheep"}

    @pytest.mark.asyncio
    async def test_unreachable_storage_yields_empty_state(
        self, redis_service_with_mock: RedisService, mock_redis: MockRedis
    ):
        mock_redis._store[PULLS_KEY] = "40"
        mock_redis.fail = True
        assert await redis_service_with_mock.load_progress(PLAYER_ID) == ProgressionState()


class TestSaveProgress:
    @pytest.mark.asyncio
    async def test_failure_is_reported_not_raised(
        self, redis_service_with_mock: RedisService, mock_redis: MockRedis
    ):
        mock_redis.fail = True
        saved = await redis_service_with_mock.save_progress(
            PLAYER_ID, ProgressionState(pull_count=3)
        )
        assert saved is False

    @pytest.mark.asyncio
    async def test_ttl_uses_setex(
        self, redis_service_with_mock: RedisService, mock_redis: MockRedis, monkeypatch
    ):
        monkeypatch.setattr(settings, "progress_ttl_seconds", 86400)
        await redis_service_with_mock.save_progress(PLAYER_ID, ProgressionState(pull_count=1))
        assert mock_redis._last_setex_ttl == 86400
        assert mock_redis._store[PULLS_KEY] == "1"

    @pytest.mark.asyncio
    async def test_clear_removes_progress_and_open_round(
        self, redis_service_with_mock: RedisService, mock_redis: MockRedis
    ):
        await redis_service_with_mock.save_progress(
            PLAYER_ID, ProgressionState(unlocked={"sheep"}, pull_count=5)
        )
        mock_redis._store[f"round:player:{PLAYER_ID}"] = "{}"

        await redis_service_with_mock.clear_progress(PLAYER_ID)

        assert mock_redis._store == {}


class TestPendingRound:
    @pytest.mark.asyncio
    async def test_save_and_get(self, redis_service_with_mock: RedisService):
        pending = PendingRound.from_result(
            round_id="r-1",
            pull_count=3,
            result=SpinResult.win(get_item("cat")),
            lock_token="tok",
            opened_at=100.0,
        )
        await redis_service_with_mock.save_pending_round(PLAYER_ID, pending)
        assert await redis_service_with_mock.get_pending_round(PLAYER_ID) == pending

        assert await redis_service_with_mock.clear_pending_round(PLAYER_ID, "r-1") is True
        assert await redis_service_with_mock.get_pending_round(PLAYER_ID) is None

    @pytest.mark.asyncio
    async def test_clear_keeps_a_different_round(self, redis_service_with_mock: RedisService):
        newer = PendingRound.from_result(
            round_id="r-new",
            pull_count=4,
            result=SpinResult.win(get_item("moon")),
            lock_token="tok-2",
            opened_at=200.0,
        )
        await redis_service_with_mock.save_pending_round(PLAYER_ID, newer)

        assert await redis_service_with_mock.clear_pending_round(PLAYER_ID, "r-old") is False
        assert await redis_service_with_mock.get_pending_round(PLAYER_ID) == newer

    @pytest.mark.asyncio
    async def test_clear_when_nothing_open(self, redis_service_with_mock: RedisService):
        assert await redis_service_with_mock.clear_pending_round(PLAYER_ID, "r-1") is False

    @pytest.mark.asyncio
    async def test_malformed_round_is_dropped(
        self, redis_service_with_mock: RedisService, mock_redis: MockRedis
    ):
        key = f"round:player:{PLAYER_ID}"
        mock_redis._store[key] = json.dumps({"round_id": "r-1"})
        assert await redis_service_with_mock.get_pending_round(PLAYER_ID) is None
        assert key not in mock_redis._store

    @pytest.mark.asyncio
    async def test_loss_round_keeps_kind(self, redis_service_with_mock: RedisService):
        result = SpinResult.loss(
            (get_item("cat"), get_item("tea"), get_item("rain")), OutcomeKind.CHAOS
        )
        pending = PendingRound.from_result("r-2", 9, result, None, 0.0)
        await redis_service_with_mock.save_pending_round(PLAYER_ID, pending)
        loaded = await redis_service_with_mock.get_pending_round(PLAYER_ID)
        assert loaded.to_result() == result


class TestPlayerProgressStore:
    @pytest.mark.asyncio
    async def test_store_binds_player(self, redis_service_with_mock: RedisService):
        store = PlayerProgressStore(redis_service_with_mock, PLAYER_ID)
        state = ProgressionState(unlocked={"tea"}, pull_count=2)

        await store.save(state)
        assert await store.load() == state
        assert await redis_service_with_mock.load_progress("someone-else") == ProgressionState()

        await store.clear()
        assert await store.load() == ProgressionState()
