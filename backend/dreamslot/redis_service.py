"""Redis service for progress persistence, the spin guard and idempotency."""
import hashlib
import json
import logging
import uuid
from typing import Any

import redis.asyncio as redis
from pydantic import ValidationError

from dreamslot.config import settings
from dreamslot.errors import ErrorCode, GameError
from dreamslot.logic.catalog import known_ids
from dreamslot.logic.models import ProgressionState
from dreamslot.logic.rounds import PendingRound


logger = logging.getLogger(__name__)


class RedisService:
    """Redis client for progress, round locking and the idempotency cache."""

    # Key prefixes
    IDEMPOTENCY_PREFIX = "idem:"
    LOCK_PREFIX = "lock:player:"
    ROUND_PREFIX = "round:player:"
    PROGRESS_PREFIX = "progress:player:"

    # Lua script for token-safe lock release (compare-and-delete)
    # Only deletes if current value matches token
    RELEASE_LOCK_SCRIPT = """
    if redis.call("get", KEYS[1]) == ARGV[1] then
        return redis.call("del", KEYS[1])
    else
        return 0
    end
    """

    # Lua compare-and-delete for the open round, matched on round_id
    CLEAR_ROUND_SCRIPT = """
    local current = redis.call("get", KEYS[1])
    if not current then
        return 0
    end
    local ok, record = pcall(cjson.decode, current)
    if ok and type(record) == "table" and record["round_id"] == ARGV[1] then
        return redis.call("del", KEYS[1])
    else
        return 0
    end
    """

    def __init__(self, redis_url: str | None = None):
        self._url = redis_url or settings.redis_url
        self._client: redis.Redis | None = None

    async def connect(self) -> None:
        """Connect to Redis."""
        if self._client is None:
            self._client = redis.from_url(self._url, decode_responses=True)

    async def close(self) -> None:
        """Close Redis connection."""
        if self._client:
            await self._client.close()
            self._client = None

    @property
    def client(self) -> redis.Redis:
        """Get Redis client, raise if not connected."""
        if self._client is None:
            raise RuntimeError("Redis not connected")
        return self._client

    # === Keys ===

    def _unlocked_key(self, player_id: str) -> str:
        return f"{self.PROGRESS_PREFIX}{player_id}:unlocked"

    def _pulls_key(self, player_id: str) -> str:
        return f"{self.PROGRESS_PREFIX}{player_id}:pulls"

    # === Idempotency ===

    def _payload_hash(self, payload: dict[str, Any]) -> str:
        """Create deterministic hash of payload for conflict detection."""
        canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(canonical.encode()).hexdigest()[:16]

    async def check_idempotency(
        self, player_id: str, request_id: str, payload: dict[str, Any]
    ) -> dict[str, Any] | None:
        """
        Check idempotency cache.

        Returns cached response if request_id was seen before with same payload.
        Raises IDEMPOTENCY_CONFLICT if same request_id with different payload.
        Returns None if request_id not seen before.
        """
        key = f"{self.IDEMPOTENCY_PREFIX}{player_id}:{request_id}"
        cached = await self.client.get(key)

        if cached is None:
            return None

        data = json.loads(cached)
        if data.get("payload_hash") != self._payload_hash(payload):
            raise GameError(
                ErrorCode.IDEMPOTENCY_CONFLICT,
                "Same clientRequestId used with different payload.",
            )

        return data.get("response")

    async def store_idempotency(
        self,
        player_id: str,
        request_id: str,
        payload: dict[str, Any],
        response: dict[str, Any],
    ) -> None:
        """Store response in idempotency cache."""
        key = f"{self.IDEMPOTENCY_PREFIX}{player_id}:{request_id}"
        data = {
            "payload_hash": self._payload_hash(payload),
            "response": response,
        }
        await self.client.setex(key, settings.idempotency_ttl_seconds, json.dumps(data))

    # === Spin guard ===

    async def acquire_round_lock(self, player_id: str) -> str | None:
        """
        Attempt to acquire the per-player spin guard with a unique token.

        Returns token string if acquired, None if a round is already running.
        """
        key = f"{self.LOCK_PREFIX}{player_id}"
        token = str(uuid.uuid4())
        acquired = await self.client.set(
            key, token, nx=True, ex=settings.lock_ttl_seconds
        )
        return token if acquired is True else None

    async def release_round_lock(self, player_id: str, token: str) -> bool:
        """
        Release the spin guard only if token matches (token-safe).

        Returns True if released, False if token didn't match.
        """
        key = f"{self.LOCK_PREFIX}{player_id}"
        result = await self.client.eval(self.RELEASE_LOCK_SCRIPT, 1, key, token)
        return result == 1

    async def is_round_locked(self, player_id: str) -> bool:
        return await self.client.get(f"{self.LOCK_PREFIX}{player_id}") is not None

    async def owns_round_lock(self, player_id: str, token: str) -> bool:
        """True while the spin guard is still held under this token."""
        return await self.client.get(f"{self.LOCK_PREFIX}{player_id}") == token

    # === Pending round ===

    async def get_pending_round(self, player_id: str) -> PendingRound | None:
        """Load the open round, dropping it if the payload is unreadable."""
        key = f"{self.ROUND_PREFIX}{player_id}"
        cached = await self.client.get(key)
        if cached is None:
            return None
        try:
            return PendingRound.model_validate_json(cached)
        except ValidationError as e:
            logger.warning("Dropping malformed pending round for %s: %s", player_id, e)
            await self.client.delete(key)
            return None

    async def save_pending_round(self, player_id: str, pending: PendingRound) -> None:
        key = f"{self.ROUND_PREFIX}{player_id}"
        await self.client.set(key, pending.model_dump_json())

    async def clear_pending_round(self, player_id: str, round_id: str) -> bool:
        """
        Delete the open round only if it is still round_id.

        Returns True if deleted, False if another round replaced it or it
        was already cleared.
        """
        key = f"{self.ROUND_PREFIX}{player_id}"
        result = await self.client.eval(self.CLEAR_ROUND_SCRIPT, 1, key, round_id)
        return result == 1

    # === Progress persistence ===

    async def load_progress(self, player_id: str) -> ProgressionState:
        """
        Load progression.

        Absent, corrupt or unreachable storage yields the empty state;
        corrupt values are deleted.
        """
        try:
            raw_unlocked = await self.client.get(self._unlocked_key(player_id))
            raw_pulls = await self.client.get(self._pulls_key(player_id))
        except redis.RedisError as e:
            logger.warning("Progress load failed for %s: %s", player_id, e)
            return ProgressionState()

        unlocked = await self._parse_unlocked(player_id, raw_unlocked)
        pull_count = await self._parse_pulls(player_id, raw_pulls)
        return ProgressionState(unlocked=unlocked, pull_count=pull_count)

    async def _parse_unlocked(self, player_id: str, raw: str | None) -> set[str]:
        if raw is None:
            return set()
        try:
            data = json.loads(raw)
        except (TypeError, ValueError):
            data = None
        if not isinstance(data, list):
            logger.warning("Discarding corrupt unlocked set for %s", player_id)
            await self._discard(self._unlocked_key(player_id))
            return set()
        return known_ids(data)

    async def _parse_pulls(self, player_id: str, raw: str | None) -> int:
        if raw is None:
            return 0
        try:
            return max(0, int(raw))
        except (TypeError, ValueError):
            logger.warning("Discarding corrupt pull count for %s", player_id)
            await self._discard(self._pulls_key(player_id))
            return 0

    async def _discard(self, key: str) -> None:
        try:
            await self.client.delete(key)
        except redis.RedisError as e:
            logger.warning("Failed to discard %s: %s", key, e)

    async def save_progress(self, player_id: str, state: ProgressionState) -> bool:
        """
        Persist progression as two independent values.

        Failures are logged and reported, never raised.
        """
        unlocked = json.dumps(sorted(state.unlocked))
        pulls = str(state.pull_count)
        ttl = settings.progress_ttl_seconds
        try:
            if ttl > 0:
                await self.client.setex(self._unlocked_key(player_id), ttl, unlocked)
                await self.client.setex(self._pulls_key(player_id), ttl, pulls)
            else:
                await self.client.set(self._unlocked_key(player_id), unlocked)
                await self.client.set(self._pulls_key(player_id), pulls)
        except redis.RedisError as e:
            logger.warning("Progress save failed for %s: %s", player_id, e)
            return False
        return True

    async def clear_progress(self, player_id: str) -> None:
        """Delete persisted progression and any open round (explicit reset)."""
        await self.client.delete(self._unlocked_key(player_id))
        await self.client.delete(self._pulls_key(player_id))
        await self.client.delete(f"{self.ROUND_PREFIX}{player_id}")


class PlayerProgressStore:
    """Persistence collaborator bound to a single player."""

    def __init__(self, service: RedisService, player_id: str):
        self._service = service
        self.player_id = player_id

    async def load(self) -> ProgressionState:
        return await self._service.load_progress(self.player_id)

    async def save(self, state: ProgressionState) -> None:
        await self._service.save_progress(self.player_id, state)

    async def clear(self) -> None:
        await self._service.clear_progress(self.player_id)


# Global instance
redis_service = RedisService()
