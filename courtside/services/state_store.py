"""Versioned key/value state store for live game and signal state.

The reducer and the signal registry never touch module globals; they
are handed a ``StateStore`` and serialize updates per key with
``KeyedLocks`` plus compare-and-swap on the entry version. Two backends:

- ``InMemoryStateStore``: process local, used by tests and the backtest
- ``RedisStateStore``: shared across workers, CAS done in a Lua script
"""

import asyncio
import json
from collections import defaultdict
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Optional, Protocol

import redis.asyncio as redis
import structlog

from courtside.config.settings import Settings

logger = structlog.get_logger(__name__)


class StateConflictError(RuntimeError):
    """Compare-and-swap retries exhausted for a key."""

    def __init__(self, key: str, attempts: int):
        super().__init__(f"state conflict on {key!r} after {attempts} attempts")
        self.key = key
        self.attempts = attempts


@dataclass(frozen=True)
class StoredEntry:
    version: int
    value: dict[str, Any]


class StateStore(Protocol):
    """Async versioned key/value store."""

    async def get(self, key: str) -> Optional[StoredEntry]:
        ...

    async def put(self, key: str, value: dict[str, Any]) -> int:
        """Write unconditionally and return the new version."""
        ...

    async def compare_and_swap(
        self, key: str, expected_version: Optional[int], value: dict[str, Any]
    ) -> bool:
        """Write only if the stored version matches.

        ``expected_version=None`` means the key must not exist yet.
        """
        ...

    async def scan(self, prefix: str) -> list[tuple[str, StoredEntry]]:
        ...

    async def delete(self, key: str) -> None:
        ...


class KeyedLocks:
    """Per-key asyncio locks.

    Updates to one key run one at a time in arrival order (asyncio.Lock
    wakes waiters FIFO); different keys never wait on each other.
    """

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._waiters: dict[str, int] = defaultdict(int)

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        self._waiters[key] += 1
        lock = self._locks[key]
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                # Drop idle locks so long runs do not grow without bound
                del self._waiters[key]
                self._locks.pop(key, None)


class InMemoryStateStore:
    """Dict-backed store guarded by a single asyncio lock."""

    def __init__(self):
        self._data: dict[str, StoredEntry] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[StoredEntry]:
        async with self._lock:
            return self._data.get(key)

    async def put(self, key: str, value: dict[str, Any]) -> int:
        async with self._lock:
            current = self._data.get(key)
            version = (current.version if current else 0) + 1
            self._data[key] = StoredEntry(version, _copy(value))
            return version

    async def compare_and_swap(
        self, key: str, expected_version: Optional[int], value: dict[str, Any]
    ) -> bool:
        async with self._lock:
            current = self._data.get(key)
            current_version = current.version if current else None
            if current_version != expected_version:
                return False
            self._data[key] = StoredEntry((current_version or 0) + 1, _copy(value))
            return True

    async def scan(self, prefix: str) -> list[tuple[str, StoredEntry]]:
        async with self._lock:
            return sorted(
                ((k, v) for k, v in self._data.items() if k.startswith(prefix)),
                key=lambda item: item[0],
            )

    async def delete(self, key: str) -> None:
        async with self._lock:
            self._data.pop(key, None)


def _copy(value: dict[str, Any]) -> dict[str, Any]:
    # Stored values are JSON documents; a round trip detaches them from callers
    return json.loads(json.dumps(value, default=str))


class RedisStateStore:
    """Redis hash per key holding ``version`` and the JSON ``value``."""

    # Returns the new version, or 0 when the expected version did not match.
    # An empty expected version means the key must not exist.
    CAS_SCRIPT = """
    local current = redis.call('HGET', KEYS[1], 'version')
    local expected = ARGV[1]
    if expected == '' then
        if current then
            return 0
        end
    elseif current ~= expected then
        return 0
    end
    local next_version = (tonumber(current) or 0) + 1
    redis.call('HSET', KEYS[1], 'version', next_version, 'value', ARGV[2])
    return next_version
    """

    PUT_SCRIPT = """
    local next_version = redis.call('HINCRBY', KEYS[1], 'version', 1)
    redis.call('HSET', KEYS[1], 'value', ARGV[1])
    return next_version
    """

    def __init__(self, redis_client: redis.Redis, key_prefix: str = "courtside"):
        """
        Initialize the store.

        Args:
            redis_client: Redis client shared with the rest of the app
            key_prefix: Namespace for every key written by the store
        """
        self.redis = redis_client
        self.key_prefix = key_prefix

    def _get_key(self, key: str) -> str:
        return f"{self.key_prefix}:{key}"

    def _strip_key(self, raw: Any) -> str:
        full = raw.decode() if isinstance(raw, bytes) else raw
        return full[len(self.key_prefix) + 1:]

    @staticmethod
    def _decode(state: dict) -> Optional[StoredEntry]:
        if not state:
            return None
        state = {
            (k.decode() if isinstance(k, bytes) else k): v for k, v in state.items()
        }
        value = state.get("value")
        if isinstance(value, bytes):
            value = value.decode()
        return StoredEntry(int(state["version"]), json.loads(value or "{}"))

    async def get(self, key: str) -> Optional[StoredEntry]:
        return self._decode(await self.redis.hgetall(self._get_key(key)))

    async def put(self, key: str, value: dict[str, Any]) -> int:
        result = await self.redis.eval(
            self.PUT_SCRIPT, 1, self._get_key(key), json.dumps(value, default=str)
        )
        return int(result)

    async def compare_and_swap(
        self, key: str, expected_version: Optional[int], value: dict[str, Any]
    ) -> bool:
        result = await self.redis.eval(
            self.CAS_SCRIPT,
            1,
            self._get_key(key),
            "" if expected_version is None else str(expected_version),
            json.dumps(value, default=str),
        )
        swapped = int(result) > 0
        if not swapped:
            logger.debug("state_cas_conflict", key=key, expected=expected_version)
        return swapped

    async def scan(self, prefix: str) -> list[tuple[str, StoredEntry]]:
        entries = []
        async for raw_key in self.redis.scan_iter(match=f"{self._get_key(prefix)}*"):
            entry = self._decode(await self.redis.hgetall(raw_key))
            if entry is not None:
                entries.append((self._strip_key(raw_key), entry))
        return sorted(entries, key=lambda item: item[0])

    async def delete(self, key: str) -> None:
        await self.redis.delete(self._get_key(key))


def build_state_store(
    settings: Settings, redis_client: Optional[redis.Redis] = None
) -> StateStore:
    """Select the backend configured in ``Settings.state_backend``."""
    if settings.uses_redis_state:
        client = redis_client or redis.from_url(settings.redis_url)
        logger.info("state_store_selected", backend="redis")
        return RedisStateStore(client, key_prefix=settings.state_key_prefix)
    logger.info("state_store_selected", backend="memory")
    return InMemoryStateStore()
