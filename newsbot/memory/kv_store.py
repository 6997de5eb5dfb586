"""Key-value stores with per-entry time-to-live.

Both stores enforce expiry themselves: an entry not rewritten within its TTL
can never be read again, so callers never run a cleanup sweep.
"""
import time
from typing import Callable, Dict, Optional, Protocol, Tuple

import structlog

from newsbot import db
from newsbot.errors import SessionStoreError

logger = structlog.get_logger()

Clock = Callable[[], float]


class KeyValueStore(Protocol):
    """String keys to string values with expiry."""

    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...

    async def delete(self, key: str) -> bool: ...


class InMemoryKeyValueStore:
    """Process-local store, mainly for tests and single-process setups."""

    def __init__(self, clock: Clock = time.monotonic):
        """Initialize the store.

        Args:
            clock: Returns the current time in seconds; injectable for tests
        """
        self._clock = clock
        self._entries: Dict[str, Tuple[str, float]] = {}

    def _live(self, key: str) -> Optional[str]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at <= self._clock():
            del self._entries[key]
            return None
        return value

    async def get(self, key: str) -> Optional[str]:
        return self._live(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            raise SessionStoreError(f"ttl_seconds must be positive, got {ttl_seconds}")
        self._entries[key] = (value, self._clock() + ttl_seconds)

    async def delete(self, key: str) -> bool:
        existed = self._live(key) is not None
        self._entries.pop(key, None)
        return existed


class SQLiteKeyValueStore:
    """Store backed by the ``kv_store`` table in the application database."""

    def __init__(self, clock: Clock = time.time):
        """Initialize the store.

        Args:
            clock: Returns epoch seconds; expiry times are stored as absolutes
        """
        self._clock = clock

    def _run(self, operation: str, key: str, func, *args):
        try:
            return func(*args)
        except Exception as e:
            logger.error("kv_store_operation_failed", operation=operation, key=key, error=str(e))
            raise SessionStoreError(f"kv {operation} failed for '{key}': {e}") from e

    async def get(self, key: str) -> Optional[str]:
        return self._run("get", key, db.kv_get, key, self._clock())

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            raise SessionStoreError(f"ttl_seconds must be positive, got {ttl_seconds}")
        self._run("set", key, db.kv_set, key, value, self._clock() + ttl_seconds)

    async def delete(self, key: str) -> bool:
        return self._run("delete", key, db.kv_delete, key, self._clock())

    async def purge_expired(self) -> int:
        """Drop expired rows to reclaim space; reads never depend on it."""
        removed = self._run("purge", "*", db.kv_purge_expired, self._clock())
        if removed:
            logger.info("kv_store_purged", removed=removed)
        return removed
