"""Conversation memory for the news chatbot.

Handles session history persistence with a sliding expiry, and optional
per-session serialization of read-modify-write cycles.
"""
import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List, Optional, Sequence

import structlog
from pydantic import TypeAdapter, ValidationError as PydanticValidationError

from newsbot import config
from newsbot.errors import SessionStoreError
from newsbot.memory.kv_store import KeyValueStore
from newsbot.models import Turn

logger = structlog.get_logger()

_HISTORY = TypeAdapter(List[Turn])


class SessionStore:
    """Maps session IDs to their full conversation history.

    Every write replaces the whole serialized history and resets its TTL;
    there are no partial updates.
    """

    def __init__(self, kv: KeyValueStore, ttl_seconds: int = None, key_prefix: str = "session:"):
        """Initialize the session store.

        Args:
            kv: Key-value store that enforces expiry
            ttl_seconds: Default session lifetime without writes (default from config)
            key_prefix: Prefix applied to session IDs to form keys
        """
        self.kv = kv
        self.ttl_seconds = ttl_seconds or config.SESSION_TTL
        self.key_prefix = key_prefix

    def _key(self, session_id: str) -> str:
        return f"{self.key_prefix}{session_id}"

    async def get(self, session_id: str) -> List[Turn]:
        """Get a session's history.

        Args:
            session_id: The session ID

        Returns:
            Turns in chronological order; empty if absent or expired

        Raises:
            SessionStoreError: If the store fails or holds undecodable data
        """
        raw = await self.kv.get(self._key(session_id))
        if raw is None:
            return []

        try:
            history = _HISTORY.validate_json(raw)
        except PydanticValidationError as e:
            logger.error("session_history_corrupt", session_id=session_id, error=str(e))
            raise SessionStoreError(f"History for session {session_id} is corrupt") from e

        logger.debug("session_history_loaded", session_id=session_id, turns=len(history))
        return history

    async def set(
        self,
        session_id: str,
        history: Sequence[Turn],
        ttl_seconds: Optional[int] = None,
    ) -> None:
        """Overwrite a session's history and restart its expiry countdown.

        Raises:
            SessionStoreError: If the store fails
        """
        ttl = ttl_seconds or self.ttl_seconds
        value = _HISTORY.dump_json(list(history)).decode("utf-8")
        await self.kv.set(self._key(session_id), value, ttl)
        logger.info("session_history_saved", session_id=session_id, turns=len(history), ttl=ttl)

    async def delete(self, session_id: str) -> bool:
        """Delete a session.

        Returns:
            True if a live session existed and was removed
        """
        deleted = await self.kv.delete(self._key(session_id))
        if deleted:
            logger.info("session_deleted", session_id=session_id)
        return deleted


class SessionLocks:
    """Per-session mutual exclusion for history read-modify-write.

    Disabled, ``hold`` does nothing and concurrent writers race: the last
    ``set`` wins and the other call's turns are lost.
    """

    def __init__(self, enabled: bool = None):
        if enabled is None:
            enabled = config.SESSION_LOCKING == "per_session"
        self.enabled = enabled
        self._locks: Dict[str, asyncio.Lock] = {}
        self._holders: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, session_id: str) -> AsyncIterator[None]:
        if not self.enabled:
            yield
            return

        lock = self._locks.setdefault(session_id, asyncio.Lock())
        self._holders[session_id] = self._holders.get(session_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[session_id] -= 1
            if self._holders[session_id] == 0:
                del self._holders[session_id]
                del self._locks[session_id]
