"""Session memory: expiring key-value stores and conversation history."""
from newsbot.memory.kv_store import InMemoryKeyValueStore, KeyValueStore, SQLiteKeyValueStore
from newsbot.memory.manager import SessionLocks, SessionStore

__all__ = [
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "SQLiteKeyValueStore",
    "SessionLocks",
    "SessionStore",
]
