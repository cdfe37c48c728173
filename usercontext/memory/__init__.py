"""
Memory Package - Per-user memory records.

Each user identity owns one record:

    profile       riskFactors, conditions, interests
    conversation  recentQuestions, keyInsights
    meta          createdAt, lastActive (epoch milliseconds)

Two storage modes, selected by MEMORY_PERSISTENT:

## Persistent (SQL-backed, default)
- Survives restarts
- One row per user in the user_memory table

## In-memory
- Lost on server restart
- Good for development/testing

Use `get_memory_store()` to get the store configured for this process.

Example:
    >>> from usercontext.memory import get_memory_store
    >>> store = get_memory_store()
    >>> store.patch("user-123", {"profile": {"riskFactors": ["smoking"]}})
"""
from typing import Optional

from usercontext.core.config import get_settings
from usercontext.core.logging_config import get_logger
from usercontext.memory.backends import (
    MemoryBackend,
    MemoryTransaction,
    InMemoryBackend,
    SQLBackend,
    RecordConflict,
)
from usercontext.memory.locks import KeyedLock
from usercontext.memory.merge import deep_merge, validate_patch
from usercontext.memory.schema import MEMORY_SCHEMA, new_memory_record, now_ms
from usercontext.memory.store import UserMemoryStore

logger = get_logger(__name__)

_store: Optional[UserMemoryStore] = None


def build_backend() -> MemoryBackend:
    """
    Create the backend chosen by configuration.

    Returns:
        - SQLBackend on the shared database if MEMORY_PERSISTENT=true
        - InMemoryBackend otherwise
    """
    settings = get_settings()

    if settings.memory_persistent:
        from usercontext.database.connection import get_database
        return SQLBackend(get_database())

    logger.warning("MEMORY_PERSISTENT=false: memory will be lost on restart")
    return InMemoryBackend()


def get_memory_store() -> UserMemoryStore:
    """Get or create the memory store singleton."""
    global _store
    if _store is None:
        settings = get_settings()
        _store = UserMemoryStore(
            build_backend(),
            max_user_id_length=settings.max_user_id_length
        )
    return _store


def reset_memory_store() -> None:
    """Close and forget the memory store singleton (for testing and shutdown)."""
    global _store
    if _store is not None:
        _store.backend.close()
    _store = None


__all__ = [
    # Core classes
    "UserMemoryStore",
    "MemoryBackend",
    "MemoryTransaction",
    "InMemoryBackend",
    "SQLBackend",
    "RecordConflict",
    "KeyedLock",
    # Merge semantics
    "MEMORY_SCHEMA",
    "deep_merge",
    "validate_patch",
    "new_memory_record",
    "now_ms",
    # Factory functions
    "build_backend",
    "get_memory_store",
    "reset_memory_store",
]
