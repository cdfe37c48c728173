"""
Per-key locking.

KeyedLock hands out one re-entrant lock per key so that work on the same
user identity is serialized while different identities never wait on
each other. Entries are reference counted and removed once no thread
holds or waits on them, so the map only grows with concurrent users.
"""
import threading
from contextlib import contextmanager
from typing import Dict, Iterator


class _Entry:
    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = threading.RLock()
        self.users = 0


class KeyedLock:
    """
    A map of locks keyed by string.

    Example:
        >>> locks = KeyedLock()
        >>> with locks.hold("user-123"):
        ...     pass  # read-modify-write for user-123
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._entries: Dict[str, _Entry] = {}

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        """Hold the lock for key for the duration of the block."""
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = _Entry()
            entry.users += 1

        entry.lock.acquire()
        try:
            yield
        finally:
            entry.lock.release()
            with self._guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._entries[key]

    def __len__(self) -> int:
        """Number of keys currently held or waited on."""
        with self._guard:
            return len(self._entries)
