"""Shared fixtures: backends, a controllable clock, and stores."""

from __future__ import annotations

import json
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path

# Settings are read once per process; keep test runs off the real database
# and out of the project log directory.
os.environ.setdefault("MEMORY_PERSISTENT", "false")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="usercontext-logs-"))
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest

from usercontext.core.exceptions import StorageUnavailable
from usercontext.database.connection import DatabaseConnection
from usercontext.memory import InMemoryBackend, SQLBackend, UserMemoryStore, new_memory_record


class FakeClock:
    """Epoch-millisecond clock that only moves when told to."""

    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int = 1000) -> int:
        self.now += ms
        return self.now


class FlakyBackend(InMemoryBackend):
    """In-memory backend whose commits can be made to fail."""

    def __init__(self) -> None:
        super().__init__()
        self.fail = False

    @contextmanager
    def transaction(self, user_id: str):
        with super().transaction(user_id) as txn:
            yield txn
            if self.fail:
                raise StorageUnavailable("Simulated write failure")


class RacingBackend(InMemoryBackend):
    """Simulates another process creating the record during the first transaction."""

    def __init__(self, created_at: int = 1) -> None:
        super().__init__()
        self.created_at = created_at
        self.raced = False

    @contextmanager
    def transaction(self, user_id: str):
        with super().transaction(user_id) as txn:
            yield txn
            if not self.raced:
                self.raced = True
                self._documents[user_id] = json.dumps(new_memory_record(self.created_at))


def make_sql_backend(path: Path) -> SQLBackend:
    return SQLBackend(DatabaseConnection(f"sqlite:///{path}"))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(params=["memory", "sql"])
def backend(request, tmp_path: Path):
    if request.param == "memory":
        yield InMemoryBackend()
    else:
        sql_backend = make_sql_backend(tmp_path / "memory.db")
        yield sql_backend
        sql_backend.close()


@pytest.fixture
def store(backend, clock: FakeClock) -> UserMemoryStore:
    return UserMemoryStore(backend, clock=clock)


@pytest.fixture
def memory_store(clock: FakeClock) -> UserMemoryStore:
    """In-memory store, for tests that do not care about the backend."""
    return UserMemoryStore(InMemoryBackend(), clock=clock)
