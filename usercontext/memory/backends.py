"""
Memory Backends - Where memory documents live.

A backend stores one JSON document per user identity and exposes a
per-identity transaction. Everything staged inside a transaction is
applied together when the block exits cleanly and discarded when it
raises, so a failed or abandoned patch never leaves a partial write.

Two implementations:
- InMemoryBackend : process-local, for development and tests
- SQLBackend      : SQLAlchemy table, durable across restarts
"""
import json
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Any, ContextManager, Dict, Iterator, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from usercontext.core.exceptions import StorageUnavailable
from usercontext.core.logging_config import get_logger
from usercontext.database.connection import DatabaseConnection
from usercontext.database.init_db import init_memory_tables
from usercontext.database.models import UserMemoryRow, MEMORY_KEY

logger = get_logger(__name__)


class RecordConflict(Exception):
    """
    Another writer created the same record first.

    Only raised when two processes race to create a user's first record;
    the store retries the whole operation against the winner's row.
    """
    pass


class MemoryTransaction:
    """Operations available inside a backend transaction for one identity."""

    def load(self) -> Optional[Dict[str, Any]]:
        """Return a private copy of the stored document, or None."""
        raise NotImplementedError

    def insert(self, document: Dict[str, Any]) -> None:
        """Stage creation of the document; it must not exist yet."""
        raise NotImplementedError

    def save(self, document: Dict[str, Any]) -> None:
        """Stage replacement of the document."""
        raise NotImplementedError


class MemoryBackend:
    """Interface shared by all backends."""

    name: str = "abstract"

    def transaction(self, user_id: str) -> ContextManager[MemoryTransaction]:
        """Context manager scoping one atomic unit of work for user_id."""
        raise NotImplementedError

    def delete(self, user_id: str) -> bool:
        raise NotImplementedError

    def check(self) -> bool:
        raise NotImplementedError

    def count(self) -> int:
        raise NotImplementedError

    def close(self) -> None:
        pass


# ============================================================
# In-memory backend
# ============================================================

class _InMemoryTransaction(MemoryTransaction):

    def __init__(self, backend: "InMemoryBackend", user_id: str):
        self._backend = backend
        self._user_id = user_id
        self._staged: Optional[str] = None
        self._creating = False

    def load(self) -> Optional[Dict[str, Any]]:
        if self._staged is not None:
            return json.loads(self._staged)
        return self._backend._read(self._user_id)

    def insert(self, document: Dict[str, Any]) -> None:
        self._creating = True
        self._staged = json.dumps(document)

    def save(self, document: Dict[str, Any]) -> None:
        self._staged = json.dumps(document)


class InMemoryBackend(MemoryBackend):
    """
    Process-local backend.

    Documents are kept as serialized JSON strings, so callers can never
    hold a reference into stored state. Lost on restart.
    """

    name = "memory"

    def __init__(self):
        self._documents: Dict[str, str] = {}
        self._lock = threading.RLock()
        logger.info("InMemoryBackend initialized")

    def _read(self, user_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            raw = self._documents.get(user_id)
        return json.loads(raw) if raw is not None else None

    @contextmanager
    def transaction(self, user_id: str) -> Iterator[MemoryTransaction]:
        txn = _InMemoryTransaction(self, user_id)
        yield txn

        # Only reached when the block exited cleanly
        if txn._staged is None:
            return
        with self._lock:
            if txn._creating and user_id in self._documents:
                raise RecordConflict(user_id)
            self._documents[user_id] = txn._staged

    def delete(self, user_id: str) -> bool:
        with self._lock:
            return self._documents.pop(user_id, None) is not None

    def check(self) -> bool:
        return True

    def count(self) -> int:
        with self._lock:
            return len(self._documents)


# ============================================================
# SQL backend
# ============================================================

class _SQLTransaction(MemoryTransaction):

    def __init__(self, session: Session, user_id: str, key: str):
        self._session = session
        self._user_id = user_id
        self._key = key
        self._row: Optional[UserMemoryRow] = None

    def load(self) -> Optional[Dict[str, Any]]:
        # Row lock on server databases; SQLite already holds the write lock
        self._row = (
            self._session.query(UserMemoryRow)
            .filter(UserMemoryRow.user_id == self._user_id, UserMemoryRow.key == self._key)
            .with_for_update()
            .first()
        )
        if self._row is None:
            return None
        return json.loads(json.dumps(self._row.document))

    def insert(self, document: Dict[str, Any]) -> None:
        now = datetime.utcnow()
        self._row = UserMemoryRow(
            user_id=self._user_id,
            key=self._key,
            document=document,
            created_at=now,
            updated_at=now,
        )
        self._session.add(self._row)
        self._session.flush()

    def save(self, document: Dict[str, Any]) -> None:
        if self._row is None:
            self.insert(document)
            return
        # Assign a new object so the JSON column is marked dirty
        self._row.document = json.loads(json.dumps(document))
        self._row.updated_at = datetime.utcnow()


class SQLBackend(MemoryBackend):
    """
    Durable backend on a SQLAlchemy database.

    One row per identity in the user_memory table under the key "memory".
    Each transaction is a single database transaction, committed before
    the store returns.

    Example:
        >>> backend = SQLBackend(DatabaseConnection("sqlite:///./usercontext.db"))
        >>> with backend.transaction("user-123") as txn:
        ...     document = txn.load()
    """

    name = "persistent"

    def __init__(self, db: DatabaseConnection, key: str = MEMORY_KEY, create_tables: bool = True):
        self.db = db
        self.key = key
        if create_tables:
            try:
                init_memory_tables(db.engine)
            except SQLAlchemyError as e:
                raise StorageUnavailable(
                    "Could not initialize memory tables",
                    details=str(e)
                ) from e
        logger.info(f"SQLBackend initialized: key={key}")

    @contextmanager
    def transaction(self, user_id: str) -> Iterator[MemoryTransaction]:
        try:
            with self.db.get_session() as session:
                yield _SQLTransaction(session, user_id, self.key)
        except IntegrityError as e:
            logger.warning(f"[PERSISTENT] Concurrent creation for user {user_id[:8]}: {e.orig}")
            raise RecordConflict(user_id) from e
        except SQLAlchemyError as e:
            logger.error(f"[PERSISTENT] Storage failure for user {user_id[:8]}: {e}")
            raise StorageUnavailable(
                "Memory storage unavailable",
                details=type(e).__name__
            ) from e

    def delete(self, user_id: str) -> bool:
        try:
            with self.db.get_session() as session:
                deleted = session.query(UserMemoryRow).filter(
                    UserMemoryRow.user_id == user_id,
                    UserMemoryRow.key == self.key
                ).delete()
            return deleted > 0
        except SQLAlchemyError as e:
            raise StorageUnavailable("Memory storage unavailable", details=type(e).__name__) from e

    def check(self) -> bool:
        return self.db.check_connection()

    def count(self) -> int:
        try:
            with self.db.get_session() as session:
                return session.query(UserMemoryRow).filter(UserMemoryRow.key == self.key).count()
        except SQLAlchemyError as e:
            raise StorageUnavailable("Memory storage unavailable", details=type(e).__name__) from e

    def close(self) -> None:
        self.db.close()
