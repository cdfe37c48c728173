"""
User Memory Store - one memory record per user identity.

The store owns every record. Callers read with get() and change state
only through patch() (or update(), which computes the patch from the
current record under the same lock). Both return MemoryRecord snapshots;
nothing handed out aliases stored state.

Consistency:
- Work on one identity is serialized by a per-identity lock, and each
  read-merge-write runs inside a single backend transaction, so two
  concurrent patches can never both start from the same base state.
- Different identities use different locks and never wait on each other.
- A write is committed before patch() returns; on failure nothing is
  written and the error propagates to the caller.
"""
from typing import Any, Callable, Dict, Mapping, Optional

from usercontext.core.exceptions import InvalidIdentity, StorageUnavailable
from usercontext.core.logging_config import get_logger
from usercontext.core.validators import validate_user_id, DEFAULT_MAX_USER_ID_LENGTH
from usercontext.memory.backends import MemoryBackend, RecordConflict
from usercontext.memory.locks import KeyedLock
from usercontext.memory.merge import deep_merge, validate_patch
from usercontext.memory.schema import new_memory_record, now_ms
from usercontext.models.memory import MemoryRecord

logger = get_logger(__name__)

# Attempts when another process creates the same record concurrently
_CONFLICT_RETRIES = 3

PatchBuilder = Callable[[MemoryRecord], Mapping[str, Any]]


class UserMemoryStore:
    """
    Per-user memory with deep-merge patches.

    Example:
        >>> store = UserMemoryStore(InMemoryBackend())
        >>> store.get("user-123").profile.risk_factors
        []
        >>> record = store.patch("user-123", {"profile": {"conditions": ["asthma"]}})
        >>> record.profile.conditions
        ['asthma']
    """

    def __init__(
        self,
        backend: MemoryBackend,
        clock: Callable[[], int] = now_ms,
        max_user_id_length: int = DEFAULT_MAX_USER_ID_LENGTH
    ):
        """
        Initialize the store.

        Args:
            backend: Where documents are persisted
            clock: Returns current time in epoch milliseconds
            max_user_id_length: Longest accepted identity, capped at the column width
        """
        self.backend = backend
        self._clock = clock
        # Identities longer than the user_id column could never be stored
        self._max_user_id_length = min(max_user_id_length, DEFAULT_MAX_USER_ID_LENGTH)
        self._locks = KeyedLock()

        logger.info(f"UserMemoryStore initialized: backend={backend.name}")

    def get(self, user_id: str) -> MemoryRecord:
        """
        Return the user's record, creating a default one on first access.

        Reading never changes lastActive.

        Raises:
            InvalidIdentity: If user_id is empty or malformed
            StorageUnavailable: If the backend cannot be reached
        """
        self._check_identity(user_id)
        return self._run(user_id, None)

    def patch(self, user_id: str, partial: Mapping[str, Any]) -> MemoryRecord:
        """
        Deep-merge a partial record into the user's record and persist it.

        Nested objects merge key by key, arrays and scalars are replaced,
        omitted keys are untouched and explicit None resets a field to
        its default. meta.createdAt is never changed; meta.lastActive is
        set from the clock on every successful patch, including {}.

        Returns:
            The merged record, exactly as persisted

        Raises:
            InvalidIdentity: If user_id is empty or malformed
            MalformedPatch: If partial does not fit the record schema
            StorageUnavailable: If the write fails (nothing is written)
        """
        self._check_identity(user_id)
        validate_patch(partial)
        return self._run(user_id, lambda current: partial)

    def update(self, user_id: str, build_patch: PatchBuilder) -> MemoryRecord:
        """
        Compute a patch from the current record and apply it atomically.

        build_patch receives a snapshot of the current record while the
        user's lock is held, so read-then-append sequences such as adding
        a question to recentQuestions cannot lose concurrent updates.

        Raises:
            Same as patch()
        """
        self._check_identity(user_id)
        return self._run(user_id, build_patch)

    def delete(self, user_id: str) -> bool:
        """
        Remove a user's record (administrative use only).

        Returns:
            True if a record was removed
        """
        self._check_identity(user_id)
        with self._locks.hold(user_id):
            deleted = self.backend.delete(user_id)
        if deleted:
            logger.info(f"Deleted memory for user {user_id[:8]}")
        return deleted

    def check(self) -> bool:
        """True if the backend is reachable."""
        return self.backend.check()

    def stats(self) -> Dict[str, Any]:
        """Store statistics for health and admin endpoints."""
        return {
            "storage": self.backend.name,
            "records": self.backend.count(),
            "locked_users": len(self._locks),
        }

    # ==================== INTERNALS ====================

    def _check_identity(self, user_id: str) -> None:
        is_valid, error = validate_user_id(user_id, self._max_user_id_length)
        if not is_valid:
            raise InvalidIdentity(error, user_id=user_id if isinstance(user_id, str) else None)

    def _run(self, user_id: str, build_patch: Optional[PatchBuilder]) -> MemoryRecord:
        with self._locks.hold(user_id):
            for attempt in range(1, _CONFLICT_RETRIES + 1):
                try:
                    return self._apply(user_id, build_patch)
                except RecordConflict:
                    logger.warning(
                        f"Record for user {user_id[:8]} created concurrently, "
                        f"retrying ({attempt}/{_CONFLICT_RETRIES})"
                    )
            raise StorageUnavailable(
                "Memory record kept changing during creation",
                details=f"retries={_CONFLICT_RETRIES}"
            )

    def _apply(self, user_id: str, build_patch: Optional[PatchBuilder]) -> MemoryRecord:
        with self.backend.transaction(user_id) as txn:
            current = txn.load()
            if current is None:
                current = new_memory_record(self._clock())
                txn.insert(current)
                logger.info(f"Created memory for user {user_id[:8]}")

            if build_patch is None:
                return MemoryRecord.model_validate(current)

            partial = build_patch(MemoryRecord.model_validate(current))
            merged = deep_merge(current, partial)

            # createdAt is fixed at creation; lastActive never goes backwards
            merged["meta"]["createdAt"] = current["meta"]["createdAt"]
            merged["meta"]["lastActive"] = max(self._clock(), current["meta"]["lastActive"])

            txn.save(merged)
            logger.debug(
                f"Patched memory for user {user_id[:8]}: keys={sorted(partial)}"
            )

        # Transaction committed: the record below is what was persisted
        return MemoryRecord.model_validate(merged)
