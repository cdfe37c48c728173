"""Tests for UserMemoryStore against both backends."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

from usercontext.core.exceptions import InvalidIdentity, MalformedPatch, StorageUnavailable
from usercontext.database.connection import DatabaseConnection
from usercontext.memory import SQLBackend, UserMemoryStore
from usercontext.models.memory import MemoryRecord

from conftest import FakeClock, FlakyBackend, RacingBackend, make_sql_backend


class TestGet:
    def test_creates_default_record(self, store: UserMemoryStore, clock: FakeClock):
        record = store.get("new-user")
        assert record.profile.risk_factors == []
        assert record.profile.conditions == []
        assert record.profile.interests == []
        assert record.conversation.recent_questions == []
        assert record.conversation.key_insights == []
        assert record.meta.created_at == record.meta.last_active == clock.now

    def test_creation_is_persisted(self, store: UserMemoryStore):
        store.get("new-user")
        assert store.backend.count() == 1

    def test_read_does_not_touch_last_active(self, store: UserMemoryStore, clock: FakeClock):
        first = store.get("u1")
        clock.advance()
        second = store.get("u1")
        assert second == first

    def test_returned_record_is_a_copy(self, store: UserMemoryStore):
        store.patch("u1", {"profile": {"riskFactors": ["A"]}})
        record = store.get("u1")
        record.profile.risk_factors.append("mutated")
        record.meta.created_at = 0
        fresh = store.get("u1")
        assert fresh.profile.risk_factors == ["A"]
        assert fresh.meta.created_at != 0

    def test_json_shape(self, store: UserMemoryStore):
        document = store.get("u1").to_document()
        assert set(document) == {"profile", "conversation", "meta"}
        assert set(document["profile"]) == {"riskFactors", "conditions", "interests"}
        assert set(document["conversation"]) == {"recentQuestions", "keyInsights"}
        assert set(document["meta"]) == {"createdAt", "lastActive"}


class TestPatch:
    def test_merge_preserves_siblings(self, store: UserMemoryStore):
        store.patch("u1", {"profile": {"riskFactors": ["A"], "conditions": ["B"]}})
        record = store.patch("u1", {"profile": {"conditions": ["C"]}})
        assert record.profile.risk_factors == ["A"]
        assert record.profile.conditions == ["C"]

    def test_array_replace_not_append(self, store: UserMemoryStore):
        store.patch("u1", {"conversation": {"recentQuestions": ["Q1"]}})
        record = store.patch("u1", {"conversation": {"recentQuestions": ["Q2"]}})
        assert record.conversation.recent_questions == ["Q2"]

    def test_creates_record_when_absent(self, store: UserMemoryStore, clock: FakeClock):
        record = store.patch("fresh", {"profile": {"interests": ["sleep"]}})
        assert record.profile.interests == ["sleep"]
        assert record.meta.created_at == clock.now

    def test_last_active_monotonic_and_created_at_stable(self, store: UserMemoryStore, clock: FakeClock):
        created_at = store.get("u1").meta.created_at
        previous = 0
        for i in range(5):
            clock.advance(10)
            record = store.patch("u1", {"profile": {"interests": [str(i)]}})
            assert record.meta.last_active >= previous
            assert record.meta.created_at == created_at
            previous = record.meta.last_active
        assert previous == clock.now

    def test_last_active_never_goes_backwards(self, store: UserMemoryStore, clock: FakeClock):
        clock.advance(5000)
        ahead = store.patch("u1", {}).meta.last_active
        clock.now -= 10_000
        assert store.patch("u1", {}).meta.last_active == ahead

    def test_empty_patch_only_changes_last_active(self, store: UserMemoryStore, clock: FakeClock):
        before = store.patch("u1", {"profile": {"riskFactors": ["A"]}, "conversation": {"keyInsights": ["I"]}})
        clock.advance()
        after = store.patch("u1", {})
        assert after.meta.last_active == clock.now
        assert after.profile == before.profile
        assert after.conversation == before.conversation
        assert after.meta.created_at == before.meta.created_at

    def test_round_trip(self, store: UserMemoryStore):
        patched = store.patch("u1", {"profile": {"conditions": ["asthma"]}, "conversation": {"keyInsights": ["x"]}})
        assert store.get("u1") == patched

    def test_null_clears_field(self, store: UserMemoryStore):
        store.patch("u1", {"profile": {"riskFactors": ["A"], "conditions": ["B"]}})
        record = store.patch("u1", {"profile": {"conditions": None}})
        assert record.profile.conditions == []
        assert record.profile.risk_factors == ["A"]

    def test_created_at_cannot_be_patched(self, store: UserMemoryStore, clock: FakeClock):
        created_at = store.get("u1").meta.created_at
        record = store.patch("u1", {"meta": {"createdAt": 1}})
        assert record.meta.created_at == created_at

    def test_last_active_set_by_clock(self, store: UserMemoryStore, clock: FakeClock):
        clock.advance()
        record = store.patch("u1", {"meta": {"lastActive": 1}})
        assert record.meta.last_active == clock.now

    def test_null_meta_keeps_timestamps(self, store: UserMemoryStore, clock: FakeClock):
        created_at = store.get("u1").meta.created_at
        record = store.patch("u1", {"meta": None})
        assert record.meta.created_at == created_at
        assert record.meta.last_active == clock.now

    def test_isolation(self, store: UserMemoryStore):
        store.patch("u2", {"profile": {"conditions": ["diabetes"]}})
        u2_before = store.get("u2")
        store.patch("u1", {"profile": {"conditions": ["asthma"]}})
        assert store.get("u2") == u2_before
        assert store.get("u1").profile.conditions == ["asthma"]


class TestMalformedPatch:
    def test_rejects_whole_patch(self, store: UserMemoryStore):
        store.patch("u1", {"profile": {"riskFactors": ["A"]}})
        before = store.get("u1")
        with pytest.raises(MalformedPatch):
            store.patch("u1", {"profile": {"conditions": ["C"], "riskFactors": "oops"}})
        assert store.get("u1") == before

    def test_nothing_created_for_new_user(self, store: UserMemoryStore):
        with pytest.raises(MalformedPatch):
            store.patch("u1", {"profile": "oops"})
        assert store.backend.count() == 0

    def test_non_mapping_body(self, store: UserMemoryStore):
        with pytest.raises(MalformedPatch):
            store.patch("u1", ["profile"])

    def test_bad_patch_from_update_builder(self, store: UserMemoryStore):
        store.patch("u1", {"profile": {"riskFactors": ["A"]}})
        before = store.get("u1")
        with pytest.raises(MalformedPatch):
            store.update("u1", lambda current: {"profile": {"riskFactors": 5}})
        assert store.get("u1") == before


class TestInvalidIdentity:
    @pytest.mark.parametrize("user_id", ["", "   ", " padded", "padded ", "a\x00b", "x" * 129, None, 42])
    def test_rejected_before_io(self, store: UserMemoryStore, user_id):
        with pytest.raises(InvalidIdentity):
            store.get(user_id)
        with pytest.raises(InvalidIdentity):
            store.patch(user_id, {})
        assert store.backend.count() == 0

    def test_opaque_formats_accepted(self, store: UserMemoryStore):
        for user_id in ["user_1700000000000_k3j2h1g0f", "550e8400-e29b-41d4-a716-446655440000", "ünïcode"]:
            assert store.get(user_id).meta.created_at > 0

    def test_custom_max_length(self, backend, clock: FakeClock):
        short_store = UserMemoryStore(backend, clock=clock, max_user_id_length=4)
        short_store.get("abcd")
        with pytest.raises(InvalidIdentity):
            short_store.get("abcde")

    def test_max_length_capped_at_column_width(self, backend, clock: FakeClock):
        long_store = UserMemoryStore(backend, clock=clock, max_user_id_length=500)
        long_store.get("x" * 128)
        with pytest.raises(InvalidIdentity):
            long_store.get("x" * 129)


class TestStorageUnavailable:
    def test_failed_write_has_no_effect(self, clock: FakeClock):
        backend = FlakyBackend()
        store = UserMemoryStore(backend, clock=clock)
        before = store.patch("u1", {"profile": {"riskFactors": ["A"]}})

        backend.fail = True
        with pytest.raises(StorageUnavailable):
            store.patch("u1", {"profile": {"riskFactors": ["B"]}})

        backend.fail = False
        assert store.get("u1") == before

    def test_failed_creation_has_no_effect(self, clock: FakeClock):
        backend = FlakyBackend()
        store = UserMemoryStore(backend, clock=clock)
        backend.fail = True
        with pytest.raises(StorageUnavailable):
            store.get("u1")
        assert backend.count() == 0

    def test_unreachable_database(self, tmp_path: Path, clock: FakeClock):
        db = DatabaseConnection(f"sqlite:///{tmp_path / 'missing' / 'dir' / 'memory.db'}")
        store = UserMemoryStore(SQLBackend(db, create_tables=False), clock=clock)
        with pytest.raises(StorageUnavailable):
            store.get("u1")
        with pytest.raises(StorageUnavailable):
            store.patch("u1", {})
        assert store.check() is False

    def test_table_creation_failure(self, tmp_path: Path):
        db = DatabaseConnection(f"sqlite:///{tmp_path / 'missing' / 'memory.db'}")
        with pytest.raises(StorageUnavailable):
            SQLBackend(db)


class TestConcurrency:
    def test_no_lost_updates_between_two_patches(self, store: UserMemoryStore):
        barrier = threading.Barrier(2)

        def apply(patch):
            barrier.wait()
            return store.patch("shared", patch)

        with ThreadPoolExecutor(max_workers=2) as pool:
            futures = [
                pool.submit(apply, {"profile": {"riskFactors": ["X"]}}),
                pool.submit(apply, {"profile": {"conditions": ["Y"]}}),
            ]
            for future in futures:
                future.result()

        record = store.get("shared")
        assert record.profile.risk_factors == ["X"]
        assert record.profile.conditions == ["Y"]

    def test_concurrent_appends_all_survive(self, store: UserMemoryStore):
        def append(i: int):
            return store.update(
                "shared",
                lambda current: {
                    "conversation": {"recentQuestions": current.conversation.recent_questions + [f"Q{i}"]}
                },
            )

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(append, range(40)))

        questions = store.get("shared").conversation.recent_questions
        assert sorted(questions) == sorted(f"Q{i}" for i in range(40))

    def test_users_do_not_block_each_other(self, memory_store: UserMemoryStore):
        inside = threading.Event()
        release = threading.Event()

        def slow_update(current):
            inside.set()
            release.wait(timeout=5)
            return {}

        worker = threading.Thread(target=memory_store.update, args=("slow", slow_update))
        worker.start()
        try:
            assert inside.wait(timeout=5)
            # Holding the lock for "slow" must not delay another user
            done = threading.Event()
            threading.Thread(target=lambda: (memory_store.patch("fast", {}), done.set())).start()
            assert done.wait(timeout=2)
        finally:
            release.set()
            worker.join(timeout=5)

    def test_concurrent_first_access_creates_one_record(self, store: UserMemoryStore):
        barrier = threading.Barrier(6)

        def first_get(_):
            barrier.wait()
            return store.get("brand-new").meta.created_at

        with ThreadPoolExecutor(max_workers=6) as pool:
            created = set(pool.map(first_get, range(6)))

        assert len(created) == 1
        assert store.backend.count() == 1

    def test_retries_after_concurrent_creation(self, clock: FakeClock):
        store = UserMemoryStore(RacingBackend(created_at=123), clock=clock)
        record = store.patch("u1", {"profile": {"conditions": ["C"]}})
        assert record.meta.created_at == 123
        assert record.profile.conditions == ["C"]
        assert store.get("u1") == record

    def test_two_workers_on_one_sqlite_file(self, tmp_path: Path, clock: FakeClock):
        # Separate connections, as two server processes sharing the file would have
        path = tmp_path / "shared.db"
        first = UserMemoryStore(make_sql_backend(path), clock=clock)
        second = UserMemoryStore(make_sql_backend(path), clock=clock)
        first.get("shared")

        first_loaded = threading.Event()
        second_loaded = threading.Event()

        def add_risk(current):
            first_loaded.set()
            # Give the other worker a chance to read before this one writes
            second_loaded.wait(timeout=1)
            return {"profile": {"riskFactors": current.profile.risk_factors + ["X"]}}

        def add_condition(current):
            second_loaded.set()
            return {"profile": {"conditions": current.profile.conditions + ["Y"]}}

        try:
            with ThreadPoolExecutor(max_workers=1) as pool:
                future = pool.submit(first.update, "shared", add_risk)
                assert first_loaded.wait(timeout=5)
                second.update("shared", add_condition)
                future.result(timeout=30)

            record = second.get("shared")
            assert record.profile.risk_factors == ["X"]
            assert record.profile.conditions == ["Y"]
            assert first.get("shared") == record
        finally:
            first.backend.close()
            second.backend.close()


class TestDurability:
    def test_survives_new_store_instance(self, tmp_path: Path, clock: FakeClock):
        path = tmp_path / "durable.db"
        first = UserMemoryStore(make_sql_backend(path), clock=clock)
        patched = first.patch("u1", {"profile": {"riskFactors": ["smoking"]}})
        first.backend.close()

        second = UserMemoryStore(make_sql_backend(path), clock=clock)
        assert second.get("u1") == patched
        second.backend.close()


class TestAdmin:
    def test_delete(self, store: UserMemoryStore, clock: FakeClock):
        store.patch("u1", {"profile": {"riskFactors": ["A"]}})
        assert store.delete("u1") is True
        assert store.delete("u1") is False
        clock.advance()
        record = store.get("u1")
        assert record.profile.risk_factors == []
        assert record.meta.created_at == clock.now

    def test_stats(self, store: UserMemoryStore):
        store.get("u1")
        store.get("u2")
        stats = store.stats()
        assert stats["records"] == 2
        assert stats["locked_users"] == 0
        assert stats["storage"] == store.backend.name

    def test_returns_memory_record(self, store: UserMemoryStore):
        assert isinstance(store.get("u1"), MemoryRecord)
