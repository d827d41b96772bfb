"""Tests for the ordered collection store and the persistence queue.

Covers:
- Load ordering (order column, created_at tiebreak, nulls last)
- Load failure keeps the cached sequence
- Array-move semantics, dense renumbering, only changed rows persisted
- Insert/remove are remote-first; remove leaves gaps
- Persistence failure and timeout revert to the pre-move sequence
- Rows written before a failure are put back, or re-read when they cannot be
- Commands queued behind a failure are skipped
"""

import pytest

from folio.services.drag import DropTarget
from folio.services.ordering import OrderedCollection, array_move, renumber, sort_records
from folio.services.persistence import (
    InlineExecutor,
    LoadError,
    PartialWriteError,
    PersistCommand,
    PersistenceError,
    PersistenceQueue,
    PersistenceTimeout,
)
from folio.services.remote_store import RemoteStoreError

from fakes import FakeRemoteStore


# ─── Helpers ───────────────────────────────────────────────

def _store(*titles, table="projects"):
    return FakeRemoteStore({
        table: [
            {"id": t, "title": t, "display_order": i}
            for i, t in enumerate(titles)
        ]
    })


def _collection(store, queue, table="projects", **kwargs):
    collection = OrderedCollection(store, table, queue=queue, **kwargs)
    collection.load()
    return collection


def _orders(collection):
    return [(r["id"], r["display_order"]) for r in collection.items]


# ─── Pure helpers ──────────────────────────────────────────

class TestHelpers:

    def test_array_move_forward(self):
        assert array_move(["A", "B", "C"], 0, 2) == ["B", "C", "A"]

    def test_array_move_backward(self):
        assert array_move(["A", "B", "C", "D"], 3, 1) == ["A", "D", "B", "C"]

    def test_array_move_does_not_mutate_input(self):
        items = ["A", "B"]
        array_move(items, 0, 1)
        assert items == ["A", "B"]

    def test_sort_records_nulls_last_and_tiebreak(self):
        records = [
            {"id": "x", "display_order": None, "created_at": "1"},
            {"id": "b", "display_order": 0, "created_at": "2"},
            {"id": "a", "display_order": 0, "created_at": "1"},
        ]
        assert [r["id"] for r in sort_records(records, "display_order")] == ["a", "b", "x"]

    def test_renumber_reports_only_changes(self):
        records = [{"id": "a", "o": 0}, {"id": "b", "o": 5}, {"id": "c", "o": 2}]
        changes = renumber(records, "o")
        assert changes == [("b", {"o": 1})]
        assert [r["o"] for r in records] == [0, 1, 2]


# ─── Loading ───────────────────────────────────────────────

class TestLoad:

    def test_load_sorts_by_order(self, inline_queue):
        store = FakeRemoteStore({"projects": [
            {"id": "c", "display_order": 2},
            {"id": "a", "display_order": 0},
            {"id": "b", "display_order": 1},
        ]})
        collection = _collection(store, inline_queue)
        assert collection.ids() == ["a", "b", "c"]

    def test_load_applies_filters(self, inline_queue):
        store = FakeRemoteStore({"experiences": [
            {"id": "e1", "resume_id": "r1", "display_order": 0},
            {"id": "e2", "resume_id": "r2", "display_order": 0},
        ]})
        collection = _collection(
            store, inline_queue, table="experiences", filters={"resume_id": "r1"}
        )
        assert collection.ids() == ["e1"]

    def test_load_failure_keeps_cached_sequence(self, inline_queue):
        store = _store("A", "B")
        collection = _collection(store, inline_queue)
        store.fail("select")
        with pytest.raises(LoadError):
            collection.load()
        assert collection.ids() == ["A", "B"]


# ─── Moves ─────────────────────────────────────────────────

class TestMove:

    def test_move_first_to_end(self, inline_queue):
        """[A,B,C] move A to the end gives [B,C,A] with increasing orders."""
        store = _store("A", "B", "C")
        collection = _collection(store, inline_queue)

        assert collection.move_item("A", 2) is True
        assert collection.flush() is True

        assert _orders(collection) == [("B", 0), ("C", 1), ("A", 2)]
        remote = sorted(store.rows("projects"), key=lambda r: r["display_order"])
        assert [r["id"] for r in remote] == ["B", "C", "A"]

    def test_only_changed_rows_are_persisted(self, inline_queue):
        store = _store("A", "B", "C", "D")
        collection = _collection(store, inline_queue)

        collection.move_item("B", 2)
        collection.flush()

        updated = {call[2][0] for call in store.calls_for("update")}
        assert collection.ids() == ["A", "C", "B", "D"]
        assert updated == {"B", "C"}

    def test_move_is_a_permutation(self, inline_queue):
        store = _store("A", "B", "C", "D", "E")
        collection = _collection(store, inline_queue)
        collection.move_item("D", 1)
        assert sorted(collection.ids()) == ["A", "B", "C", "D", "E"]
        assert collection.ids() == ["A", "D", "B", "C", "E"]

    def test_unchanged_position_is_noop(self, inline_queue):
        store = _store("A", "B")
        collection = _collection(store, inline_queue)
        assert collection.move_item("B", 1) is False
        assert store.calls_for("update") == []

    def test_unknown_item_is_noop(self, inline_queue):
        collection = _collection(_store("A"), inline_queue)
        assert collection.move_item("missing", 0) is False

    def test_position_is_clamped(self, inline_queue):
        collection = _collection(_store("A", "B", "C"), inline_queue)
        collection.move_item("A", 99)
        assert collection.ids() == ["B", "C", "A"]
        collection.move_item("A", -5)
        assert collection.ids() == ["A", "B", "C"]

    def test_apply_drop_on_sibling(self, inline_queue):
        collection = _collection(_store("A", "B", "C"), inline_queue)
        assert collection.apply_drop("C", DropTarget.item("A")) is True
        assert collection.ids() == ["C", "A", "B"]

    def test_apply_drop_outside_does_nothing(self, inline_queue):
        store = _store("A", "B")
        collection = _collection(store, inline_queue)
        assert collection.apply_drop("A", None) is False
        assert collection.ids() == ["A", "B"]
        assert store.calls_for("update") == []


# ─── Insert / remove ───────────────────────────────────────

class TestInsertRemove:

    def test_insert_appends_with_next_order(self, inline_queue):
        store = FakeRemoteStore({"projects": [
            {"id": "A", "display_order": 0},
            {"id": "B", "display_order": 4},
        ]})
        collection = _collection(store, inline_queue)
        created = collection.insert({"title": "C"})
        assert created["display_order"] == 5
        assert collection.ids()[-1] == created["id"]

    def test_insert_into_empty_collection_starts_at_zero(self, inline_queue):
        collection = _collection(FakeRemoteStore(), inline_queue)
        assert collection.insert({"title": "first"})["display_order"] == 0

    def test_insert_applies_filter_columns(self, inline_queue):
        store = FakeRemoteStore()
        collection = _collection(
            store, inline_queue, table="experiences", filters={"resume_id": "r1"}
        )
        created = collection.insert({"title": "Job"})
        assert created["resume_id"] == "r1"

    def test_failed_insert_leaves_sequence_unchanged(self, inline_queue):
        store = _store("A")
        collection = _collection(store, inline_queue)
        store.fail("insert")
        with pytest.raises(RemoteStoreError):
            collection.insert({"title": "B"})
        assert collection.ids() == ["A"]

    def test_remove_leaves_gaps(self, inline_queue):
        store = _store("A", "B", "C")
        collection = _collection(store, inline_queue)
        assert collection.remove("B") is True
        assert _orders(collection) == [("A", 0), ("C", 2)]
        assert store.calls_for("update") == []

    def test_failed_remove_keeps_item(self, inline_queue):
        store = _store("A", "B")
        collection = _collection(store, inline_queue)
        store.fail("delete")
        with pytest.raises(RemoteStoreError):
            collection.remove("A")
        assert collection.ids() == ["A", "B"]


# ─── Failure handling ──────────────────────────────────────

class TestRevert:

    def test_failed_write_reverts_to_previous_order(self, inline_queue):
        store = _store("A", "B", "C")
        collection = _collection(store, inline_queue)
        store.fail("update")

        collection.move_item("A", 2)
        assert collection.flush() is False

        assert _orders(collection) == [("A", 0), ("B", 1), ("C", 2)]
        assert isinstance(collection.last_error, RemoteStoreError)

    def test_rows_written_before_a_failure_are_put_back(self, inline_queue):
        """[A,B,C] move A to end: B lands, C fails, B must be restored remotely."""
        store = _store("A", "B", "C")
        collection = _collection(store, inline_queue)
        store.fail("update", after=1)

        collection.move_item("A", 2)
        assert collection.flush() is False

        assert _orders(collection) == [("A", 0), ("B", 1), ("C", 2)]
        assert _orders(_collection(store, inline_queue)) == _orders(collection)
        assert store.calls_for("update")[-1][2] == ("B", {"display_order": 1})

    def test_unrestorable_partial_write_reloads_remote_state(self, inline_queue):
        store = _store("A", "B", "C")
        collection = _collection(store, inline_queue)
        # C fails, then putting B back fails too.
        store.fail("update", after=1, times=2)

        collection.move_item("A", 2)
        assert collection.flush() is False

        assert isinstance(collection.last_error, PartialWriteError)
        assert _orders(collection) == _orders(_collection(store, inline_queue))
        assert _orders(collection) == [("A", 0), ("B", 0), ("C", 2)]

    def test_failed_field_update_reverts(self, inline_queue):
        store = _store("A")
        collection = _collection(store, inline_queue)
        store.fail("update")
        collection.update("A", {"is_featured": True})
        collection.flush()
        assert "is_featured" not in collection.get("A")

    def test_commands_behind_a_failure_are_skipped(self, inline_queue):
        store = _store("A", "B", "C")
        collection = _collection(store, inline_queue)
        store.fail("update", times=1)

        collection.move_item("A", 2)
        collection.move_item("B", 2)
        failures = inline_queue.wait()

        assert len(failures) == 2
        assert "skipped" in str(failures[1][1])
        assert collection.ids() == ["A", "B", "C"]
        # The second move was never sent.
        assert len(store.calls_for("update")) == 1

    def test_timeout_counts_as_failure(self):
        store = _store("A", "B", "C")
        store.delay("update", 0.5)
        with PersistenceQueue(timeout=0.05) as queue:
            collection = _collection(store, queue)
            collection.move_item("C", 0)
            assert collection.ids() == ["C", "A", "B"]

            failures = queue.wait()

        assert isinstance(failures[0][1], PersistenceTimeout)
        assert collection.ids() == ["A", "B", "C"]


# ─── Queue ─────────────────────────────────────────────────

class TestPersistenceQueue:

    def test_commands_run_in_submission_order(self):
        ran = []
        with PersistenceQueue() as queue:
            for n in range(5):
                queue.submit(PersistCommand(f"c{n}", lambda n=n: ran.append(n)))
            assert queue.wait() == []
        assert ran == [0, 1, 2, 3, 4]

    def test_compensation_receives_error(self):
        seen = []
        queue = PersistenceQueue(executor=InlineExecutor())

        def boom():
            raise RemoteStoreError("down")

        queue.submit(PersistCommand("boom", boom, seen.append))
        failures = queue.wait()
        assert len(failures) == 1
        assert isinstance(seen[0], RemoteStoreError)
        assert queue.pending_count == 0

    def test_poll_leaves_unfinished_commands(self):
        import threading

        gate = threading.Event()
        with PersistenceQueue() as queue:
            queue.submit(PersistCommand("slow", gate.wait))
            assert queue.poll() == []
            assert queue.pending_count == 1
            gate.set()
            assert queue.wait() == []

    def test_from_config_inline(self):
        queue = PersistenceQueue.from_config({"PERSIST_INLINE": True, "REMOTE_STORE_TIMEOUT": 2})
        assert queue.timeout == 2
        done = []
        queue.submit(PersistCommand("now", lambda: done.append(1)))
        assert done == [1]

    def test_skipped_error_type(self):
        queue = PersistenceQueue(executor=InlineExecutor())

        def boom():
            raise RemoteStoreError("down")

        queue.submit(PersistCommand("first", boom))
        queue.submit(PersistCommand("second", lambda: None))
        failures = queue.wait()
        assert type(failures[1][1]) is PersistenceError
