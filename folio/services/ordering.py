"""Ordered collection store.

Keeps a locally cached, ordered sequence of records of one kind (resumes,
projects, experiences, resume-project links, kanban stages) mirrored
against a remote table with an integer order column.

- load(): fetch sorted by order column, ties broken by created_at then id.
- move_item(): optimistic, synchronous local move; order values are
  renumbered densely and only the changed ones are persisted through the
  PersistenceQueue. A failed write reverts to the pre-move sequence.
- insert()/remove(): remote first, local only after the call succeeds.
  remove() leaves gaps in sibling order values.
"""

import logging

from folio.services.drag import resolve_drop
from folio.services.persistence import (
    LoadError,
    PartialWriteError,
    PersistCommand,
    PersistenceQueue,
    write_rows,
)
from folio.services.remote_store import RemoteStoreError

logger = logging.getLogger(__name__)


def array_move(items, old_index, new_index):
    """Return a new list with items[old_index] relocated to new_index."""
    result = list(items)
    result.insert(new_index, result.pop(old_index))
    return result


def clamp(value, low, high):
    return max(low, min(value, high))


def sort_records(records, order_key, tiebreak="created_at"):
    """Sort by order column; missing order values sort last."""

    def key(record):
        order = record.get(order_key)
        return (
            order is None,
            order if order is not None else 0,
            record.get(tiebreak) or "",
            str(record.get("id")),
        )

    return sorted(records, key=key)


def renumber(records, order_key):
    """Assign dense order values 0..n-1 in place.

    Returns [(record_id, {order_key: value})] for records whose value changed.
    """
    changes = []
    for index, record in enumerate(records):
        if record.get(order_key) != index:
            record[order_key] = index
            changes.append((record["id"], {order_key: index}))
    return changes


class OrderedCollection:
    def __init__(
        self,
        remote,
        table,
        order_key="display_order",
        filters=None,
        queue=None,
        tiebreak="created_at",
    ):
        self.remote = remote
        self.table = table
        self.order_key = order_key
        self.filters = dict(filters or {})
        self.queue = queue or PersistenceQueue()
        self.tiebreak = tiebreak
        self.last_error = None
        self._items = []

    # ─── Reads ──────────────────────────────────────────────────

    @property
    def items(self):
        return [dict(record) for record in self._items]

    def ids(self):
        return [record["id"] for record in self._items]

    def index_of(self, item_id):
        for index, record in enumerate(self._items):
            if record["id"] == item_id:
                return index
        return None

    def get(self, item_id):
        index = self.index_of(item_id)
        return dict(self._items[index]) if index is not None else None

    def next_order(self):
        values = [r[self.order_key] for r in self._items if r.get(self.order_key) is not None]
        return max(values) + 1 if values else 0

    def __len__(self):
        return len(self._items)

    # ─── Remote sync ────────────────────────────────────────────

    def load(self):
        """Fetch the collection. On failure the cached sequence is kept."""
        try:
            records = self.remote.select(
                self.table,
                filters=self.filters,
                order=[self.order_key, self.tiebreak, "id"],
            )
        except RemoteStoreError as e:
            logger.warning(f"Load of {self.table} failed, keeping cached sequence: {e}")
            raise LoadError(f"Could not load {self.table}.") from e

        self._items = sort_records(records, self.order_key, self.tiebreak)
        return self.items

    def insert(self, record):
        """Create a record at the end of the sequence."""
        record = dict(record)
        for column, value in self.filters.items():
            record.setdefault(column, value)
        record[self.order_key] = self.next_order()
        created = self.remote.insert(self.table, record)
        self._items.append(created)
        logger.info(f"Inserted {self.table}/{created.get('id')} at {record[self.order_key]}")
        return dict(created)

    def remove(self, item_id):
        index = self.index_of(item_id)
        if index is None:
            return False
        self.remote.delete(self.table, item_id)
        # Re-resolve: the sequence may have been replaced while the call ran.
        index = self.index_of(item_id)
        if index is not None:
            del self._items[index]
        logger.info(f"Removed {self.table}/{item_id}")
        return True

    # ─── Optimistic mutations ───────────────────────────────────

    def move_item(self, item_id, target_position):
        """Move an item to target_position (index in the resulting sequence).

        Returns False when the item is unknown or the position is unchanged.
        """
        old_index = self.index_of(item_id)
        if old_index is None:
            return False
        new_index = clamp(target_position, 0, len(self._items) - 1)
        if new_index == old_index:
            return False

        snapshot = self._snapshot()
        self._items = array_move(self._items, old_index, new_index)
        changes = renumber(self._items, self.order_key)
        self._persist(f"reorder {self.table}/{item_id}", changes, snapshot)
        return True

    def update(self, item_id, fields):
        """Apply a field edit locally, persist it, revert on failure."""
        index = self.index_of(item_id)
        if index is None:
            return False
        snapshot = self._snapshot()
        self._items[index].update(fields)
        self._persist(f"update {self.table}/{item_id}", [(item_id, dict(fields))], snapshot)
        return True

    def apply_drop(self, active_id, target):
        """Drag mover hook: translate a drop target into move_item()."""
        position = resolve_drop(self.ids(), active_id, target)
        if position is None:
            return False
        return self.move_item(active_id, position)

    def flush(self, timeout=None):
        """Wait for queued writes. Returns True when all of them landed."""
        failures = self.queue.wait(timeout)
        return not failures

    # ─── Internals ──────────────────────────────────────────────

    def _snapshot(self):
        return [dict(record) for record in self._items]

    def _persist(self, label, changes, snapshot):
        if not changes:
            return None
        remote, table = self.remote, self.table
        previous = {record["id"]: record for record in snapshot}

        def apply():
            write_rows(remote, table, changes, previous)

        def compensate(error):
            logger.warning(f"Reverting {table} to last known-good order after: {error}")
            self._items = snapshot
            self.last_error = error
            if isinstance(error, PartialWriteError):
                self._reload_after(error)

        self.last_error = None
        return self.queue.submit(PersistCommand(label, apply, compensate))

    def _reload_after(self, error):
        """Re-read a table whose remote rows may be half written."""
        try:
            self.load()
        except LoadError:
            logger.error(f"{self.table} state unknown after: {error}")
