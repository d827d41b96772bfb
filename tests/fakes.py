"""In-memory RemoteStore for service tests.

Behaves like the hosted tables closely enough for ordering, board and
message tests: auto ids, increasing created_at, equality filters,
ordering with nulls last, unique columns, plus failure/latency injection.
"""

import copy
import itertools
import threading
import time

from folio.services.remote_store import RemoteStore, RemoteStoreError

UNIQUE_COLUMNS = {
    "kanban_stages": ("title",),
    "resumes": ("slug",),
}


class FakeRemoteStore(RemoteStore):
    def __init__(self, tables=None):
        self.tables = {}
        self.calls = []
        self.delays = {}
        self._failures = []
        self._counter = itertools.count(1)
        self._lock = threading.Lock()
        for table, rows in (tables or {}).items():
            for row in rows:
                self._store(table, dict(row))

    # ─── Test controls ──────────────────────────────────────────

    def fail(self, method, table=None, error=None, times=1, after=0):
        """Make the next `times` calls of method (on table) raise.

        times=None fails every matching call. The first `after` matching
        calls still succeed.
        """
        error = error or RemoteStoreError(f"injected {method} failure")
        self._failures.append([method, table, error, times, after])

    def delay(self, method, seconds):
        self.delays[method] = seconds

    def rows(self, table):
        return [dict(r) for r in self.tables.get(table, [])]

    def calls_for(self, method, table=None):
        return [c for c in self.calls if c[0] == method and (table is None or c[1] == table)]

    # ─── RemoteStore ────────────────────────────────────────────

    def select(self, table, filters=None, order=None, limit=None):
        self._enter("select", table, filters)
        rows = [
            r for r in self.tables.get(table, [])
            if all(r.get(k) == v for k, v in (filters or {}).items())
        ]
        for key in reversed(order or []):
            column = key.lstrip("-")
            descending = key.startswith("-")
            present = [r for r in rows if r.get(column) is not None]
            missing = [r for r in rows if r.get(column) is None]
            present.sort(key=lambda r: r[column], reverse=descending)
            rows = present + missing
        if limit:
            rows = rows[:limit]
        return copy.deepcopy(rows)

    def insert(self, table, record):
        self._enter("insert", table, record)
        return copy.deepcopy(self._store(table, copy.deepcopy(record)))

    def update(self, table, record_id, fields):
        self._enter("update", table, (record_id, fields))
        row = self._find(table, record_id)
        if row is None:
            raise RemoteStoreError(f"{table} record {record_id} not found.")
        row.update(copy.deepcopy(fields))
        return copy.deepcopy(row)

    def delete(self, table, record_id):
        self._enter("delete", table, record_id)
        row = self._find(table, record_id)
        if row is not None:
            self.tables[table].remove(row)

    # ─── Internals ──────────────────────────────────────────────

    def _enter(self, method, table, payload):
        with self._lock:
            self.calls.append((method, table, copy.deepcopy(payload)))
            for failure in self._failures:
                f_method, f_table, error, times, after = failure
                if f_method == method and f_table in (None, table) and (times is None or times > 0):
                    if after:
                        failure[4] -= 1
                        continue
                    if times is not None:
                        failure[3] -= 1
                    raise error
        if self.delays.get(method):
            time.sleep(self.delays[method])

    def _find(self, table, record_id):
        for row in self.tables.get(table, []):
            if row["id"] == record_id:
                return row
        return None

    def _store(self, table, row):
        n = next(self._counter)
        row.setdefault("id", f"{table}-{n}")
        row.setdefault("created_at", f"2026-01-01T00:00:00.{n:06d}+00:00")
        rows = self.tables.setdefault(table, [])
        for column in UNIQUE_COLUMNS.get(table, ()):
            # NULLs never clash, as in SQL.
            if row.get(column) is None:
                continue
            if any(r.get(column) == row.get(column) for r in rows):
                raise RemoteStoreError(
                    f"duplicate key value violates unique constraint on {table}.{column}"
                )
        rows.append(row)
        return row
