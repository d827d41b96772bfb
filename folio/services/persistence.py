"""Persistence queue — apply locally, persist later, compensate on failure.

Reorders and field edits are applied to the in-memory sequence first.
The remote writes are wrapped in a PersistCommand and submitted here.
Commands run serially in submission order on a single worker thread
(or inline, see InlineExecutor). A command that writes several rows
puts the landed ones back when a later row fails (write_rows()).
Outcomes are collected on the caller's thread via wait()/poll(), where
failed commands run their compensation (revert).

A command that does not finish within the timeout counts as failed.
Commands queued behind a failure are cancelled: they were built on top
of a state that has just been reverted.
"""

import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError

from folio.services.remote_store import RemoteStoreError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0


class PersistenceError(Exception):
    """A queued remote write failed or was skipped."""


class PersistenceTimeout(PersistenceError):
    """A queued remote write did not finish in time."""


class PartialWriteError(PersistenceError):
    """Part of a multi-row write landed and could not be put back.

    The remote rows no longer match any local snapshot; callers should
    re-read them.
    """


class LoadError(Exception):
    """Loading a collection from the remote store failed."""


def write_rows(remote, table, writes, previous):
    """Update rows one by one; undo the landed ones if a later row fails.

    writes is [(record_id, fields)]. previous maps record_id to the record
    as it was before the local change. The failing write's error is
    re-raised once the landed rows hold their previous values again.
    """
    landed = []
    for record_id, fields in writes:
        try:
            remote.update(table, record_id, fields)
        except RemoteStoreError as e:
            _restore_rows(remote, table, landed, previous, e)
            raise
        landed.append((record_id, fields))


def _restore_rows(remote, table, landed, previous, error):
    for record_id, fields in reversed(landed):
        row = previous[record_id]
        before = {key: row[key] for key in fields if key in row}
        if not before:
            continue
        try:
            remote.update(table, record_id, before)
        except RemoteStoreError as e:
            raise PartialWriteError(
                f"{table}/{record_id} could not be restored after: {error}"
            ) from e
    if landed:
        logger.warning(f"Restored {len(landed)} {table} rows after: {error}")


class InlineExecutor(Executor):
    """Run submitted callables immediately on the calling thread.

    Used when remote writes must share the caller's context (request-scoped
    database work) and in tests that want deterministic ordering.
    """

    def submit(self, fn, /, *args, **kwargs):
        future = Future()
        if not future.set_running_or_notify_cancel():
            return future
        try:
            result = fn(*args, **kwargs)
        except Exception as e:
            future.set_exception(e)
        else:
            future.set_result(result)
        return future


class PersistCommand:
    """One unit of remote work plus how to undo its local effect."""

    def __init__(self, label, apply, compensate=None):
        self.label = label
        self.apply = apply
        self._compensate = compensate

    def compensate(self, error):
        if self._compensate is not None:
            self._compensate(error)

    def __repr__(self):
        return f"<PersistCommand {self.label}>"


class PersistenceQueue:
    def __init__(self, executor=None, timeout=DEFAULT_TIMEOUT):
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="persist"
        )
        self.timeout = timeout
        self._pending = []
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config):
        """Build a queue from Flask config (PERSIST_INLINE, REMOTE_STORE_TIMEOUT)."""
        executor = InlineExecutor() if config.get("PERSIST_INLINE") else None
        return cls(executor=executor, timeout=config.get("REMOTE_STORE_TIMEOUT", DEFAULT_TIMEOUT))

    @property
    def pending_count(self):
        with self._lock:
            return len(self._pending)

    def submit(self, command):
        """Queue a command. Returns its Future.

        A command queued behind an already failed one is never started.
        """
        if self._blocked():
            future = Future()
            future.cancel()
        else:
            future = self._executor.submit(command.apply)
        with self._lock:
            self._pending.append((command, future))
        logger.debug(f"Queued {command.label}")
        return future

    def _blocked(self):
        with self._lock:
            return any(
                future.cancelled() or (future.done() and future.exception() is not None)
                for _, future in self._pending
            )

    def wait(self, timeout=None):
        """Block until every queued command has resolved.

        Returns a list of (command, error) for commands that failed,
        timed out, or were cancelled behind a failure.
        """
        timeout = self.timeout if timeout is None else timeout
        return self._drain(block=True, timeout=timeout)

    def poll(self):
        """Resolve finished commands without blocking."""
        return self._drain(block=False, timeout=0)

    def _drain(self, block, timeout):
        failures = []
        while True:
            with self._lock:
                if not self._pending:
                    break
                command, future = self._pending[0]
                if not block and not future.done() and not failures:
                    break
                del self._pending[0]

            if failures:
                future.cancel()
                failures.append((
                    command,
                    PersistenceError(f"{command.label} skipped after an earlier failure"),
                ))
                continue

            try:
                future.result(timeout=timeout)
            except FutureTimeoutError:
                future.cancel()
                error = PersistenceTimeout(
                    f"{command.label} did not finish within {timeout}s"
                )
            except Exception as e:
                error = e
            else:
                continue

            logger.error(f"Persistence failed for {command.label}: {error}")
            command.compensate(error)
            failures.append((command, error))
        return failures

    def close(self):
        if self._owns_executor:
            self._executor.shutdown(wait=True)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
