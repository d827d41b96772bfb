"""Ticket board — stage/ticket workflow store.

Specializes the ordered collection to tickets that also belong to a stage
(kanban column). order_index is scoped within a stage.

- load(): stages (ordered), default-stage bootstrap, then tickets.
- move_ticket(): changes stage reference + position in one local update,
  persists both fields of the moved ticket together, reverts on failure.
- apply_drop(): drag mover hook. Dropping on a stage appends to it;
  dropping on a ticket takes that ticket's position and stage.

Default stages are seeded once when none exist. Seeding is check-then-
create under a process lock; the unique stage title catches a concurrent
seeder in another process, after which stages are re-read. Duplicate
titles that slipped in anyway are folded together on load.
"""

import logging
import threading
from datetime import datetime, timezone

from folio.services import validation
from folio.services.drag import CONTAINER, ITEM
from folio.services.ordering import (
    OrderedCollection,
    array_move,
    clamp,
    renumber,
    sort_records,
)
from folio.services.persistence import (
    LoadError,
    PartialWriteError,
    PersistCommand,
    PersistenceQueue,
    write_rows,
)
from folio.services.remote_store import RemoteStoreError

logger = logging.getLogger(__name__)

DEFAULT_STAGES = ["New", "In Progress", "Review", "Completed"]

STAGES_TABLE = "kanban_stages"
TICKETS_TABLE = "kanban_tickets"

_seed_lock = threading.Lock()


def validate_ticket_fields(data, partial=False):
    """Validate editable ticket fields. Returns a dict of cleaned values."""
    errors = {}
    cleaned = {}
    if not partial or "title" in data:
        cleaned["title"] = validation.required_text(data, "title", errors, max_length=500)
    if "description" in data:
        cleaned["description"] = validation.optional_text(data, "description", errors)
    if "notes" in data:
        cleaned["notes"] = validation.optional_text(data, "notes", errors)
    if "labels" in data:
        labels = validation.string_list(data, "labels", errors)
        # Labels are a set: drop duplicates, keep first-seen order.
        cleaned["labels"] = list(dict.fromkeys(labels)) if labels else None
    if "due_date" in data:
        cleaned["due_date"] = validation.parse_date(data, "due_date", errors)
    validation.check(errors)
    return cleaned


def _now_iso():
    return datetime.now(timezone.utc).isoformat()


class TicketBoard:
    def __init__(self, remote, queue=None):
        self.remote = remote
        self.queue = queue or PersistenceQueue()
        self.stages = OrderedCollection(
            remote, STAGES_TABLE, order_key="order_index", queue=self.queue
        )
        self.last_error = None
        self._tickets = []
        self._stage_aliases = {}
        self.seeded = []

    # ─── Loading ────────────────────────────────────────────────

    def load(self):
        self.stages.load()
        self.seeded = self.ensure_default_stages()
        self._fold_duplicate_stages()
        try:
            records = self.remote.select(
                TICKETS_TABLE, order=["order_index", "created_at", "id"]
            )
        except RemoteStoreError as e:
            logger.warning(f"Load of {TICKETS_TABLE} failed: {e}")
            raise LoadError(f"Could not load {TICKETS_TABLE}.") from e

        for record in records:
            record["stage_id"] = self._stage_aliases.get(record["stage_id"], record["stage_id"])
        self._tickets = sort_records(records, "order_index")
        return self.board()

    def ensure_default_stages(self):
        """Seed New/In Progress/Review/Completed if no stages exist.

        Returns the list of stages created by this call (empty if none).
        """
        if len(self.stages):
            return []
        created = []
        with _seed_lock:
            try:
                existing = self.remote.select(STAGES_TABLE, limit=1)
            except RemoteStoreError as e:
                raise LoadError(f"Could not load {STAGES_TABLE}.") from e
            if not existing:
                for index, title in enumerate(DEFAULT_STAGES):
                    try:
                        created.append(self.remote.insert(
                            STAGES_TABLE, {"title": title, "order_index": index}
                        ))
                    except RemoteStoreError as e:
                        # Another process seeded first; use what it created.
                        logger.warning(f"Default stage '{title}' not created: {e}")
                        break
                if created:
                    logger.info(f"Seeded {len(created)} default kanban stages")
        self.stages.load()
        return created

    def _fold_duplicate_stages(self):
        """Keep the first stage per title; map tickets of duplicates onto it."""
        seen = {}
        self._stage_aliases = {}
        for stage in self.stages.items:
            key = stage["title"].strip().lower()
            if key in seen:
                self._stage_aliases[stage["id"]] = seen[key]
            else:
                seen[key] = stage["id"]
        if self._stage_aliases:
            logger.warning(f"Folding {len(self._stage_aliases)} duplicate kanban stages")
            self.stages._items = [
                s for s in self.stages._items if s["id"] not in self._stage_aliases
            ]

    # ─── Reads ──────────────────────────────────────────────────

    def stage_ids(self):
        return self.stages.ids()

    def first_stage_id(self):
        ids = self.stage_ids()
        return ids[0] if ids else None

    def get_ticket(self, ticket_id):
        ticket = self._find(ticket_id)
        return dict(ticket) if ticket is not None else None

    def tickets_for_stage(self, stage_id):
        return [dict(t) for t in self._ordered(stage_id)]

    def board(self):
        return [
            {**stage, "tickets": self.tickets_for_stage(stage["id"])}
            for stage in self.stages.items
        ]

    def _find(self, ticket_id):
        for ticket in self._tickets:
            if ticket["id"] == ticket_id:
                return ticket
        return None

    def _ordered(self, stage_id):
        """Live (not copied) tickets of one stage, in display order."""
        return sort_records(
            [t for t in self._tickets if t["stage_id"] == stage_id], "order_index"
        )

    # ─── Moves ──────────────────────────────────────────────────

    def move_ticket(self, ticket_id, target_stage_id, target_position):
        """Move a ticket into target_stage_id at target_position.

        Returns False when nothing changed. Raises ValueError for an
        unknown stage.
        """
        ticket = self._find(ticket_id)
        if ticket is None:
            return False
        if target_stage_id not in self.stage_ids():
            raise ValueError(f"Stage {target_stage_id} not found.")

        source_stage_id = ticket["stage_id"]
        source = self._ordered(source_stage_id)
        snapshot = [dict(t) for t in self._tickets]

        if source_stage_id == target_stage_id:
            old_index = source.index(ticket)
            new_index = clamp(target_position, 0, len(source) - 1)
            if new_index == old_index:
                return False
            touched = [array_move(source, old_index, new_index)]
        else:
            remaining = [t for t in source if t is not ticket]
            destination = self._ordered(target_stage_id)
            destination.insert(clamp(target_position, 0, len(destination)), ticket)
            ticket["stage_id"] = target_stage_id
            touched = [remaining, destination]

        changes = {}
        for sequence in touched:
            for record_id, fields in renumber(sequence, "order_index"):
                changes[record_id] = fields
        now = _now_iso()
        ticket["updated_at"] = now
        # The moved ticket's stage and position always travel together.
        moved_fields = {
            "stage_id": target_stage_id,
            "order_index": ticket["order_index"],
            "updated_at": now,
        }
        changes.pop(ticket_id, None)
        writes = [(ticket_id, moved_fields)] + list(changes.items())

        self._persist(f"move ticket {ticket_id}", writes, snapshot)
        logger.info(
            f"Ticket {ticket_id} moved {source_stage_id} -> {target_stage_id} "
            f"at {ticket['order_index']}"
        )
        return True

    def apply_drop(self, active_id, target):
        """Drag mover hook for the board."""
        ticket = self._find(active_id)
        if ticket is None or target is None:
            return False

        if target.kind == CONTAINER:
            stage_id = self._stage_aliases.get(target.id, target.id)
            if stage_id not in self.stage_ids():
                return False
            count = len(self._ordered(stage_id))
            position = count - 1 if stage_id == ticket["stage_id"] else count
            return self.move_ticket(active_id, stage_id, position)

        if target.kind == ITEM:
            over = self._find(target.id)
            if over is None or over is ticket:
                return False
            stage_id = over["stage_id"]
            position = self._ordered(stage_id).index(over)
            return self.move_ticket(active_id, stage_id, position)

        return False

    # ─── Ticket CRUD ────────────────────────────────────────────

    def create_ticket(self, stage_id, data, message_id=None):
        """Validate and append a ticket to the end of a stage."""
        if stage_id not in self.stage_ids():
            raise ValueError(f"Stage {stage_id} not found.")
        fields = validate_ticket_fields(data)
        stage_tickets = self._ordered(stage_id)
        next_order = max((t["order_index"] for t in stage_tickets), default=-1) + 1
        record = {
            **fields,
            "stage_id": stage_id,
            "message_id": message_id,
            "order_index": next_order,
        }
        created = self.remote.insert(TICKETS_TABLE, record)
        self._tickets.append(created)
        logger.info(f"Created ticket {created['id']} in stage {stage_id}")
        return dict(created)

    def update_ticket(self, ticket_id, data):
        """Edit ticket fields optimistically; reverts if the write fails."""
        ticket = self._find(ticket_id)
        if ticket is None:
            return None
        fields = validate_ticket_fields(data, partial=True)
        if not fields:
            return dict(ticket)
        fields["updated_at"] = _now_iso()
        snapshot = [dict(t) for t in self._tickets]
        ticket.update(fields)
        self._persist(f"update ticket {ticket_id}", [(ticket_id, fields)], snapshot)
        return dict(ticket)

    def delete_ticket(self, ticket_id):
        if self._find(ticket_id) is None:
            return False
        self.remote.delete(TICKETS_TABLE, ticket_id)
        self._tickets = [t for t in self._tickets if t["id"] != ticket_id]
        logger.info(f"Deleted ticket {ticket_id}")
        return True

    # ─── Stage management ───────────────────────────────────────

    def add_stage(self, title):
        errors = {}
        title = validation.required_text({"title": title}, "title", errors, max_length=255)
        if title and any(s["title"].lower() == title.lower() for s in self.stages.items):
            errors["title"] = f"A stage named '{title}' already exists."
        validation.check(errors)
        return self.stages.insert({"title": title})

    def rename_stage(self, stage_id, title):
        errors = {}
        title = validation.required_text({"title": title}, "title", errors, max_length=255)
        validation.check(errors)
        return self.stages.update(stage_id, {"title": title})

    def delete_stage(self, stage_id):
        if stage_id not in self.stage_ids():
            return False
        if self._ordered(stage_id):
            raise ValueError("Move or delete this stage's tickets before deleting it.")
        return self.stages.remove(stage_id)

    # ─── Persistence ────────────────────────────────────────────

    def flush(self, timeout=None):
        failures = self.queue.wait(timeout)
        return not failures

    def _persist(self, label, writes, snapshot):
        remote = self.remote
        previous = {ticket["id"]: ticket for ticket in snapshot}

        def apply():
            write_rows(remote, TICKETS_TABLE, writes, previous)

        def compensate(error):
            logger.warning(f"Reverting ticket board after: {error}")
            self._tickets = snapshot
            self.last_error = error
            if isinstance(error, PartialWriteError):
                try:
                    self.load()
                except LoadError:
                    logger.error(f"Ticket board state unknown after: {error}")

        self.last_error = None
        return self.queue.submit(PersistCommand(label, apply, compensate))
