"""Drag interaction controller.

Turns pointer gestures into a single "move A to target" call, independent
of what is being dragged. States:

    IDLE --pointer_down--> PENDING --moved >= activation distance--> DRAGGING
    PENDING --pointer_up--> IDLE            (a click, no move)
    DRAGGING --pointer_up(target)--> IDLE   (mover.apply_drop called once)

A drop outside any container (target None) is a no-op. Only one drag
session is active at a time; a second pointer_down is ignored.

The mover is anything with apply_drop(active_id, target) -> bool:
OrderedCollection for single lists, TicketBoard for staged tickets.
"""

import logging
import math
from collections import namedtuple

logger = logging.getLogger(__name__)

IDLE = "idle"
PENDING = "pending"
DRAGGING = "dragging"

DEFAULT_ACTIVATION_DISTANCE = 8

ITEM = "item"
CONTAINER = "container"

# Client payloads name targets by entity kind; map them onto the two shapes.
_TARGET_KINDS = {
    "item": ITEM,
    "ticket": ITEM,
    "resume": ITEM,
    "project": ITEM,
    "experience": ITEM,
    "stage": CONTAINER,
    "container": CONTAINER,
    "column": CONTAINER,
}


class DropTarget(namedtuple("DropTarget", ["kind", "id"])):
    """Where a drag ended: over a sibling item, or over a container."""

    __slots__ = ()

    @classmethod
    def item(cls, item_id):
        return cls(ITEM, item_id)

    @classmethod
    def container(cls, container_id):
        return cls(CONTAINER, container_id)

    @classmethod
    def from_json(cls, data):
        """Parse {"type": "ticket"|"stage"|..., "id": "..."}; None when outside."""
        if not data or not isinstance(data, dict):
            return None
        kind = _TARGET_KINDS.get(str(data.get("type", "")).lower())
        target_id = data.get("id")
        if kind is None or not target_id:
            return None
        return cls(kind, target_id)


def resolve_drop(sequence_ids, active_id, target):
    """Compute the target index for a drop within one container.

    Dropping over a sibling takes that sibling's index (array-move
    semantics); dropping over the container moves to the end.
    Returns None when the drop should not mutate anything.
    """
    if target is None or active_id not in sequence_ids:
        return None
    if target.kind == ITEM:
        if target.id == active_id or target.id not in sequence_ids:
            return None
        return sequence_ids.index(target.id)
    if target.kind == CONTAINER:
        return len(sequence_ids) - 1
    return None


class DragController:
    def __init__(
        self,
        mover,
        activation_distance=DEFAULT_ACTIVATION_DISTANCE,
        on_drag_start=None,
        on_drag_end=None,
        on_click=None,
    ):
        self.mover = mover
        self.activation_distance = activation_distance
        self.on_drag_start = on_drag_start
        self.on_drag_end = on_drag_end
        self.on_click = on_click
        self._reset()

    @property
    def is_dragging(self):
        return self.state == DRAGGING

    def _reset(self):
        self.state = IDLE
        self.active_id = None
        self._origin = None

    def pointer_down(self, item_id, x, y):
        if self.state != IDLE:
            logger.debug(f"Ignoring pointer_down on {item_id}: drag already active")
            return False
        self.state = PENDING
        self.active_id = item_id
        self._origin = (x, y)
        return True

    def pointer_move(self, x, y):
        if self.state == PENDING:
            ox, oy = self._origin
            if math.hypot(x - ox, y - oy) >= self.activation_distance:
                self._activate()
        return self.state

    def begin(self, item_id):
        """Start an already-activated drag (server-side drop intents)."""
        if self.state != IDLE:
            return False
        self.active_id = item_id
        self._activate()
        return True

    def _activate(self):
        self.state = DRAGGING
        if self.on_drag_start is not None:
            self.on_drag_start(self.active_id)

    def pointer_up(self, target=None):
        """End the gesture. Returns True when the mover changed the order."""
        state, active_id = self.state, self.active_id
        self._reset()

        if state == PENDING:
            if self.on_click is not None:
                self.on_click(active_id)
            return False
        if state != DRAGGING:
            return False

        if self.on_drag_end is not None:
            self.on_drag_end(active_id, target)
        if target is None:
            logger.debug(f"Drag of {active_id} ended outside any container")
            return False
        return bool(self.mover.apply_drop(active_id, target))

    drop = pointer_up

    def cancel(self):
        self._reset()
