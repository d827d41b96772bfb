"""Helpers shared by the JSON API blueprints.

- Per-request remote store + persistence queue (closed on teardown).
- Error mapping: ValidationError/ValueError -> 422, store outages -> 503.
- settle(): wait for queued writes; a failed write means the in-memory
  state was reverted, answered with 409 and the known-good data.
- drop(): run a drag drop intent through a DragController.
"""

import logging

from flask import current_app, g, jsonify, request

from folio.services.drag import DragController, DropTarget
from folio.services.persistence import LoadError, PersistenceQueue
from folio.services.remote_store import RemoteStoreError, get_remote_store
from folio.services.validation import ValidationError

logger = logging.getLogger(__name__)

LOAD_WARNING = "Could not reach the content store. Showing the last known data."


def json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def remote():
    if "remote_store" not in g:
        g.remote_store = get_remote_store()
    return g.remote_store


def queue():
    if "persist_queue" not in g:
        g.persist_queue = PersistenceQueue.from_config(current_app.config)
    return g.persist_queue


def close_queue(exc=None):
    """Request teardown: finish and release the store and persistence queue."""
    g.pop("remote_store", None)
    q = g.pop("persist_queue", None)
    if q is not None:
        q.wait()
        q.close()


def not_found(what):
    return jsonify({"ok": False, "error": f"{what} not found"}), 404


def loaded(load, key, cached):
    """Run load(); on LoadError answer 200 with cached data and a warning."""
    try:
        return jsonify({"ok": True, key: load()})
    except LoadError as e:
        logger.warning(f"Serving cached {key}: {e}")
        return jsonify({"ok": True, key: cached(), "warning": LOAD_WARNING})


def settle(key, current, status=200, **extra):
    """Wait for queued writes and answer with the resulting state.

    current: callable returning the (possibly reverted) data for key.
    """
    failures = queue().wait()
    if failures:
        _, error = failures[0]
        return jsonify({
            "ok": False,
            "error": f"Could not save the change; it was undone. ({error})",
            key: current(),
        }), 409
    return jsonify({"ok": True, key: current(), **extra}), status


def drop(mover, item_id, data):
    """Apply a drop intent: {"target": {"type", "id"}} or {"position": n}.

    Returns True when the mover changed anything.
    """
    if "position" in data and "target" not in data:
        try:
            position = int(data["position"])
        except (TypeError, ValueError):
            raise ValidationError({"position": "Position must be an integer."})
        return bool(mover.move_item(item_id, position))

    controller = DragController(
        mover, activation_distance=current_app.config.get("DRAG_ACTIVATION_DISTANCE", 8)
    )
    controller.begin(item_id)
    return controller.drop(DropTarget.from_json(data.get("target")))


def register_api_errors(bp):
    """Map service exceptions to JSON responses on an API blueprint."""

    @bp.errorhandler(ValidationError)
    def handle_validation(e):
        return jsonify({"ok": False, "errors": e.errors}), 422

    @bp.errorhandler(ValueError)
    def handle_value(e):
        return jsonify({"ok": False, "errors": {"request": str(e)}}), 422

    @bp.errorhandler(LoadError)
    def handle_load(e):
        return jsonify({"ok": False, "error": str(e)}), 503

    @bp.errorhandler(RemoteStoreError)
    def handle_store(e):
        logger.error(f"Remote store error on {request.path}: {e}")
        return jsonify({"ok": False, "error": "The content store is unavailable. Try again."}), 503
