"""Kanban blueprint — /admin/kanban/*

Message workflow board: stages (columns) and tickets, plus the contact
message inbox. All routes are JSON, CSRF-exempt and require admin access
(session or Bearer ADMIN_API_KEY).

Route Map:
  GET    /admin/kanban/api/board                  — Full board JSON
  POST   /admin/kanban/api/stages                 — Create stage
  PUT    /admin/kanban/api/stages/<id>            — Rename stage
  DELETE /admin/kanban/api/stages/<id>            — Delete (empty) stage
  POST   /admin/kanban/api/stages/<id>/move       — Reorder stage (drop intent)
  POST   /admin/kanban/api/tickets                — Create ticket
  PUT    /admin/kanban/api/tickets/<id>           — Update ticket
  DELETE /admin/kanban/api/tickets/<id>           — Delete ticket
  POST   /admin/kanban/api/tickets/<id>/move      — Move ticket (drop intent)
  GET    /admin/kanban/api/messages               — Message inbox
  PUT    /admin/kanban/api/messages/<id>/status   — Set message status
  GET    /admin/kanban/api/analytics              — Dashboard statistics
"""

import logging

from flask import Blueprint, jsonify, request

from folio.blueprints import common
from folio.decorators import api_auth
from folio.services import audit_service, message_service, stats_service
from folio.services.ticket_board import TicketBoard

logger = logging.getLogger(__name__)

kanban_bp = Blueprint("kanban", __name__, url_prefix="/admin/kanban")
common.register_api_errors(kanban_bp)


def _load(board):
    """Load the board (seeds default stages on first use)."""
    board.load()
    if board.seeded:
        audit_service.record("stage.seeded", stages=[s["title"] for s in board.seeded])
    return board.board()


def _board():
    board = TicketBoard(common.remote(), queue=common.queue())
    _load(board)
    return board


# ─── Board API ───────────────────────────────────────────────────

@kanban_bp.route("/api/board")
@api_auth
def api_board():
    board = TicketBoard(common.remote(), queue=common.queue())
    return common.loaded(lambda: _load(board), "stages", board.board)


# ─── Stage API ───────────────────────────────────────────────────

@kanban_bp.route("/api/stages", methods=["POST"])
@api_auth
def api_create_stage():
    board = _board()
    stage = board.add_stage(common.json_body().get("title"))
    return jsonify({"ok": True, "stage": stage}), 201


@kanban_bp.route("/api/stages/<stage_id>", methods=["PUT"])
@api_auth
def api_update_stage(stage_id):
    board = _board()
    if not board.rename_stage(stage_id, common.json_body().get("title")):
        return common.not_found("Stage")
    return common.settle("stages", board.board)


@kanban_bp.route("/api/stages/<stage_id>", methods=["DELETE"])
@api_auth
def api_delete_stage(stage_id):
    board = _board()
    if not board.delete_stage(stage_id):
        return common.not_found("Stage")
    return jsonify({"ok": True})


@kanban_bp.route("/api/stages/<stage_id>/move", methods=["POST"])
@api_auth
def api_move_stage(stage_id):
    board = _board()
    if stage_id not in board.stage_ids():
        return common.not_found("Stage")
    data = common.json_body()
    target = data.get("target")
    # Over another stage means "take its place", not "append into it".
    if isinstance(target, dict) and target.get("type") == "stage":
        data["target"] = {"type": "item", "id": target.get("id")}
    moved = common.drop(board.stages, stage_id, data)
    return common.settle("stages", board.board, moved=moved)


# ─── Ticket API ──────────────────────────────────────────────────

@kanban_bp.route("/api/tickets", methods=["POST"])
@api_auth
def api_create_ticket():
    data = common.json_body()
    board = _board()
    stage_id = data.get("stage_id") or board.first_stage_id()
    if stage_id not in board.stage_ids():
        return common.not_found("Stage")
    ticket = board.create_ticket(stage_id, data)
    audit_service.record("ticket.created", ticket_id=ticket["id"], stage_id=stage_id)
    return jsonify({"ok": True, "ticket": ticket}), 201


@kanban_bp.route("/api/tickets/<ticket_id>", methods=["PUT"])
@api_auth
def api_update_ticket(ticket_id):
    board = _board()
    if board.update_ticket(ticket_id, common.json_body()) is None:
        return common.not_found("Ticket")
    return common.settle("ticket", lambda: board.get_ticket(ticket_id))


@kanban_bp.route("/api/tickets/<ticket_id>", methods=["DELETE"])
@api_auth
def api_delete_ticket(ticket_id):
    board = _board()
    if not board.delete_ticket(ticket_id):
        return common.not_found("Ticket")
    return jsonify({"ok": True})


@kanban_bp.route("/api/tickets/<ticket_id>/move", methods=["POST"])
@api_auth
def api_move_ticket(ticket_id):
    """Move a ticket.

    Body: {"target": {"type": "stage"|"ticket", "id": "..."}}
       or {"stage_id": "...", "position": n}
    """
    data = common.json_body()
    board = _board()
    ticket = board.get_ticket(ticket_id)
    if ticket is None:
        return common.not_found("Ticket")

    if "target" not in data:
        try:
            position = int(data.get("position", 0))
        except (TypeError, ValueError):
            return jsonify({"ok": False, "errors": {"position": "Position must be an integer."}}), 422
        stage_id = data.get("stage_id") or ticket["stage_id"]
        if stage_id not in board.stage_ids():
            return common.not_found("Stage")
        moved = board.move_ticket(ticket_id, stage_id, position)
    else:
        moved = common.drop(board, ticket_id, data)

    response = common.settle("stages", board.board, moved=moved)
    if moved and response[1] == 200:
        after = board.get_ticket(ticket_id)
        audit_service.record(
            "ticket.moved",
            ticket_id=ticket_id,
            from_stage=ticket["stage_id"],
            to_stage=after["stage_id"],
            order_index=after["order_index"],
        )
    return response


# ─── Messages API ────────────────────────────────────────────────

@kanban_bp.route("/api/messages")
@api_auth
def api_messages():
    status = request.args.get("status") or None
    return common.loaded(
        lambda: message_service.list_messages(common.remote(), status=status),
        "messages",
        list,
    )


@kanban_bp.route("/api/messages/<message_id>/status", methods=["PUT"])
@api_auth
def api_message_status(message_id):
    if message_service.get_message(common.remote(), message_id) is None:
        return common.not_found("Message")
    message = message_service.update_message_status(
        common.remote(), message_id, common.json_body().get("status")
    )
    return jsonify({"ok": True, "message": message})


@kanban_bp.route("/api/analytics")
@api_auth
def api_analytics():
    return common.loaded(
        lambda: stats_service.collect(common.remote()),
        "analytics",
        dict,
    )
