"""
Public API blueprint — /api/*

Read-only content for the portfolio site plus the contact form.
CSRF-exempt (hit by the static frontend); the contact form is rate limited.

Route Map:
  GET  /api/resumes          — visible resumes with experiences + projects
  GET  /api/projects         — projects, featured first
  GET  /api/projects/<id>    — one project with its block content
  POST /api/contact          — store a message, open a ticket, notify owner
"""

import logging

from flask import Blueprint, jsonify

from folio.blueprints import common
from folio.extensions import limiter
from folio.services import audit_service, content_service, message_service
from folio.services.email_service import notify_new_message

public_bp = Blueprint("public", __name__, url_prefix="/api")
common.register_api_errors(public_bp)

logger = logging.getLogger(__name__)


@public_bp.route("/resumes")
def resumes():
    return common.loaded(
        lambda: content_service.published_resumes(common.remote()), "resumes", list
    )


@public_bp.route("/projects")
def projects():
    return common.loaded(
        lambda: content_service.published_projects(common.remote()), "projects", list
    )


@public_bp.route("/projects/<project_id>")
def project_detail(project_id):
    project = content_service.project_detail(common.remote(), project_id)
    if project is None:
        return common.not_found("Project")
    return jsonify({"ok": True, "project": project})


@public_bp.route("/contact", methods=["POST"])
@limiter.limit("5 per hour")
def contact():
    """
    Accept a JSON contact form submission.

    Expects: { name, email, message, resume_id (optional) }
    Returns: 201 { ok: true, message_id, ticket_id } (ticket_id may be null)
             422 { ok: false, errors: {field: "..."} }
    """
    data = common.json_body()
    result = message_service.submit_message(
        common.remote(),
        data.get("name"),
        data.get("email"),
        data.get("message"),
        resume_id=data.get("resume_id"),
        queue=common.queue(),
    )
    message = result.message

    audit_service.record(
        "message.received", message_id=message["id"], ticket_id=result.ticket_id
    )
    if result.ticket_id:
        audit_service.record(
            "ticket.created", ticket_id=result.ticket_id, message_id=message["id"]
        )
    notify_new_message(message, result.ticket_id)

    return jsonify({"ok": True, "message_id": message["id"], "ticket_id": result.ticket_id}), 201
