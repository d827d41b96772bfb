"""Content blueprint — /admin/content/*

Admin JSON API for resumes, experiences, projects, resume-project links,
block documents and media uploads. All routes are CSRF-exempt and
require admin access (session or Bearer ADMIN_API_KEY).

Reorders take a drop intent, {"target": {"type": ..., "id": ...}} or
{"position": n}. The change is applied optimistically; if saving fails
the response is 409 with the restored order.

Route Map:
  GET|POST        /api/resumes
  PUT|DELETE      /api/resumes/<id>
  POST            /api/resumes/<id>/move
  POST            /api/resumes/visibility                  — bulk
  GET|POST        /api/resumes/<rid>/experiences
  PUT|DELETE      /api/resumes/<rid>/experiences/<id>
  POST            /api/resumes/<rid>/experiences/<id>/move
  POST            /api/resumes/<rid>/experiences/visibility — single + bulk
  GET|POST        /api/resumes/<rid>/projects              — linked projects
  DELETE          /api/resumes/<rid>/projects/<pid>
  POST            /api/resumes/<rid>/projects/<link_id>/move
  GET|POST        /api/projects
  PUT|DELETE      /api/projects/<id>
  POST            /api/projects/<id>/move
  POST            /api/projects/featured                   — single + bulk
  GET             /api/<kind>/<id>/blocks
  POST            /api/<kind>/<id>/blocks/<op>             — add|update|move|remove
  POST            /api/uploads
"""

import logging

from flask import Blueprint, jsonify, request

from folio.blueprints import common
from folio.decorators import api_auth
from folio.services import (
    audit_service,
    block_service,
    content_service,
    storage_service,
    validation,
)

logger = logging.getLogger(__name__)

content_bp = Blueprint("content", __name__, url_prefix="/admin/content")
common.register_api_errors(content_bp)

BLOCK_KINDS = {"resumes", "projects"}


def _ids(data):
    """Accept {"id": x} or {"ids": [...]} for single and bulk flag changes."""
    ids = data.get("ids")
    if ids is None and data.get("id"):
        ids = [data["id"]]
    if not isinstance(ids, list) or not ids:
        raise validation.ValidationError({"ids": "Select at least one item."})
    return ids


def _loaded(collection):
    collection.load()
    return collection


def _settle_media(key, collection, item_id, before):
    """settle() for an edit; uploads the record stopped using are deleted."""
    response = common.settle(key, lambda: collection.get(item_id))
    if response[1] == 200:
        block_service.discard_replaced_media(before, collection.get(item_id))
    return response


def _move(collection, item_id, key):
    if collection.get(item_id) is None:
        return common.not_found(key.rstrip("s").capitalize())
    moved = common.drop(collection, item_id, common.json_body())
    response = common.settle(key, lambda: collection.items, moved=moved)
    if moved and response[1] == 200:
        audit_service.record(
            f"{collection.table}.reordered",
            item_id=item_id,
            position=collection.index_of(item_id),
        )
    return response


# ─── Resumes ─────────────────────────────────────────────────────

@content_bp.route("/api/resumes")
@api_auth
def api_resumes():
    resumes = content_service.resume_collection(common.remote(), common.queue())
    return common.loaded(resumes.load, "resumes", lambda: resumes.items)


@content_bp.route("/api/resumes", methods=["POST"])
@api_auth
def api_create_resume():
    resumes = _loaded(content_service.resume_collection(common.remote(), common.queue()))
    resume = content_service.create_resume(resumes, common.json_body())
    return jsonify({"ok": True, "resume": resume}), 201


@content_bp.route("/api/resumes/<resume_id>", methods=["PUT"])
@api_auth
def api_update_resume(resume_id):
    resumes = _loaded(content_service.resume_collection(common.remote(), common.queue()))
    before = resumes.get(resume_id)
    if content_service.update_resume(resumes, resume_id, common.json_body()) is None:
        return common.not_found("Resume")
    return _settle_media("resume", resumes, resume_id, before)


@content_bp.route("/api/resumes/<resume_id>", methods=["DELETE"])
@api_auth
def api_delete_resume(resume_id):
    resumes = _loaded(content_service.resume_collection(common.remote(), common.queue()))
    record = resumes.get(resume_id)
    if not resumes.remove(resume_id):
        return common.not_found("Resume")
    block_service.discard_replaced_media(record, None)
    return jsonify({"ok": True})


@content_bp.route("/api/resumes/<resume_id>/move", methods=["POST"])
@api_auth
def api_move_resume(resume_id):
    resumes = _loaded(content_service.resume_collection(common.remote(), common.queue()))
    return _move(resumes, resume_id, "resumes")


@content_bp.route("/api/resumes/visibility", methods=["POST"])
@api_auth
def api_resume_visibility():
    data = common.json_body()
    resumes = _loaded(content_service.resume_collection(common.remote(), common.queue()))
    changed = content_service.set_visibility(
        resumes, _ids(data), validation.boolean(data, "is_visible")
    )
    return common.settle("resumes", lambda: resumes.items, changed=changed)


# ─── Experiences ─────────────────────────────────────────────────

def _experiences(resume_id):
    return _loaded(
        content_service.experience_collection(common.remote(), resume_id, common.queue())
    )


@content_bp.route("/api/resumes/<resume_id>/experiences")
@api_auth
def api_experiences(resume_id):
    experiences = content_service.experience_collection(
        common.remote(), resume_id, common.queue()
    )
    return common.loaded(experiences.load, "experiences", lambda: experiences.items)


@content_bp.route("/api/resumes/<resume_id>/experiences", methods=["POST"])
@api_auth
def api_create_experience(resume_id):
    experiences = _experiences(resume_id)
    experience = content_service.create_experience(experiences, common.json_body())
    return jsonify({"ok": True, "experience": experience}), 201


@content_bp.route("/api/resumes/<resume_id>/experiences/<experience_id>", methods=["PUT"])
@api_auth
def api_update_experience(resume_id, experience_id):
    experiences = _experiences(resume_id)
    if content_service.update_experience(experiences, experience_id, common.json_body()) is None:
        return common.not_found("Experience")
    return common.settle("experience", lambda: experiences.get(experience_id))


@content_bp.route("/api/resumes/<resume_id>/experiences/<experience_id>", methods=["DELETE"])
@api_auth
def api_delete_experience(resume_id, experience_id):
    if not _experiences(resume_id).remove(experience_id):
        return common.not_found("Experience")
    return jsonify({"ok": True})


@content_bp.route("/api/resumes/<resume_id>/experiences/<experience_id>/move", methods=["POST"])
@api_auth
def api_move_experience(resume_id, experience_id):
    return _move(_experiences(resume_id), experience_id, "experiences")


@content_bp.route("/api/resumes/<resume_id>/experiences/visibility", methods=["POST"])
@api_auth
def api_experience_visibility(resume_id):
    data = common.json_body()
    experiences = _experiences(resume_id)
    changed = content_service.set_visibility(
        experiences, _ids(data), validation.boolean(data, "is_visible")
    )
    return common.settle("experiences", lambda: experiences.items, changed=changed)


# ─── Resume <-> project links ────────────────────────────────────

def _links(resume_id):
    return _loaded(
        content_service.resume_project_collection(common.remote(), resume_id, common.queue())
    )


@content_bp.route("/api/resumes/<resume_id>/projects")
@api_auth
def api_resume_projects(resume_id):
    links = content_service.resume_project_collection(
        common.remote(), resume_id, common.queue()
    )
    return common.loaded(links.load, "links", lambda: links.items)


@content_bp.route("/api/resumes/<resume_id>/projects", methods=["POST"])
@api_auth
def api_link_project(resume_id):
    project_id = common.json_body().get("project_id")
    projects = _loaded(content_service.project_collection(common.remote(), common.queue()))
    if not project_id or projects.get(project_id) is None:
        return common.not_found("Project")
    link = content_service.link_project(_links(resume_id), project_id)
    return jsonify({"ok": True, "link": link}), 201


@content_bp.route("/api/resumes/<resume_id>/projects/<project_id>", methods=["DELETE"])
@api_auth
def api_unlink_project(resume_id, project_id):
    if not content_service.unlink_project(_links(resume_id), project_id):
        return common.not_found("Project link")
    return jsonify({"ok": True})


@content_bp.route("/api/resumes/<resume_id>/projects/<link_id>/move", methods=["POST"])
@api_auth
def api_move_link(resume_id, link_id):
    return _move(_links(resume_id), link_id, "links")


# ─── Projects ────────────────────────────────────────────────────

@content_bp.route("/api/projects")
@api_auth
def api_projects():
    projects = content_service.project_collection(common.remote(), common.queue())
    return common.loaded(projects.load, "projects", lambda: projects.items)


@content_bp.route("/api/projects", methods=["POST"])
@api_auth
def api_create_project():
    projects = _loaded(content_service.project_collection(common.remote(), common.queue()))
    project = content_service.create_project(projects, common.json_body())
    return jsonify({"ok": True, "project": project}), 201


@content_bp.route("/api/projects/<project_id>", methods=["PUT"])
@api_auth
def api_update_project(project_id):
    projects = _loaded(content_service.project_collection(common.remote(), common.queue()))
    before = projects.get(project_id)
    if content_service.update_project(projects, project_id, common.json_body()) is None:
        return common.not_found("Project")
    return _settle_media("project", projects, project_id, before)


@content_bp.route("/api/projects/<project_id>", methods=["DELETE"])
@api_auth
def api_delete_project(project_id):
    projects = _loaded(content_service.project_collection(common.remote(), common.queue()))
    record = projects.get(project_id)
    if not projects.remove(project_id):
        return common.not_found("Project")
    block_service.discard_replaced_media(record, None)
    return jsonify({"ok": True})


@content_bp.route("/api/projects/<project_id>/move", methods=["POST"])
@api_auth
def api_move_project(project_id):
    projects = _loaded(content_service.project_collection(common.remote(), common.queue()))
    return _move(projects, project_id, "projects")


@content_bp.route("/api/projects/featured", methods=["POST"])
@api_auth
def api_project_featured():
    data = common.json_body()
    projects = _loaded(content_service.project_collection(common.remote(), common.queue()))
    changed = content_service.set_featured(
        projects, _ids(data), validation.boolean(data, "is_featured")
    )
    return common.settle("projects", lambda: projects.items, changed=changed)


# ─── Block documents ─────────────────────────────────────────────

@content_bp.route("/api/<kind>/<record_id>/blocks")
@api_auth
def api_blocks(kind, record_id):
    if kind not in BLOCK_KINDS:
        return common.not_found("Document")
    document = block_service.load_document(common.remote(), kind, record_id)
    if document is None:
        return common.not_found(kind.rstrip("s").capitalize())
    return jsonify({"ok": True, "document": document.serialize()})


@content_bp.route("/api/<kind>/<record_id>/blocks/<op>", methods=["POST"])
@api_auth
def api_block_operation(kind, record_id, op):
    """Body by op:
    add     {"type": "text"|"image"|"youtube"|"drive"|"list", "content": ...}
    update  {"block_id": ..., "content": ...}
    move    {"block_id": ..., "direction": "up"|"down"}
    remove  {"block_id": ...}
    """
    if kind not in BLOCK_KINDS:
        return common.not_found("Document")
    document, block_id = block_service.apply_operation(
        common.remote(), kind, record_id, op, common.json_body()
    )
    if document is None:
        return common.not_found(kind.rstrip("s").capitalize())
    status = 201 if op == "add" else 200
    return jsonify({"ok": True, "document": document, "block_id": block_id}), status


# ─── Uploads ─────────────────────────────────────────────────────

@content_bp.route("/api/uploads", methods=["POST"])
@api_auth
def api_upload():
    file = request.files.get("file")
    ok, error = storage_service.validate_file(file)
    if not ok:
        return jsonify({"ok": False, "errors": {"file": error}}), 422
    category = request.form.get("category", "blocks")
    upload = storage_service.upload_file(file, category)
    logger.info(f"Uploaded {upload['filename']} to {upload['storage_path']}")
    return jsonify({"ok": True, "upload": upload}), 201
