"""Content service — resumes, projects, experiences and their ordering.

Each entity kind is an OrderedCollection over its remote table:

  resumes          display_order
  projects         display_order
  experiences      display_order, scoped to one resume
  resume_projects  order_index, scoped to one resume

Validation runs before any remote call and raises ValidationError with
per-field messages. Visibility and featured flags go through the
collection's optimistic update, singly or in bulk.
"""

import logging
import re

from folio.models.project import Project
from folio.models.resume import Experience
from folio.services import validation
from folio.services.blocks import BlockDocument
from folio.services.ordering import OrderedCollection, sort_records
from folio.services.persistence import LoadError
from folio.services.remote_store import RemoteStoreError

logger = logging.getLogger(__name__)

RESUMES_TABLE = "resumes"
PROJECTS_TABLE = "projects"
EXPERIENCES_TABLE = "experiences"
RESUME_PROJECTS_TABLE = "resume_projects"


# ─── Collections ─────────────────────────────────────────────────

def resume_collection(remote, queue=None):
    return OrderedCollection(remote, RESUMES_TABLE, queue=queue)


def project_collection(remote, queue=None):
    return OrderedCollection(remote, PROJECTS_TABLE, queue=queue)


def experience_collection(remote, resume_id, queue=None):
    return OrderedCollection(
        remote, EXPERIENCES_TABLE, filters={"resume_id": resume_id}, queue=queue
    )


def resume_project_collection(remote, resume_id, queue=None):
    return OrderedCollection(
        remote,
        RESUME_PROJECTS_TABLE,
        order_key="order_index",
        filters={"resume_id": resume_id},
        queue=queue,
    )


# ─── Validation ──────────────────────────────────────────────────

def slugify(value):
    """Lowercase, only a-z 0-9 and hyphens."""
    value = (value or "").lower()
    value = re.sub(r"[^a-z0-9\s-]", "", value)
    value = re.sub(r"[\s-]+", "-", value)
    return value.strip("-")


def _check_date_range(cleaned, errors):
    start, end = cleaned.get("start_date"), cleaned.get("end_date")
    if start and end and end < start:
        errors["end_date"] = "End date must be on or after the start date."


def _check_merged_dates(current, fields):
    """Date range check for a partial update against the stored record."""
    errors = {}
    _check_date_range({**current, **fields}, errors)
    validation.check(errors)


def _json_list(data, field, errors):
    """Accept a list of strings or objects (education, certifications)."""
    value = data.get(field)
    if value in (None, ""):
        return None
    if not isinstance(value, list) or not all(isinstance(v, (str, dict)) for v in value):
        errors[field] = f"{field.capitalize()} must be a list."
        return None
    return value


def validate_resume(data, partial=False):
    errors = {}
    cleaned = {}
    if not partial or "title" in data:
        cleaned["title"] = validation.required_text(data, "title", errors, max_length=255)
    if not partial or "slug" in data:
        slug = (data.get("slug") or "").strip() or slugify(cleaned.get("title"))
        if not slug:
            errors["slug"] = "Slug is required."
        elif not validation.SLUG_RE.match(slug):
            errors["slug"] = "Slug may only contain lowercase letters, numbers and hyphens."
        cleaned["slug"] = slug
    if "description" in data or not partial:
        cleaned["description"] = validation.optional_text(data, "description", errors) or ""
    if "image_url" in data:
        cleaned["image_url"] = validation.optional_text(data, "image_url", errors, max_length=1000)
    if "skills" in data:
        cleaned["skills"] = validation.string_list(data, "skills", errors)
    for field in ("education", "certifications"):
        if field in data:
            cleaned[field] = _json_list(data, field, errors)
    if "is_visible" in data:
        cleaned["is_visible"] = validation.boolean(data, "is_visible")
    validation.check(errors)
    return cleaned


def validate_project(data, partial=False):
    errors = {}
    cleaned = {}
    if not partial or "title" in data:
        cleaned["title"] = validation.required_text(data, "title", errors, max_length=255)
    if "description" in data or not partial:
        cleaned["description"] = validation.optional_text(data, "description", errors) or ""
    if not partial or "start_date" in data:
        cleaned["start_date"] = validation.parse_date(data, "start_date", errors, required=True)
    if "end_date" in data:
        cleaned["end_date"] = validation.parse_date(data, "end_date", errors)
    if "status" in data or not partial:
        status = data.get("status") or "completed"
        if status not in Project.STATUSES:
            errors["status"] = f"Status must be one of: {', '.join(Project.STATUSES)}"
        cleaned["status"] = status
    if "technologies" in data:
        cleaned["technologies"] = validation.string_list(data, "technologies", errors)
    if "featured_image" in data:
        cleaned["featured_image"] = validation.optional_text(
            data, "featured_image", errors, max_length=1000
        )
    if "gallery" in data:
        cleaned["gallery"] = validation.string_list(data, "gallery", errors)
    if "is_featured" in data:
        cleaned["is_featured"] = validation.boolean(data, "is_featured")
    _check_date_range(cleaned, errors)
    validation.check(errors)
    return cleaned


def validate_experience(data, partial=False):
    errors = {}
    cleaned = {}
    for field in ("title", "company"):
        if not partial or field in data:
            cleaned[field] = validation.required_text(data, field, errors, max_length=255)
    if "description" in data or not partial:
        cleaned["description"] = validation.optional_text(data, "description", errors) or ""
    if not partial or "start_date" in data:
        cleaned["start_date"] = validation.parse_date(data, "start_date", errors, required=True)
    if "end_date" in data:
        cleaned["end_date"] = validation.parse_date(data, "end_date", errors)
    if "location" in data:
        cleaned["location"] = validation.optional_text(data, "location", errors, max_length=255)
    if data.get("employment_type"):
        if data["employment_type"] not in Experience.EMPLOYMENT_TYPES:
            errors["employment_type"] = (
                f"Employment type must be one of: {', '.join(Experience.EMPLOYMENT_TYPES)}"
            )
        cleaned["employment_type"] = data["employment_type"]
    if "achievements" in data:
        cleaned["achievements"] = validation.string_list(data, "achievements", errors)
    if "is_visible" in data:
        cleaned["is_visible"] = validation.boolean(data, "is_visible")
    _check_date_range(cleaned, errors)
    validation.check(errors)
    return cleaned


# ─── Resumes ─────────────────────────────────────────────────────

def _ensure_unique_slug(collection, slug, exclude_id=None):
    for record in collection.items:
        if record["slug"] == slug and record["id"] != exclude_id:
            raise validation.ValidationError({"slug": f"Slug '{slug}' is already in use."})


def create_resume(collection, data):
    fields = validate_resume(data)
    _ensure_unique_slug(collection, fields["slug"])
    fields.setdefault("is_visible", True)
    fields["intro_text"] = BlockDocument().to_json()
    return collection.insert(fields)


def update_resume(collection, resume_id, data):
    if collection.get(resume_id) is None:
        return None
    fields = validate_resume(data, partial=True)
    if "slug" in fields:
        _ensure_unique_slug(collection, fields["slug"], exclude_id=resume_id)
    if fields:
        collection.update(resume_id, fields)
    return collection.get(resume_id)


# ─── Projects ────────────────────────────────────────────────────

def create_project(collection, data):
    fields = validate_project(data)
    fields.setdefault("is_featured", False)
    fields["content"] = BlockDocument().serialize()
    return collection.insert(fields)


def update_project(collection, project_id, data):
    if collection.get(project_id) is None:
        return None
    fields = validate_project(data, partial=True)
    _check_merged_dates(collection.get(project_id), fields)
    if fields:
        collection.update(project_id, fields)
    return collection.get(project_id)


# ─── Experiences ─────────────────────────────────────────────────

def create_experience(collection, data):
    fields = validate_experience(data)
    fields.setdefault("is_visible", True)
    return collection.insert(fields)


def update_experience(collection, experience_id, data):
    if collection.get(experience_id) is None:
        return None
    fields = validate_experience(data, partial=True)
    _check_merged_dates(collection.get(experience_id), fields)
    if fields:
        collection.update(experience_id, fields)
    return collection.get(experience_id)


# ─── Flags (single + bulk) ───────────────────────────────────────

def set_flag(collection, ids, field, value):
    """Set a boolean field on each id. Returns the ids actually changed.

    Unknown ids are ignored. Each change is its own optimistic update.
    """
    changed = []
    for item_id in ids:
        record = collection.get(item_id)
        if record is None or record.get(field) == value:
            continue
        collection.update(item_id, {field: bool(value)})
        changed.append(item_id)
    if changed:
        logger.info(f"Set {field}={value} on {len(changed)} {collection.table}")
    return changed


def set_visibility(collection, ids, visible):
    return set_flag(collection, ids, "is_visible", visible)


def set_featured(collection, ids, featured):
    return set_flag(collection, ids, "is_featured", featured)


# ─── Resume <-> project links ────────────────────────────────────

def link_project(links, project_id):
    if any(link["project_id"] == project_id for link in links.items):
        raise validation.ValidationError({"project_id": "Project is already linked to this resume."})
    return links.insert({"project_id": project_id})


def unlink_project(links, project_id):
    for link in links.items:
        if link["project_id"] == project_id:
            return links.remove(link["id"])
    return False


# ─── Public reads ────────────────────────────────────────────────

def _select(remote, table, filters=None, order=None):
    try:
        return remote.select(table, filters=filters, order=order)
    except RemoteStoreError as e:
        logger.warning(f"Load of {table} failed: {e}")
        raise LoadError(f"Could not load {table}.") from e


def _public_project(project):
    document = BlockDocument.deserialize(project.get("content"))
    return {
        **project,
        "content": document.serialize(),
        "excerpt": document.to_plain_text()[:280],
    }


def sort_projects(projects):
    """Featured first, then display_order."""
    ordered = sort_records(projects, "display_order")
    return sorted(ordered, key=lambda p: not p.get("is_featured"))


def published_resumes(remote):
    """Visible resumes with their visible experiences and linked projects."""
    resumes = sort_records(
        _select(remote, RESUMES_TABLE, filters={"is_visible": True}), "display_order"
    )
    projects = {p["id"]: p for p in _select(remote, PROJECTS_TABLE)}
    result = []
    for resume in resumes:
        experiences = sort_records(
            _select(
                remote,
                EXPERIENCES_TABLE,
                filters={"resume_id": resume["id"], "is_visible": True},
            ),
            "display_order",
        )
        links = sort_records(
            _select(remote, RESUME_PROJECTS_TABLE, filters={"resume_id": resume["id"]}),
            "order_index",
        )
        result.append({
            **resume,
            "intro": BlockDocument.deserialize(resume.get("intro_text")).serialize(),
            "experiences": experiences,
            "projects": [
                _public_project(projects[link["project_id"]])
                for link in links
                if link["project_id"] in projects
            ],
        })
    return result


def published_projects(remote):
    return [_public_project(p) for p in sort_projects(_select(remote, PROJECTS_TABLE))]


def project_detail(remote, project_id):
    rows = _select(remote, PROJECTS_TABLE, filters={"id": project_id})
    return _public_project(rows[0]) if rows else None
