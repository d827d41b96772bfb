"""Storage service — media uploads to Supabase Storage (prod) or local disk (dev).

Supabase bucket: SUPABASE_STORAGE_BUCKET (default "portfolio-media").
Local fallback: instance/uploads/ directory, served by /uploads in debug.
Files a record stops pointing at (replaced or deleted) are removed again.

Files are grouped by category: resume images, project featured images
and gallery shots, and images embedded in block documents.
"""

import logging
import os
import uuid

import requests
from flask import current_app

logger = logging.getLogger(__name__)

# Max file size: 10 MB
MAX_FILE_SIZE = 10 * 1024 * 1024

CATEGORIES = ("resumes", "projects", "blocks")

ALLOWED_TYPES = {
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    "image/svg+xml",
    "application/pdf",
}

ALLOWED_EXTENSIONS = {
    ".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg", ".pdf",
}


def _get_supabase_config():
    """Return Supabase storage config if available, else None."""
    url = current_app.config.get("SUPABASE_URL")
    key = current_app.config.get("SUPABASE_SERVICE_KEY")
    bucket = current_app.config.get("SUPABASE_STORAGE_BUCKET") or "portfolio-media"

    if url and key:
        return {"url": url.rstrip("/"), "key": key, "bucket": bucket}
    return None


def validate_file(file):
    """Validate an uploaded file (from request.files).

    Returns (ok: bool, error: str|None).
    """
    if not file or not file.filename:
        return False, "No file selected."

    ext = os.path.splitext(file.filename)[1].lower()
    if ext not in ALLOWED_EXTENSIONS:
        return False, f"File type '{ext}' is not allowed. Accepted: images and PDFs."

    # Browsers misreport types often enough that the extension decides;
    # a type outside the list is only logged.
    if file.content_type and file.content_type not in ALLOWED_TYPES:
        logger.debug(f"Unexpected content type {file.content_type} for {file.filename}")

    file.seek(0, os.SEEK_END)
    size = file.tell()
    file.seek(0)

    if size > MAX_FILE_SIZE:
        return False, f"File is too large ({size / (1024*1024):.1f} MB). Maximum is 10 MB."

    if size == 0:
        return False, "File is empty."

    return True, None


def upload_file(file, category):
    """Upload a file and return metadata dict.

    Args:
        file: Werkzeug FileStorage from request.files
        category: one of CATEGORIES, used as the top-level folder

    Returns dict with filename, storage_path, content_type, file_size
    and public_url.
    """
    if category not in CATEGORIES:
        raise ValueError(f"Invalid category '{category}'. Must be one of: {', '.join(CATEGORIES)}")

    original_name = file.filename
    ext = os.path.splitext(original_name)[1].lower()
    storage_path = f"{category}/{uuid.uuid4().hex}{ext}"

    file_data = file.read()
    content_type = file.content_type or "application/octet-stream"

    # Try Supabase first, fall back to local
    supabase = _get_supabase_config()
    if supabase:
        public_url = _upload_supabase(supabase, storage_path, file_data, content_type)
    else:
        public_url = _upload_local(storage_path, file_data)

    return {
        "filename": original_name,
        "storage_path": storage_path,
        "content_type": content_type,
        "file_size": len(file_data),
        "public_url": public_url,
    }


def _upload_supabase(config, path, data, content_type):
    """Upload to Supabase Storage. Returns public URL."""
    url = f"{config['url']}/storage/v1/object/{config['bucket']}/{path}"

    headers = {
        "Authorization": f"Bearer {config['key']}",
        "Content-Type": content_type,
        "x-upsert": "true",
    }

    try:
        resp = requests.post(url, headers=headers, data=data, timeout=30)
        resp.raise_for_status()
    except requests.RequestException as e:
        logger.error(f"Supabase upload failed, storing locally: {e}")
        return _upload_local(path, data)

    logger.info(f"Uploaded to Supabase: {path}")
    return f"{config['url']}/storage/v1/object/public/{config['bucket']}/{path}"


def _upload_local(path, data):
    """Write to instance/uploads. Returns the URL path the app serves it at."""
    filepath = os.path.join(current_app.instance_path, "uploads", path)
    os.makedirs(os.path.dirname(filepath), exist_ok=True)
    with open(filepath, "wb") as f:
        f.write(data)

    logger.info(f"Uploaded locally: {filepath}")
    return f"/uploads/{path}"


def storage_path_for(url):
    """Map a URL returned by upload_file() back to its storage path.

    Returns None for anything this app did not store (external links,
    other buckets, paths outside the upload categories).
    """
    if not url:
        return None
    path = None
    if url.startswith("/uploads/"):
        path = url[len("/uploads/"):]
    else:
        supabase = _get_supabase_config()
        if supabase:
            prefix = f"{supabase['url']}/storage/v1/object/public/{supabase['bucket']}/"
            if url.startswith(prefix):
                path = url[len(prefix):]
    if not path:
        return None
    parts = path.split("/")
    if parts[0] not in CATEGORIES or ".." in parts:
        return None
    return path


def delete_file(storage_path):
    """Delete a file from storage. Best-effort, does not raise.

    Returns True when the file is gone.
    """
    supabase = _get_supabase_config()
    if supabase:
        return _delete_supabase(supabase, storage_path)
    return _delete_local(storage_path)


def discard_media(urls):
    """Delete the stored files behind urls. Returns the paths deleted.

    Local URLs are removed from disk even when Supabase is configured,
    since failed Supabase uploads fall back to local storage.
    """
    deleted = []
    for url in sorted(urls):
        path = storage_path_for(url)
        if not path:
            continue
        gone = _delete_local(path) if url.startswith("/uploads/") else delete_file(path)
        if gone:
            deleted.append(path)
    return deleted


def _delete_supabase(config, path):
    url = f"{config['url']}/storage/v1/object/{config['bucket']}/{path}"
    headers = {"Authorization": f"Bearer {config['key']}"}
    try:
        resp = requests.delete(url, headers=headers, timeout=10)
        resp.raise_for_status()
    except requests.RequestException as e:
        logger.warning(f"Failed to delete {path} from Supabase: {e}")
        return False
    logger.info(f"Deleted from Supabase: {path}")
    return True


def _delete_local(path):
    filepath = os.path.join(current_app.instance_path, "uploads", path)
    try:
        os.remove(filepath)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Failed to delete local file {filepath}: {e}")
        return False
    logger.info(f"Deleted locally: {filepath}")
    return True
