"""Block document editing for resumes (intro_text) and projects (content).

Each operation loads the record, applies one BlockDocument mutation and
writes the whole document back. Resumes store the document as a JSON
string, projects as a JSON value. Uploaded images a record no longer
points at after the write are deleted from storage.
"""

import logging

from folio.services import storage_service
from folio.services.blocks import BlockDocument
from folio.services.persistence import LoadError
from folio.services.remote_store import RemoteStoreError

logger = logging.getLogger(__name__)

# table -> (column, stored as JSON string?)
DOCUMENT_FIELDS = {
    "resumes": ("intro_text", True),
    "projects": ("content", False),
}

# Plain URL columns that may hold an upload.
MEDIA_FIELDS = ("image_url", "featured_image")

OPERATIONS = ("add", "update", "move", "remove")


def _field(table):
    if table not in DOCUMENT_FIELDS:
        raise ValueError(f"'{table}' has no block document.")
    return DOCUMENT_FIELDS[table]


def media_urls(record):
    """Image URLs a resume or project record points at, block images included."""
    if not record:
        return set()
    urls = {record.get(field) for field in MEDIA_FIELDS}
    urls.update(record.get("gallery") or [])
    for column, _ in DOCUMENT_FIELDS.values():
        if column in record:
            urls |= BlockDocument.deserialize(record[column]).image_urls()
    urls.discard(None)
    urls.discard("")
    return urls


def discard_replaced_media(before, after):
    """Delete uploads present in before but no longer referenced by after."""
    return storage_service.discard_media(media_urls(before) - media_urls(after))


def _load_row(remote, table, record_id):
    try:
        rows = remote.select(table, filters={"id": record_id})
    except RemoteStoreError as e:
        raise LoadError(f"Could not load {table}/{record_id}.") from e
    return rows[0] if rows else None


def load_document(remote, table, record_id):
    """Return the record's BlockDocument, or None if the record is missing."""
    column, _ = _field(table)
    row = _load_row(remote, table, record_id)
    if row is None:
        return None
    return BlockDocument.deserialize(row.get(column))


def save_document(remote, table, record_id, document):
    column, as_string = _field(table)
    value = document.to_json() if as_string else document.serialize()
    remote.update(table, record_id, {column: value})
    return document.serialize()


def apply_operation(remote, table, record_id, op, data):
    """Apply one block operation. Returns (document_dict, block_id).

    Returns (None, None) when the record does not exist. Bad input raises
    ValueError.
    """
    if op not in OPERATIONS:
        raise ValueError(f"Invalid operation '{op}'. Must be one of: {', '.join(OPERATIONS)}")
    column, _ = _field(table)
    row = _load_row(remote, table, record_id)
    if row is None:
        return None, None
    document = BlockDocument.deserialize(row.get(column))

    block_id = data.get("block_id")
    if op == "add":
        block_id = document.add_block(data.get("type"), data.get("content"))
    elif op == "update":
        if not document.update_block_payload(block_id, data.get("content")):
            return document.serialize(), None
    elif op == "move":
        if not document.move_block(block_id, data.get("direction")):
            return document.serialize(), block_id
    elif op == "remove":
        if not document.remove_block(block_id):
            return document.serialize(), None

    saved = save_document(remote, table, record_id, document)
    logger.info(f"Block {op} on {table}/{record_id} ({block_id})")
    discard_replaced_media(row, {**row, column: saved})
    return saved, block_id
