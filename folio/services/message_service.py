"""Message service — contact form intake and message status workflow.

A submitted message is always stored first. Turning it into a ticket in
the board's first stage is a best-effort side effect: if that fails the
message still stands and the result reports ticket_id=None.
"""

import logging
from collections import namedtuple

from folio.services import validation
from folio.services.persistence import LoadError
from folio.services.remote_store import RemoteStoreError
from folio.services.ticket_board import TicketBoard

logger = logging.getLogger(__name__)

MESSAGES_TABLE = "messages"
MESSAGE_STATUSES = ["new", "read", "replied", "archived"]
MAX_MESSAGE_LENGTH = 5000

SubmitResult = namedtuple("SubmitResult", ["message", "ticket_id"])


def validate_message(name, email, message):
    data = {"name": name, "email": email, "message": message}
    errors = {}
    cleaned = {
        "name": validation.required_text(data, "name", errors, max_length=255),
        "email": validation.email(data, "email", errors),
        "message": validation.required_text(
            data, "message", errors, max_length=MAX_MESSAGE_LENGTH
        ),
    }
    validation.check(errors)
    return cleaned


def submit_message(remote, name, email, message, resume_id=None, queue=None):
    """Store an inbound message and open a ticket for it.

    Raises ValidationError before touching the store. A failed message
    insert propagates as RemoteStoreError.
    """
    fields = validate_message(name, email, message)
    record = remote.insert(MESSAGES_TABLE, {
        **fields,
        "resume_id": resume_id or None,
        "status": "new",
    })
    logger.info(f"Message {record['id']} received from {fields['name']} <{fields['email']}>")

    ticket_id = None
    try:
        ticket_id = _open_ticket(remote, record, queue)
    except Exception:
        logger.exception(f"Ticket creation failed for message {record['id']}")
    return SubmitResult(record, ticket_id)


def _open_ticket(remote, message, queue=None):
    board = TicketBoard(remote, queue=queue)
    board.load()
    stage_id = board.first_stage_id()
    if stage_id is None:
        raise LoadError("No kanban stage available for new messages.")
    ticket = board.create_ticket(
        stage_id,
        {
            "title": f"New message from {message['name']}",
            "description": message["message"],
        },
        message_id=message["id"],
    )
    return ticket["id"]


def list_messages(remote, status=None):
    filters = {"status": status} if status else None
    try:
        return remote.select(MESSAGES_TABLE, filters=filters, order=["-created_at"])
    except RemoteStoreError as e:
        logger.warning(f"Load of {MESSAGES_TABLE} failed: {e}")
        raise LoadError(f"Could not load {MESSAGES_TABLE}.") from e


def get_message(remote, message_id):
    rows = remote.select(MESSAGES_TABLE, filters={"id": message_id}, limit=1)
    return rows[0] if rows else None


def update_message_status(remote, message_id, status):
    if status not in MESSAGE_STATUSES:
        raise validation.ValidationError({
            "status": f"Invalid status '{status}'. Must be one of: {', '.join(MESSAGE_STATUSES)}"
        })
    return remote.update(MESSAGES_TABLE, message_id, {"status": status})
