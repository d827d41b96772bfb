"""Audit log helper.

Writes an AuditEvent and commits it straight away, so the row is never
left pending on the request session while remote store calls commit
their own work.
"""

import logging

from flask_login import current_user

from folio.extensions import db
from folio.models.audit import AuditEvent

logger = logging.getLogger(__name__)


def record(action, **metadata):
    actor_id = current_user.id if current_user and current_user.is_authenticated else None
    event = AuditEvent(actor_user_id=actor_id, action=action, metadata_=metadata)
    db.session.add(event)
    db.session.commit()
    logger.debug(f"Audit {action}: {metadata}")
    return event
