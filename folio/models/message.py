"""Message model.

Contact form submissions from the public site. Each new message also
spawns a KanbanTicket in the first stage (see message_service).
"""

import uuid

from folio.extensions import db


class Message(db.Model):
    __tablename__ = "messages"

    # -- Valid statuses --
    STATUSES = ["new", "read", "replied", "archived"]

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    message = db.Column(db.Text, nullable=False)
    resume_id = db.Column(
        db.String(36),
        db.ForeignKey("resumes.id", ondelete="SET NULL"),
        nullable=True,
    )  # which resume page the visitor wrote from, if any
    status = db.Column(
        db.String(50), default="new", nullable=False
    )  # new | read | replied | archived
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    def __repr__(self):
        return f"<Message from {self.email} ({self.status})>"
