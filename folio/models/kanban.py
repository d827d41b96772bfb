"""Kanban board models.

Stages (columns) and tickets for the message workflow board. A ticket
references exactly one stage; order_index is scoped within that stage.
Tickets created from the contact form link back to their Message.
"""

import uuid

from folio.extensions import db


class KanbanStage(db.Model):
    __tablename__ = "kanban_stages"

    DEFAULT_TITLES = ["New", "In Progress", "Review", "Completed"]

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    # Unique title stops concurrent first loads from seeding defaults twice.
    title = db.Column(db.String(255), unique=True, nullable=False)
    order_index = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    tickets = db.relationship(
        "KanbanTicket",
        backref="stage",
        lazy="dynamic",
        order_by="KanbanTicket.order_index",
    )

    def __repr__(self):
        return f"<KanbanStage {self.title}>"


class KanbanTicket(db.Model):
    __tablename__ = "kanban_tickets"
    __table_args__ = (
        db.Index("ix_kanban_tickets_stage_order", "stage_id", "order_index"),
    )

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    title = db.Column(db.String(500), nullable=False)
    description = db.Column(db.Text, nullable=True)
    stage_id = db.Column(
        db.String(36),
        db.ForeignKey("kanban_stages.id"),
        nullable=False,
    )
    message_id = db.Column(
        db.String(36),
        db.ForeignKey("messages.id", ondelete="SET NULL"),
        nullable=True,
    )
    labels = db.Column(db.JSON, nullable=True)
    due_date = db.Column(db.Date, nullable=True)
    notes = db.Column(db.Text, nullable=True)
    order_index = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    message = db.relationship("Message", foreign_keys=[message_id])

    def __repr__(self):
        return f"<KanbanTicket {self.title[:40]}>"
