"""Project model.

Portfolio projects. Detail content is a block document stored in a JSON
column. is_featured projects are listed first on the public site.
"""

import uuid

from folio.extensions import db


class Project(db.Model):
    __tablename__ = "projects"

    # -- Valid statuses --
    STATUSES = ["completed", "in_progress", "planned"]

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=False, default="")
    content = db.Column(db.JSON, nullable=True)  # {"blocks": [...]}
    technologies = db.Column(db.JSON, nullable=True)
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=True)
    status = db.Column(
        db.String(50), default="completed", nullable=False
    )  # completed | in_progress | planned
    featured_image = db.Column(db.String(1000), nullable=True)
    gallery = db.Column(db.JSON, nullable=True)
    is_featured = db.Column(db.Boolean, default=False, nullable=False)
    display_order = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self):
        return f"<Project {self.title[:40]}>"
