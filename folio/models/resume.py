"""Resume models.

- Resume: one public resume variant (e.g. "Product", "Engineering").
- Experience: a work history entry shown on one resume.
- ResumeProject: ordered link between a resume and the projects it features.

Resumes and experiences are ordered by display_order (lower sorts first).
The intro is a block document stored as a JSON string in intro_text.
"""

import uuid

from folio.extensions import db


class Resume(db.Model):
    __tablename__ = "resumes"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    slug = db.Column(db.String(120), unique=True, nullable=False)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=False, default="")
    image_url = db.Column(db.String(1000), nullable=True)
    intro_text = db.Column(db.Text, nullable=True)  # JSON-stringified block document
    education = db.Column(db.JSON, nullable=True)
    skills = db.Column(db.JSON, nullable=True)
    certifications = db.Column(db.JSON, nullable=True)
    display_order = db.Column(db.Integer, nullable=False, default=0)
    is_visible = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    experiences = db.relationship(
        "Experience",
        backref="resume",
        lazy="dynamic",
        cascade="all, delete-orphan",
        order_by="Experience.display_order",
    )

    def __repr__(self):
        return f"<Resume {self.slug}>"


class Experience(db.Model):
    __tablename__ = "experiences"
    __table_args__ = (
        db.Index("ix_experiences_resume_order", "resume_id", "display_order"),
    )

    EMPLOYMENT_TYPES = ["full_time", "part_time", "contract", "freelance", "internship"]

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    resume_id = db.Column(
        db.String(36),
        db.ForeignKey("resumes.id", ondelete="CASCADE"),
        nullable=False,
    )
    title = db.Column(db.String(255), nullable=False)
    company = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=False, default="")
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=True)  # null = current role
    location = db.Column(db.String(255), nullable=True)
    employment_type = db.Column(db.String(50), nullable=True)
    achievements = db.Column(db.JSON, nullable=True)
    is_visible = db.Column(db.Boolean, default=True, nullable=False)
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
        return f"<Experience {self.title} @ {self.company}>"


class ResumeProject(db.Model):
    __tablename__ = "resume_projects"
    __table_args__ = (
        db.UniqueConstraint("resume_id", "project_id", name="uq_resume_project"),
    )

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    resume_id = db.Column(
        db.String(36),
        db.ForeignKey("resumes.id", ondelete="CASCADE"),
        nullable=False,
    )
    project_id = db.Column(
        db.String(36),
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
    )
    order_index = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    def __repr__(self):
        return f"<ResumeProject resume={self.resume_id} project={self.project_id}>"
