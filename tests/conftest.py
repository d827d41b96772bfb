"""Shared test fixtures for the Folio test suite.

Provides:
- app: Flask app configured for testing (in-memory SQLite, CSRF off,
  inline persistence queue)
- client: Flask test client
- db_session: clean database per test (tables created/dropped)
- seed_data: admin user plus a resume, two projects and two experiences
- api_headers: Bearer auth headers for the admin JSON API
- fake_store / inline_queue: in-memory remote store + synchronous queue
  for service-level tests
"""

import pytest
from werkzeug.security import generate_password_hash

from folio import create_app
from folio.extensions import db as _db
from folio.models.project import Project
from folio.models.resume import Experience, Resume
from folio.models.user import User
from folio.services.persistence import InlineExecutor, PersistenceQueue

from fakes import FakeRemoteStore


@pytest.fixture(scope="session")
def app():
    """Create the Flask application configured for testing."""
    app = create_app("testing")
    yield app


@pytest.fixture(autouse=True)
def db_session(app):
    """Create all tables before each test, drop after."""
    with app.app_context():
        _db.create_all()
        yield _db.session
        _db.session.rollback()
        _db.drop_all()


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture
def api_headers(app):
    return {"Authorization": f"Bearer {app.config['ADMIN_API_KEY']}"}


@pytest.fixture
def fake_store():
    return FakeRemoteStore()


@pytest.fixture
def inline_queue():
    return PersistenceQueue(executor=InlineExecutor())


@pytest.fixture
def seed_data(app, db_session):
    """Seed the database with an admin user and some portfolio content.

    Returns a dict of plain IDs so tests can use them across contexts.
    """
    from datetime import date

    admin = User(
        email="admin@folio.local",
        password_hash=generate_password_hash("admin123"),
        full_name="Admin User",
        is_admin=True,
    )
    _db.session.add(admin)

    resume = Resume(
        slug="engineering",
        title="Engineering",
        description="Backend and platform work",
        display_order=0,
        is_visible=True,
    )
    hidden_resume = Resume(
        slug="draft",
        title="Draft",
        display_order=1,
        is_visible=False,
    )
    _db.session.add_all([resume, hidden_resume])
    _db.session.flush()

    first_job = Experience(
        resume_id=resume.id,
        title="Staff Engineer",
        company="Acme",
        start_date=date(2021, 3, 1),
        display_order=0,
    )
    second_job = Experience(
        resume_id=resume.id,
        title="Engineer",
        company="Initech",
        start_date=date(2017, 6, 1),
        end_date=date(2021, 2, 1),
        display_order=1,
    )
    alpha = Project(
        title="Alpha",
        start_date=date(2022, 1, 1),
        display_order=0,
        content={"blocks": [{"id": "b1", "type": "text", "content": "Alpha intro", "order": 0}]},
    )
    beta = Project(
        title="Beta",
        start_date=date(2023, 1, 1),
        display_order=1,
        is_featured=True,
    )
    _db.session.add_all([first_job, second_job, alpha, beta])
    _db.session.commit()

    return {
        "admin_id": admin.id,
        "resume_id": resume.id,
        "hidden_resume_id": hidden_resume.id,
        "experience_ids": [first_job.id, second_job.id],
        "alpha_id": alpha.id,
        "beta_id": beta.id,
    }

