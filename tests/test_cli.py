"""Tests for the flask CLI commands (seed-admin, seed-stages)."""

from folio.models.kanban import KanbanStage
from folio.models.user import User


class TestSeedStages:

    def test_creates_defaults_once(self, app):
        runner = app.test_cli_runner()

        first = runner.invoke(args=["seed-stages"])
        second = runner.invoke(args=["seed-stages"])

        assert "Created 4 stages: New, In Progress, Review, Completed" in first.output
        assert "nothing to do" in second.output
        assert KanbanStage.query.count() == 4


class TestSeedAdmin:

    def test_creates_admin(self, app):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["seed-admin", "--email", "me@folio.local", "--password", "pw"])

        assert "Created admin user: me@folio.local" in result.output
        user = User.query.filter_by(email="me@folio.local").one()
        assert user.is_admin is True

    def test_existing_admin(self, app, seed_data):
        result = app.test_cli_runner().invoke(args=["seed-admin"])
        assert "already exists" in result.output
