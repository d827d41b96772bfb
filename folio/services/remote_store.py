"""Remote store — table-level CRUD against the hosted backend.

Two interchangeable backends behind one small interface:

- SupabaseStore: PostgREST over HTTP (prod). Rows come back as JSON dicts.
- SqlStore: the same tables via Flask-SQLAlchemy models (dev + tests).

get_remote_store() picks Supabase when SUPABASE_URL + SUPABASE_SERVICE_KEY
are configured, otherwise the local database. Stores are handed to the
ordering/board services explicitly so they can be swapped for fakes.

Records are plain dicts with JSON-friendly values (ISO date strings).
"""

import logging
from datetime import date, datetime

import requests
from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from folio.extensions import db

logger = logging.getLogger(__name__)


class RemoteStoreError(Exception):
    """The remote store rejected a call or could not be reached."""


class RemoteStoreTimeout(RemoteStoreError):
    """The remote store did not answer in time."""


class RemoteStore:
    """Interface shared by every backend.

    order: list of column names, "-" prefix for descending.
    filters: dict of column -> value (equality; None means IS NULL).
    """

    def select(self, table, filters=None, order=None, limit=None):
        raise NotImplementedError

    def insert(self, table, record):
        raise NotImplementedError

    def update(self, table, record_id, fields):
        raise NotImplementedError

    def delete(self, table, record_id):
        raise NotImplementedError


# ─── Supabase (PostgREST) ────────────────────────────────────────

class SupabaseStore(RemoteStore):
    def __init__(self, url, key, timeout=5.0, session=None):
        self.base_url = f"{url.rstrip('/')}/rest/v1"
        self.timeout = timeout
        self.session = session or requests.Session()
        self.headers = {
            "apikey": key,
            "Authorization": f"Bearer {key}",
            "Content-Type": "application/json",
        }

    def _request(self, method, table, params=None, payload=None, prefer=None):
        headers = dict(self.headers)
        if prefer:
            headers["Prefer"] = prefer
        url = f"{self.base_url}/{table}"
        try:
            resp = self.session.request(
                method,
                url,
                params=params,
                json=payload,
                headers=headers,
                timeout=self.timeout,
            )
            resp.raise_for_status()
        except requests.Timeout as e:
            raise RemoteStoreTimeout(f"{method} {table} timed out after {self.timeout}s") from e
        except requests.RequestException as e:
            raise RemoteStoreError(f"{method} {table} failed: {e}") from e

        if not resp.content:
            return None
        return resp.json()

    @staticmethod
    def _filter_params(filters):
        params = {}
        for column, value in (filters or {}).items():
            if value is None:
                params[column] = "is.null"
            elif isinstance(value, bool):
                params[column] = f"eq.{str(value).lower()}"
            else:
                params[column] = f"eq.{value}"
        return params

    @staticmethod
    def _order_param(order):
        parts = []
        for key in order:
            if key.startswith("-"):
                parts.append(f"{key[1:]}.desc")
            else:
                parts.append(f"{key}.asc.nullslast")
        return ",".join(parts)

    def select(self, table, filters=None, order=None, limit=None):
        params = {"select": "*"}
        params.update(self._filter_params(filters))
        if order:
            params["order"] = self._order_param(order)
        if limit:
            params["limit"] = str(limit)
        return self._request("GET", table, params=params) or []

    def insert(self, table, record):
        rows = self._request(
            "POST", table, payload=record, prefer="return=representation"
        )
        if not rows:
            raise RemoteStoreError(f"Insert into {table} returned no row.")
        return rows[0]

    def update(self, table, record_id, fields):
        rows = self._request(
            "PATCH",
            table,
            params={"id": f"eq.{record_id}"},
            payload=fields,
            prefer="return=representation",
        )
        if not rows:
            raise RemoteStoreError(f"{table} record {record_id} not found.")
        return rows[0]

    def delete(self, table, record_id):
        self._request("DELETE", table, params={"id": f"eq.{record_id}"})


# ─── Local database (Flask-SQLAlchemy) ───────────────────────────

def _table_models():
    """Map remote table names to models. Imported lazily to avoid circular deps."""
    from folio.models.kanban import KanbanStage, KanbanTicket
    from folio.models.message import Message
    from folio.models.project import Project
    from folio.models.resume import Experience, Resume, ResumeProject

    return {
        "resumes": Resume,
        "projects": Project,
        "resume_projects": ResumeProject,
        "experiences": Experience,
        "messages": Message,
        "kanban_stages": KanbanStage,
        "kanban_tickets": KanbanTicket,
    }


def _to_json_value(value):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def _from_json_value(column, value):
    """Parse ISO strings back into date/datetime for typed columns."""
    if not isinstance(value, str) or not value:
        return value
    if isinstance(column.type, db.DateTime):
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    if isinstance(column.type, db.Date):
        return date.fromisoformat(value[:10])
    return value


class SqlStore(RemoteStore):
    def __init__(self, app):
        self.app = app

    def _model(self, table):
        model = _table_models().get(table)
        if model is None:
            raise RemoteStoreError(f"Unknown table '{table}'.")
        return model

    @staticmethod
    def _to_record(row):
        return {
            column.name: _to_json_value(getattr(row, column.key))
            for column in row.__table__.columns
        }

    @staticmethod
    def _assign(row, model, fields):
        columns = {column.name: column for column in model.__table__.columns}
        for key, value in fields.items():
            column = columns.get(key)
            if column is None:
                raise RemoteStoreError(f"Unknown column '{key}' on {model.__tablename__}.")
            setattr(row, column.key, _from_json_value(column, value))

    @staticmethod
    def _attr(model, name):
        if name not in model.__table__.columns:
            raise RemoteStoreError(f"Unknown column '{name}' on {model.__tablename__}.")
        return getattr(model, name)

    def select(self, table, filters=None, order=None, limit=None):
        model = self._model(table)
        with self.app.app_context():
            query = model.query
            for column, value in (filters or {}).items():
                attr = self._attr(model, column)
                query = query.filter(attr.is_(None) if value is None else attr == value)
            for key in order or []:
                attr = self._attr(model, key.lstrip("-"))
                query = query.order_by(attr.desc() if key.startswith("-") else attr.asc())
            if limit:
                query = query.limit(limit)
            try:
                return [self._to_record(row) for row in query.all()]
            except SQLAlchemyError as e:
                raise RemoteStoreError(f"Select from {table} failed: {e}") from e

    def insert(self, table, record):
        model = self._model(table)
        with self.app.app_context():
            row = model()
            self._assign(row, model, record)
            db.session.add(row)
            return self._commit(row, f"Insert into {table}")

    def update(self, table, record_id, fields):
        model = self._model(table)
        with self.app.app_context():
            row = db.session.get(model, record_id)
            if row is None:
                raise RemoteStoreError(f"{table} record {record_id} not found.")
            self._assign(row, model, fields)
            return self._commit(row, f"Update {table}/{record_id}")

    def delete(self, table, record_id):
        model = self._model(table)
        with self.app.app_context():
            row = db.session.get(model, record_id)
            if row is None:
                return
            db.session.delete(row)
            self._commit(None, f"Delete {table}/{record_id}")

    def _commit(self, row, label):
        try:
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            raise RemoteStoreError(f"{label} failed: {e}") from e
        return self._to_record(row) if row is not None else None


def get_remote_store():
    """Return the configured remote store for the current app."""
    app = current_app._get_current_object()
    url = app.config.get("SUPABASE_URL")
    key = app.config.get("SUPABASE_SERVICE_KEY")
    if url and key:
        return SupabaseStore(url, key, timeout=app.config.get("REMOTE_STORE_TIMEOUT", 5.0))
    return SqlStore(app)
