"""
Shared pytest fixtures for the Bitacora dashboard test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - fake_store: in-memory TableStore with failure and hold controls
    - make_project / make_note / make_token: SQL row factories
"""

import asyncio
from datetime import date, datetime, timezone

import pytest

from bitacora import create_app
from bitacora.integrations.store_gateway import MANY, StoreResult, TableStore, _project_columns, shape_rows
from bitacora.models import db as _db
from bitacora.models.client_token import ClientToken
from bitacora.models.project import Project, ProjectPhase
from bitacora.models.session_note import SessionNote

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── SQL row factories ────────────────────────────────────────────────────


@pytest.fixture()
def make_project():
    def _make(name="Retail Rollout", client_name="Acme Stores", phase=None):
        project = Project(name=name, client_name=client_name)
        _db.session.add(project)
        if phase is not None:
            _db.session.add(ProjectPhase(project_name=name, current_phase=phase))
        _db.session.commit()
        return project
    return _make


@pytest.fixture()
def make_note():
    def _make(project, title="Weekly sync", on=date(2024, 1, 5), summary="Reviewed open actions.", **kw):
        note = SessionNote(
            project_id=project.id,
            title=title,
            date=on,
            tag=kw.pop("tag", "Session"),
            summary=summary,
            client_status=kw.pop("client_status", "deferred"),
            **kw,
        )
        _db.session.add(note)
        _db.session.commit()
        return note
    return _make


@pytest.fixture()
def make_token():
    def _make(project_name, token="tok-valid-0001", *, active=True, expires_at=None, client_name="Acme Stores"):
        row = ClientToken(
            token=token,
            project_name=project_name,
            client_name=client_name,
            active=active,
            expires_at=expires_at,
        )
        _db.session.add(row)
        _db.session.commit()
        return row
    return _make


# ── In-memory store ──────────────────────────────────────────────────────


class FakeTableStore(TableStore):
    """Dict-backed ``TableStore`` for exercising the services without a database.

    ``fail(op, table)`` makes every later matching call return an error.
    ``hold(op, table, **filters)`` returns an ``asyncio.Event``; matching
    calls wait on it before touching the tables.
    """

    backend = "fake"

    def __init__(self, tables=None):
        self.tables = {name: [dict(r) for r in rows] for name, rows in (tables or {}).items()}
        self.calls = []
        self._failures = {}
        self._holds = []
        self._next_id = 1000

    def fail(self, op, table, error="store unavailable"):
        self._failures[(op, table)] = error

    def heal(self, op, table):
        self._failures.pop((op, table), None)

    def hold(self, op, table, **filters):
        event = asyncio.Event()
        self._holds.append((op, table, filters, event))
        return event

    def rows(self, table):
        return self.tables.setdefault(table, [])

    async def _enter(self, op, table, filters):
        self.calls.append((op, table, dict(filters or {})))
        for h_op, h_table, h_filters, event in self._holds:
            if h_op == op and h_table == table and all(
                (filters or {}).get(k) == v for k, v in h_filters.items()
            ):
                await event.wait()
        await asyncio.sleep(0)
        return self._failures.get((op, table))

    @staticmethod
    def _match(row, filters):
        return all(row.get(k) == v for k, v in (filters or {}).items())

    async def select(self, table, *, columns="*", filters=None, order=None,
                     descending=False, mode=MANY, limit=None):
        self._check_mode(mode)
        error = await self._enter("select", table, filters)
        if error:
            return StoreResult.failure(error)
        rows = [dict(r) for r in self.rows(table) if self._match(r, filters)]
        if order:
            rows = sorted(rows, key=lambda r: r.get(order), reverse=descending)
        if limit:
            rows = rows[:limit]
        return shape_rows(_project_columns(rows, columns), mode)

    async def insert(self, table, rows):
        error = await self._enter("insert", table, None)
        if error:
            return StoreResult.failure(error)
        created = []
        for row in rows:
            row = dict(row)
            if "id" not in row:
                self._next_id += 1
                row["id"] = self._next_id
            self.rows(table).append(row)
            created.append(dict(row))
        return StoreResult.success(created)

    async def update(self, table, values, filters):
        error = await self._enter("update", table, filters)
        if error:
            return StoreResult.failure(error)
        updated = []
        for row in self.rows(table):
            if self._match(row, filters):
                row.update(values)
                updated.append(dict(row))
        return StoreResult.success(updated)

    def writes(self, op, table):
        return [c for c in self.calls if c[0] == op and c[1] == table]


@pytest.fixture()
def fake_store():
    """Two projects: Alpha (phase 3, two notes) and Beta (no phase row, one note)."""
    return FakeTableStore({
        "projects": [
            {"id": 1, "name": "Alpha", "client_name": "Alpha Corp"},
            {"id": 2, "name": "Beta", "client_name": "Beta Ltd"},
        ],
        "project_phase": [
            {"project_name": "Alpha", "current_phase": 3},
        ],
        "sessions": [
            {"id": 11, "project_id": 1, "title": "Kickoff", "date": "2024-01-05",
             "tag": "Session", "summary": "Scope agreed.", "client_status": "done"},
            {"id": 12, "project_id": 1, "title": "Audit", "date": "2024-02-15",
             "tag": "Workshop", "summary": "Store audit findings.", "client_status": "deferred",
             "client_responsible": "Maria"},
            {"id": 21, "project_id": 2, "title": "Intro", "date": "2024-03-01",
             "tag": "Session", "summary": "First contact.", "client_status": "not_done"},
        ],
        "client_tokens": [
            {"token": "tok-alpha", "project_name": "Alpha", "client_name": "Alpha Corp",
             "active": True, "expires_at": None},
            {"token": "tok-revoked", "project_name": "Alpha", "client_name": "Alpha Corp",
             "active": False, "expires_at": None},
            {"token": "tok-old", "project_name": "Alpha", "client_name": "Alpha Corp",
             "active": True, "expires_at": "2024-05-01T00:00:00+00:00"},
            {"token": "tok-ghost", "project_name": "Ghost", "client_name": "Nobody",
             "active": True, "expires_at": None},
        ],
    })


@pytest.fixture()
def clock():
    return lambda: NOW
