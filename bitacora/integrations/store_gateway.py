"""
Tabular store gateway.

All reads and writes of ``projects``, ``sessions``, ``project_phase`` and
``client_tokens`` go through a ``TableStore``. Direct queries from services
or blueprints are FORBIDDEN.

Contract:
  - Per named table: filtered read (equality predicates, optional order,
    "many" / "single" / "maybe_single" fetch modes), insert (returns the
    created rows) and update by equality predicate (returns updated rows).
  - Failures are RETURNED, never raised: every call yields a
    ``StoreResult(data, error)`` and callers must check ``error`` before
    trusting ``data``.

Backends:
  - ``SqlTableStore`` : the app database through Flask-SQLAlchemy models.
    Runs inline on the event loop; needs an active app context.
  - ``RestTableStore``: a PostgREST-compatible endpoint over ``requests``.
    Each call is a blocking HTTP request off-loaded with ``asyncio.to_thread``
    so independent loads are genuinely in flight at the same time.

Testability: pass a mock ``session`` to RestTableStore() in tests instead of
letting it create a real requests.Session internally.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

import requests
import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError

from bitacora.utils.helpers import parse_date, parse_timestamp

logger = logging.getLogger(__name__)

# ── Fetch modes ────────────────────────────────────────────────────────────
MANY = "many"
SINGLE = "single"              # exactly one row, else error
MAYBE_SINGLE = "maybe_single"  # zero rows → None, more than one → error
_MODES = frozenset({MANY, SINGLE, MAYBE_SINGLE})

# ── Retry constants (REST reads only; writes are never retried) ────────────
_RETRY_MAX = 2
_RETRY_BACKOFF_SECONDS = [0.5, 2]

# ── Default request timeout ────────────────────────────────────────────────
_DEFAULT_TIMEOUT = 15


class StoreResult:
    """Result pair returned by every store call.

    Attributes:
        data:   Row dict, list of row dicts, or None.
        error:  Human-readable error message, or None on success.

    Unpacks like a tuple: ``data, error = await store.select(...)``.
    """

    __slots__ = ("data", "error")

    def __init__(self, data: Any = None, error: str | None = None) -> None:
        self.data = data
        self.error = error

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, data: Any) -> "StoreResult":
        return cls(data=data, error=None)

    @classmethod
    def failure(cls, error: str) -> "StoreResult":
        return cls(data=None, error=error or "Unknown store error")

    def __iter__(self):
        yield self.data
        yield self.error

    def __repr__(self) -> str:
        if self.ok:
            return f"<StoreResult ok data={self.data!r}>"
        return f"<StoreResult error={self.error!r}>"


def _project_columns(rows: list[dict], columns: str) -> list[dict]:
    """Keep only the requested comma-separated columns (``*`` keeps all)."""
    wanted = [c.strip() for c in (columns or "*").split(",") if c.strip()]
    if not wanted or "*" in wanted:
        return rows
    return [{c: row.get(c) for c in wanted} for row in rows]


def shape_rows(rows: list[dict], mode: str) -> StoreResult:
    """Apply the fetch mode to a list of rows."""
    if mode == MANY:
        return StoreResult.success(rows)
    if len(rows) > 1:
        return StoreResult.failure(f"Expected at most one row, got {len(rows)}")
    if not rows:
        if mode == SINGLE:
            return StoreResult.failure("Expected exactly one row, got 0")
        return StoreResult.success(None)
    return StoreResult.success(rows[0])


class TableStore:
    """Abstract tabular store. Subclasses implement the three coroutines."""

    backend = "abstract"

    async def select(
        self,
        table: str,
        *,
        columns: str = "*",
        filters: dict | None = None,
        order: str | None = None,
        descending: bool = False,
        mode: str = MANY,
        limit: int | None = None,
    ) -> StoreResult:
        raise NotImplementedError

    async def insert(self, table: str, rows: list[dict]) -> StoreResult:
        raise NotImplementedError

    async def update(self, table: str, values: dict, filters: dict) -> StoreResult:
        raise NotImplementedError

    async def ping(self) -> StoreResult:
        """Lightest possible read, used by the health check."""
        return await self.select("projects", columns="id", limit=1)

    @staticmethod
    def _check_mode(mode: str) -> None:
        if mode not in _MODES:
            raise ValueError(f"Unknown fetch mode: {mode!r}")


# ═════════════════════════════════════════════════════════════════════════════
# SQL backend
# ═════════════════════════════════════════════════════════════════════════════


class SqlTableStore(TableStore):
    """Store backed by the Flask-SQLAlchemy models in ``bitacora.models``.

    Each operation is its own transaction: committed on success, rolled
    back and reported as ``StoreResult.error`` on failure.
    """

    backend = "sql"

    def __init__(self, db=None, tables: dict | None = None) -> None:
        if db is None or tables is None:
            from bitacora.models import TABLES, db as _db
            db = db or _db
            tables = tables or TABLES
        self._db = db
        self._tables = tables

    def _model(self, table: str):
        model = self._tables.get(table)
        if model is None:
            raise LookupError(f"Unknown table: {table}")
        return model

    @staticmethod
    def _column(model, name: str):
        column = model.__table__.columns.get(name)
        if column is None:
            raise LookupError(f"Unknown column {model.__tablename__}.{name}")
        return column

    def _coerce(self, model, values: dict) -> dict:
        """Convert ISO strings to date/datetime for typed columns."""
        out = {}
        for key, value in values.items():
            column = self._column(model, key)
            if value is not None and isinstance(column.type, sa.DateTime):
                value = parse_timestamp(value)
            elif value is not None and isinstance(column.type, sa.Date):
                value = parse_date(value)
            out[key] = value
        return out

    def _filtered(self, model, filters: dict | None):
        stmt = sa.select(model)
        for key, value in self._coerce(model, filters or {}).items():
            stmt = stmt.where(self._column(model, key) == value)
        return stmt

    async def select(
        self,
        table: str,
        *,
        columns: str = "*",
        filters: dict | None = None,
        order: str | None = None,
        descending: bool = False,
        mode: str = MANY,
        limit: int | None = None,
    ) -> StoreResult:
        self._check_mode(mode)
        try:
            model = self._model(table)
            stmt = self._filtered(model, filters)
            if order:
                col = self._column(model, order)
                pk = model.__table__.primary_key.columns.values()[0]
                # Equal keys: most recently created row first when descending
                stmt = stmt.order_by(
                    col.desc() if descending else col.asc(),
                    pk.desc() if descending else pk.asc(),
                )
            if mode != MANY:
                stmt = stmt.limit(2)
            elif limit:
                stmt = stmt.limit(limit)
            rows = [obj.to_dict() for obj in self._db.session.execute(stmt).scalars()]
        except (SQLAlchemyError, LookupError) as exc:
            self._db.session.rollback()
            logger.warning("SQL select failed table=%s error=%s", table, exc)
            return StoreResult.failure(str(exc))
        return shape_rows(_project_columns(rows, columns), mode)

    async def insert(self, table: str, rows: list[dict]) -> StoreResult:
        try:
            model = self._model(table)
            objs = [model(**self._coerce(model, row)) for row in rows]
            self._db.session.add_all(objs)
            self._db.session.commit()
            created = [obj.to_dict() for obj in objs]
        except (SQLAlchemyError, LookupError) as exc:
            self._db.session.rollback()
            logger.warning("SQL insert failed table=%s error=%s", table, exc)
            return StoreResult.failure(str(exc))
        return StoreResult.success(created)

    async def update(self, table: str, values: dict, filters: dict) -> StoreResult:
        try:
            model = self._model(table)
            if not filters:
                raise LookupError("Refusing unfiltered update")
            objs = self._db.session.execute(self._filtered(model, filters)).scalars().all()
            changes = self._coerce(model, values)
            for obj in objs:
                for key, value in changes.items():
                    setattr(obj, key, value)
            self._db.session.commit()
            updated = [obj.to_dict() for obj in objs]
        except (SQLAlchemyError, LookupError) as exc:
            self._db.session.rollback()
            logger.warning("SQL update failed table=%s error=%s", table, exc)
            return StoreResult.failure(str(exc))
        return StoreResult.success(updated)


# ═════════════════════════════════════════════════════════════════════════════
# REST (PostgREST) backend
# ═════════════════════════════════════════════════════════════════════════════


def _eq(value: Any) -> str:
    if isinstance(value, bool):
        return "eq." + ("true" if value else "false")
    if value is None:
        return "is.null"
    return f"eq.{value}"


class RestTableStore(TableStore):
    """PostgREST-compatible HTTP store.

    Usage:
        store = RestTableStore("https://xyz.example.co", api_key="...")
        data, error = await store.select("projects", order="name")
    """

    backend = "rest"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout: int = _DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._api_key = api_key
        self.timeout = timeout
        # Inject custom session for testing; create real one lazily otherwise.
        self._session: requests.Session | None = session

    # ── HTTP session ─────────────────────────────────────────────────────────

    @property
    def session(self) -> requests.Session:
        """Return (or lazily create) the requests.Session."""
        if self._session is None:
            self._session = requests.Session()
        return self._session

    def _headers(self, prefer: str | None = None) -> dict:
        headers = {
            "apikey": self._api_key,
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    @staticmethod
    def _error_text(resp: requests.Response) -> str:
        try:
            body = resp.json()
        except ValueError:
            return f"HTTP {resp.status_code}: {resp.text[:500]}"
        if isinstance(body, dict) and body.get("message"):
            return f"HTTP {resp.status_code}: {body['message']}"
        return f"HTTP {resp.status_code}: {str(body)[:500]}"

    # ── Core request dispatcher ───────────────────────────────────────────────

    def _request(
        self,
        method: str,
        table: str,
        *,
        params: dict | None = None,
        json_body: dict | list | None = None,
        prefer: str | None = None,
    ) -> StoreResult:
        """Execute one HTTP request. Blocking; always returns, never raises.

        GET requests are retried on network errors and 5xx responses up to
        _RETRY_MAX times. Writes are attempted exactly once.
        """
        url = f"{self.base_url}/rest/v1/{table}"
        attempts = _RETRY_MAX + 1 if method == "GET" else 1
        last_error = "Unknown error"

        for attempt in range(attempts):
            kwargs: dict[str, Any] = {"headers": self._headers(prefer), "timeout": self.timeout}
            if params:
                kwargs["params"] = params
            if json_body is not None:
                kwargs["json"] = json_body
            try:
                t0 = time.perf_counter()
                resp = self.session.request(method, url, **kwargs)
                duration_ms = int((time.perf_counter() - t0) * 1000)
                if resp.ok:
                    logger.debug("Store %s %s %d (%dms)", method, table, resp.status_code, duration_ms)
                    try:
                        data = resp.json() if resp.content else []
                    except ValueError:
                        data = []
                    return StoreResult.success(data)

                last_error = self._error_text(resp)
                logger.warning(
                    "Store request failed attempt=%d/%d method=%s table=%s status=%d",
                    attempt + 1, attempts, method, table, resp.status_code,
                )
                if resp.status_code < 500:
                    break

            except requests.Timeout:
                last_error = f"Request timed out after {self.timeout}s"
                logger.warning(
                    "Store request timed out attempt=%d/%d method=%s table=%s",
                    attempt + 1, attempts, method, table,
                )

            except requests.RequestException as exc:
                last_error = str(exc)[:500]
                logger.warning(
                    "Store network error attempt=%d/%d method=%s table=%s error=%s",
                    attempt + 1, attempts, method, table, last_error,
                )

            if attempt < attempts - 1:
                time.sleep(_RETRY_BACKOFF_SECONDS[min(attempt, len(_RETRY_BACKOFF_SECONDS) - 1)])

        return StoreResult.failure(last_error)

    # ── Contract operations ───────────────────────────────────────────────────

    async def select(
        self,
        table: str,
        *,
        columns: str = "*",
        filters: dict | None = None,
        order: str | None = None,
        descending: bool = False,
        mode: str = MANY,
        limit: int | None = None,
    ) -> StoreResult:
        self._check_mode(mode)
        params = {"select": "".join((columns or "*").split())}
        for key, value in (filters or {}).items():
            params[key] = _eq(value)
        if order:
            direction = "desc" if descending else "asc"
            # Equal keys: same tie-break on id as the SQL backend
            params["order"] = f"{order}.{direction}" if order == "id" else f"{order}.{direction},id.{direction}"
        if mode != MANY:
            params["limit"] = 2
        elif limit:
            params["limit"] = limit

        result = await asyncio.to_thread(self._request, "GET", table, params=params)
        if not result.ok:
            return result
        rows = result.data if isinstance(result.data, list) else [result.data]
        return shape_rows(rows, mode)

    async def insert(self, table: str, rows: list[dict]) -> StoreResult:
        result = await asyncio.to_thread(
            self._request, "POST", table,
            json_body=rows, prefer="return=representation",
        )
        if result.ok and not isinstance(result.data, list):
            return StoreResult.success([result.data])
        return result

    async def update(self, table: str, values: dict, filters: dict) -> StoreResult:
        if not filters:
            return StoreResult.failure("Refusing unfiltered update")
        params = {key: _eq(value) for key, value in filters.items()}
        result = await asyncio.to_thread(
            self._request, "PATCH", table,
            params=params, json_body=values, prefer="return=representation",
        )
        if result.ok and not isinstance(result.data, list):
            return StoreResult.success([result.data])
        return result


# ── Factory ────────────────────────────────────────────────────────────────


def create_store(config, *, privileged: bool) -> TableStore:
    """Build the store for one presentation mode.

    ``privileged`` selects the service credential (internal view and all
    writes); otherwise the public read-only credential is used.
    """
    backend = config.get("STORE_BACKEND", "sql")
    if backend == "sql":
        return SqlTableStore()
    if backend == "rest":
        key = config.get("STORE_SERVICE_KEY") if privileged else config.get("STORE_PUBLIC_KEY")
        return RestTableStore(
            config["STORE_URL"],
            key or "",
            timeout=config.get("STORE_TIMEOUT_SECONDS") or _DEFAULT_TIMEOUT,
        )
    raise ValueError(f"Unknown STORE_BACKEND: {backend!r}")
