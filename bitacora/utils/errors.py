"""Standardised API error responses.

Usage
-----
    from bitacora.utils.errors import api_error, E

    return api_error(E.NOT_FOUND, "Project not found")
    return api_error(E.VALIDATION_REQUIRED, "project is required")

Dashboard exceptions are translated in one place by ``register_error_handlers``.
"""

from __future__ import annotations

import logging

from flask import current_app, jsonify

from bitacora.core.exceptions import DashboardError

logger = logging.getLogger(__name__)


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants (``ERR_`` prefix)."""

    # Validation – HTTP 400
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"

    # Not-found – HTTP 404
    NOT_FOUND = "ERR_NOT_FOUND"

    # Permissions – HTTP 403
    FORBIDDEN = "ERR_FORBIDDEN"
    READ_ONLY = "ERR_READ_ONLY"

    # Client access – HTTP 403 / 410
    ACCESS_INVALID = "ERR_ACCESS_INVALID"
    ACCESS_LOOKUP_FAILED = "ERR_ACCESS_LOOKUP_FAILED"
    ACCESS_EXPIRED = "ERR_ACCESS_EXPIRED"

    # Upstream store – HTTP 502
    LOAD_FAILED = "ERR_LOAD_FAILED"
    SAVE_FAILED = "ERR_SAVE_FAILED"
    ISSUE_FAILED = "ERR_ISSUE_FAILED"

    # Server – HTTP 500
    INTERNAL = "ERR_INTERNAL"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 400,
    E.NOT_FOUND: 404,
    E.FORBIDDEN: 403,
    E.READ_ONLY: 403,
    E.ACCESS_INVALID: 403,
    E.ACCESS_LOOKUP_FAILED: 403,
    E.ACCESS_EXPIRED: 410,
    E.LOAD_FAILED: 502,
    E.SAVE_FAILED: 502,
    E.ISSUE_FAILED: 502,
    E.INTERNAL: 500,
}

# Dashboard taxonomy code → API error code
_DASHBOARD_CODES: dict[str, str] = {
    "VALIDATION": E.VALIDATION_INVALID,
    "NOT_FOUND": E.NOT_FOUND,
    "READ_ONLY": E.READ_ONLY,
    "INVALID": E.ACCESS_INVALID,
    "LOOKUP_FAILED": E.ACCESS_LOOKUP_FAILED,
    "EXPIRED": E.ACCESS_EXPIRED,
    "LOAD_FAILED": E.LOAD_FAILED,
    "SAVE_FAILED": E.SAVE_FAILED,
    "ISSUE_FAILED": E.ISSUE_FAILED,
}


def api_error(
    code: str,
    message: str,
    *,
    status: int | None = None,
    details: dict | None = None,
):
    """Return a standard JSON error response.

    Parameters
    ----------
    code : str
        Machine-readable error code (use ``E.*`` constants).
    message : str
        Human-readable explanation for the UI.
    status : int, optional
        HTTP status override.  Falls back to ``_DEFAULT_STATUS[code]``,
        then to ``400``.
    details : dict, optional
        Extra structured payload (field errors, support contact, etc.).

    Returns
    -------
    tuple[Response, int]
        ``(jsonify(body), http_status)`` – drop-in for Flask views.
    """

    http_status = status or _DEFAULT_STATUS.get(code, 400)

    body: dict = {
        "error": message,
        "code": code,
    }
    if details:
        body["details"] = details

    return jsonify(body), http_status


def dashboard_error_response(exc: DashboardError, *, extra: dict | None = None):
    """Translate a dashboard exception into the standard envelope."""
    code = _DASHBOARD_CODES.get(exc.code, E.INTERNAL)
    details = dict(exc.details)
    if extra:
        details.update(extra)
    return api_error(code, exc.message, details=details or None)


def register_error_handlers(app):
    """Map every ``DashboardError`` raised by a view to the error envelope."""

    @app.errorhandler(DashboardError)
    def _handle_dashboard_error(exc):
        if exc.code in ("INVALID", "EXPIRED", "LOOKUP_FAILED"):
            return dashboard_error_response(
                exc, extra={"support_contact": current_app.config.get("SUPPORT_CONTACT")},
            )
        logger.info("Dashboard error %s: %s", exc.code, exc.message)
        return dashboard_error_response(exc)
