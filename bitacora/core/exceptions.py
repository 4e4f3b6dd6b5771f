"""
Dashboard-wide exception hierarchy.

Every subsystem (access gate, phase tracker, session store, share link
issuer) raises these types. The load orchestrator catches them into the
owning subsystem's error state; blueprints register one handler against
``DashboardError`` and get consistent HTTP status codes everywhere.

Usage:
    from bitacora.core.exceptions import AccessDeniedError, ValidationError

    raise AccessDeniedError(AccessDeniedError.EXPIRED)
    raise ValidationError("Title must have at least 3 characters", details={"title": "..."})
"""


class DashboardError(Exception):
    """Base class carrying a machine-readable ``code`` and a user message.

    Args:
        code: One of the taxonomy codes (VALIDATION, LOAD_FAILED, ...).
        message: Human-readable explanation shown inline near the control.
        details: Optional field-level breakdown for structured responses.
    """

    code = "INTERNAL"

    def __init__(self, message: str, *, code: str | None = None, details: dict | None = None) -> None:
        if code is not None:
            self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        body = {"code": self.code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(DashboardError):
    """Draft or input fails local rules; never reaches the store."""

    code = "VALIDATION"


class AccessDeniedError(DashboardError):
    """Client token rejected by the access gate.

    Security note: a missing or inactive grant (``INVALID``) and a backing
    read error (``LOOKUP_FAILED``) carry the same message so the client
    cannot tell which case occurred. Only expiry is distinguished.
    """

    INVALID = "INVALID"
    EXPIRED = "EXPIRED"
    LOOKUP_FAILED = "LOOKUP_FAILED"

    MESSAGES = {
        INVALID: "The link is not valid or has expired.",
        LOOKUP_FAILED: "The link is not valid or has expired.",
        EXPIRED: "This link has expired.",
    }

    def __init__(self, reason: str, *, message: str | None = None) -> None:
        if reason not in self.MESSAGES:
            raise ValueError(f"Unknown access denial reason: {reason!r}")
        super().__init__(message or self.MESSAGES[reason], code=reason)

    @property
    def reason(self) -> str:
        return self.code


class LoadError(DashboardError):
    """A read from the store errored or returned nothing where required."""

    code = "LOAD_FAILED"


class SaveError(DashboardError):
    """A write was rejected or errored. Recoverable; caller may retry."""

    code = "SAVE_FAILED"


class IssueError(DashboardError):
    """Share-link token creation failed."""

    code = "ISSUE_FAILED"


class ReadOnlyError(DashboardError):
    """Mutation attempted from the client (read-mostly) view."""

    code = "READ_ONLY"

    def __init__(self, action: str) -> None:
        super().__init__(f"{action} is not available in the client view")


class NotFoundError(DashboardError):
    """Requested project is not part of the loaded project list."""

    code = "NOT_FOUND"

    def __init__(self, resource: str, key: str | int | None = None) -> None:
        msg = f"{resource}"
        if key is not None:
            msg += f" {key!r}"
        msg += " not found"
        super().__init__(msg)
