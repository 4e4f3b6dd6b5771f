"""Domain types shared by the dashboard subsystems.

Rows coming back from the tabular store are plain dicts with snake_case
keys; ``from_row`` / ``to_row`` are the only places that know the column
names.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import date, datetime, timezone

from bitacora.core.exceptions import ValidationError
from bitacora.utils.helpers import parse_date, parse_timestamp


class ClientStatus(str, enum.Enum):
    DONE = "done"
    DEFERRED = "deferred"
    NOT_DONE = "not_done"

    @property
    def label(self) -> str:
        return _CLIENT_STATUS_LABELS[self]

    @classmethod
    def parse(cls, value) -> "ClientStatus":
        """Coerce a raw value; empty input falls back to ``DEFERRED``."""
        if isinstance(value, cls):
            return value
        if not value:
            return cls.DEFERRED
        return cls(str(value).strip().lower())

    @classmethod
    def coerce(cls, value) -> "ClientStatus":
        """Lenient parse for stored rows; unknown values read as ``NOT_DONE``."""
        try:
            return cls.parse(value)
        except ValueError:
            return cls.NOT_DONE


_CLIENT_STATUS_LABELS = {
    ClientStatus.DONE: "Done",
    ClientStatus.DEFERRED: "Deferred",
    ClientStatus.NOT_DONE: "Not done",
}


class PhaseStatus(str, enum.Enum):
    PENDING = "pending"
    DONE = "done"
    CURRENT = "current"
    UPCOMING = "upcoming"

    @property
    def label(self) -> str:
        return _PHASE_STATUS_LABELS[self]


_PHASE_STATUS_LABELS = {
    PhaseStatus.PENDING: "Pending",
    PhaseStatus.DONE: "Completed",
    PhaseStatus.CURRENT: "In progress",
    PhaseStatus.UPCOMING: "Next phase",
}


@dataclass(frozen=True)
class Phase:
    id: int
    label: str


PHASES: tuple[Phase, ...] = (
    Phase(1, "Diagnosis"),
    Phase(2, "Strategic plan"),
    Phase(3, "Implementation"),
    Phase(4, "Monitoring & control"),
)
FIRST_PHASE = PHASES[0].id
LAST_PHASE = PHASES[-1].id
DEFAULT_TAG = "Session"


def phase_label(phase_id: int | None) -> str | None:
    for phase in PHASES:
        if phase.id == phase_id:
            return phase.label
    return None


@dataclass(frozen=True)
class Project:
    """Read-only project record; ``name`` is the join key into phase and token rows."""

    id: int
    name: str
    client_name: str = ""

    @classmethod
    def from_row(cls, row: dict) -> "Project":
        return cls(id=row["id"], name=row["name"], client_name=row.get("client_name") or "")

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "client_name": self.client_name}


@dataclass(frozen=True)
class SessionNote:
    """A dated note logged against one project. Immutable after creation."""

    id: int | str
    project_id: int
    title: str
    date: date
    tag: str
    summary: str
    client_status: ClientStatus = ClientStatus.DEFERRED
    client_responsible: str | None = None

    @classmethod
    def from_row(cls, row: dict) -> "SessionNote":
        return cls(
            id=row["id"],
            project_id=row["project_id"],
            title=row.get("title") or "",
            date=parse_date(row.get("date")),
            tag=row.get("tag") or DEFAULT_TAG,
            summary=row.get("summary") or "",
            client_status=ClientStatus.coerce(row.get("client_status")),
            client_responsible=row.get("client_responsible") or None,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "title": self.title,
            "date": self.date.isoformat() if self.date else None,
            "tag": self.tag,
            "summary": self.summary,
            "client_responsible": self.client_responsible,
            "client_status": self.client_status.value,
            "client_status_label": self.client_status.label,
        }


@dataclass(frozen=True)
class ClientGrant:
    """A capability binding a random token to one project, with optional expiry."""

    token: str
    project_name: str
    client_name: str = ""
    active: bool = True
    expires_at: datetime | None = None
    expiry_unreadable: bool = False

    @classmethod
    def from_row(cls, row: dict) -> "ClientGrant":
        raw_expiry = row.get("expires_at")
        expires_at = parse_timestamp(raw_expiry)
        return cls(
            token=row.get("token", ""),
            project_name=row["project_name"],
            client_name=row.get("client_name") or "",
            active=bool(row.get("active", False)),
            expires_at=expires_at,
            expiry_unreadable=bool(raw_expiry) and expires_at is None,
        )

    def is_expired(self, now: datetime) -> bool:
        """An expiry that is present but unreadable counts as past."""
        if self.expiry_unreadable:
            return True
        return self.expires_at is not None and self.expires_at < now


@dataclass(frozen=True)
class ResolvedAccess:
    project_name: str
    client_name: str


@dataclass
class SessionDraft:
    """Unsaved session under construction; owned by the editing view."""

    title: str = ""
    date: date | None = field(default_factory=lambda: datetime.now(timezone.utc).date())
    tag: str = DEFAULT_TAG
    summary: str = ""
    client_responsible: str = ""
    client_status: ClientStatus = ClientStatus.DEFERRED

    @classmethod
    def blank(cls, today: date | None = None) -> "SessionDraft":
        draft = cls()
        if today is not None:
            draft.date = today
        return draft

    @classmethod
    def from_dict(cls, data: dict) -> "SessionDraft":
        """Build a draft from API input. Unknown keys are ignored."""
        draft = cls()
        if "title" in data:
            draft.title = str(data.get("title") or "")
        if "date" in data:
            draft.date = parse_date(data.get("date"))
        if data.get("tag"):
            draft.tag = str(data["tag"])
        if "summary" in data:
            draft.summary = str(data.get("summary") or "")
        if "client_responsible" in data:
            draft.client_responsible = str(data.get("client_responsible") or "")
        try:
            draft.client_status = ClientStatus.parse(data.get("client_status"))
        except ValueError:
            allowed = ", ".join(s.value for s in ClientStatus)
            raise ValidationError(
                "Unknown client status",
                details={"client_status": f"must be one of: {allowed}"},
            ) from None
        return draft

    def to_row(self, project_id: int) -> dict:
        return {
            "project_id": project_id,
            "title": self.title.strip(),
            "date": self.date.isoformat() if self.date else None,
            "tag": self.tag,
            "summary": self.summary.strip(),
            "client_responsible": self.client_responsible.strip() or None,
            "client_status": self.client_status.value,
        }

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "date": self.date.isoformat() if self.date else None,
            "tag": self.tag,
            "summary": self.summary,
            "client_responsible": self.client_responsible,
            "client_status": self.client_status.value,
        }
