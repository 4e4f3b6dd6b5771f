"""Session store: loads, orders and creates session notes for one project.

Ordering: ``latest_first`` sorts by date descending independently of the
order rows arrived in. Equal dates keep arrival order (the sort is
stable); since new notes are prepended, the most recently created note of
a given day comes first.

Lifecycle: creation only. Notes are never edited or deleted here.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date
from typing import Callable

from bitacora.core.domain import SessionDraft, SessionNote
from bitacora.core.exceptions import LoadError, NotFoundError, SaveError, ValidationError
from bitacora.integrations.store_gateway import TableStore
from bitacora.utils.helpers import utcnow

logger = logging.getLogger(__name__)

SESSIONS_TABLE = "sessions"

MIN_TITLE_LENGTH = 3
MIN_SUMMARY_LENGTH = 10


def validate_draft(draft: SessionDraft) -> dict:
    """Return field → message for every broken rule; empty dict means valid."""
    errors = {}
    if len((draft.title or "").strip()) < MIN_TITLE_LENGTH:
        errors["title"] = f"Title must have at least {MIN_TITLE_LENGTH} characters"
    if len((draft.summary or "").strip()) < MIN_SUMMARY_LENGTH:
        errors["summary"] = f"Summary must have at least {MIN_SUMMARY_LENGTH} characters"
    if not isinstance(draft.date, date):
        errors["date"] = "Date is required (YYYY-MM-DD)"
    return errors


def _sort_key(note: SessionNote):
    return note.date or date.min


def _today() -> date:
    return utcnow().date()


class SessionStore:
    """Owns the loaded note set, the active pointer and the editing draft."""

    def __init__(
        self,
        store: TableStore,
        *,
        write_store: TableStore | None = None,
        today: Callable[[], date] = _today,
    ) -> None:
        self._store = store
        self._write_store = write_store or store
        self._today = today
        self._create_lock = asyncio.Lock()
        self._load_seq = 0

        self.project_id: int | None = None
        self._notes: list[SessionNote] = []
        self.active_id = None
        self.loading = False
        self.error: LoadError | None = None
        self.saving = False
        self.save_error: SaveError | ValidationError | None = None
        self.draft = SessionDraft.blank(today())

    # ── Derived views ────────────────────────────────────────────────────

    @property
    def notes(self) -> list[SessionNote]:
        """Notes in arrival order (source order, creations prepended)."""
        return list(self._notes)

    @property
    def latest_first(self) -> list[SessionNote]:
        return sorted(self._notes, key=_sort_key, reverse=True)

    @property
    def active(self) -> SessionNote | None:
        for note in self._notes:
            if note.id == self.active_id:
                return note
        return None

    def timeline(self) -> list[dict]:
        """Latest-first entries numbered so the oldest note is #1."""
        ordered = self.latest_first
        total = len(ordered)
        entries = []
        for index, note in enumerate(ordered):
            entry = note.to_dict()
            entry["sequence"] = total - index
            entry["client_responsible_label"] = note.client_responsible or "Unassigned"
            entries.append(entry)
        return entries

    def set_active(self, session_id) -> SessionNote:
        for note in self._notes:
            if note.id == session_id:
                self.active_id = note.id
                return note
        raise NotFoundError("Session", session_id)

    # ── Load ─────────────────────────────────────────────────────────────

    async def load(self, project_id: int) -> list[SessionNote] | None:
        """Fetch every note of ``project_id``, newest first at the source.

        Returns the latest-first list, or ``None`` when a newer load
        superseded this one and its result was discarded.
        """
        self._load_seq += 1
        seq = self._load_seq
        if project_id != self.project_id:
            self._notes = []
            self.active_id = None
        self.project_id = project_id
        self.loading = True
        self.error = None

        data, error = await self._store.select(
            SESSIONS_TABLE,
            filters={"project_id": project_id},
            order="date",
            descending=True,
        )
        if seq != self._load_seq:
            logger.debug("Discarding stale session load project_id=%s", project_id)
            return None

        notes = []
        if not error:
            try:
                notes = [SessionNote.from_row(row) for row in (data or [])]
            except (KeyError, TypeError) as exc:
                error = f"Malformed session row: {exc}"

        self.loading = False
        if error:
            logger.warning("Session load failed project_id=%s error=%s", project_id, error)
            self.error = LoadError("Could not load sessions.", details={"store": error})
            self._notes = []
            self.active_id = None
            return []

        self._notes = notes
        ordered = self.latest_first
        self.active_id = ordered[0].id if ordered else None
        return ordered

    # ── Create ───────────────────────────────────────────────────────────

    def update_draft(self, **fields) -> SessionDraft:
        for key, value in fields.items():
            if not hasattr(self.draft, key):
                raise ValidationError(f"Unknown draft field: {key}")
            setattr(self.draft, key, value)
        return self.draft

    def reset_draft(self) -> None:
        self.draft = SessionDraft.blank(self._today())

    async def create(self, draft: SessionDraft | None = None) -> SessionNote:
        """Validate and persist a note, then prepend it and make it active.

        Raises:
            ValidationError: a rule failed; nothing was written.
            SaveError: the store rejected the insert; the set and the draft
                are left untouched so the operator can retry.
        """
        async with self._create_lock:
            if draft is not None:
                self.draft = draft
            draft = self.draft

            errors = validate_draft(draft)
            if self.project_id is None:
                errors["project"] = "Select a project first"
            if errors:
                exc = ValidationError("Please fill in the fields correctly.", details=errors)
                self.save_error = exc
                raise exc

            project_id = self.project_id
            seq = self._load_seq
            self.saving = True
            self.save_error = None
            try:
                data, error = await self._write_store.insert(SESSIONS_TABLE, [draft.to_row(project_id)])
            finally:
                self.saving = False

            if not error and not data:
                error = "Insert returned no row"
            if error:
                logger.warning("Session save failed project_id=%s error=%s", project_id, error)
                exc = SaveError("Error saving the session.", details={"store": error})
                self.save_error = exc
                raise exc

            note = SessionNote.from_row(data[0])
            logger.info("Session created id=%s project_id=%s date=%s", note.id, project_id, note.date)
            if seq == self._load_seq:
                self._notes.insert(0, note)
                self.active_id = note.id
            self.reset_draft()
            return note

    def to_dict(self) -> dict:
        active = self.active
        return {
            "project_id": self.project_id,
            "items": [note.to_dict() for note in self.latest_first],
            "count": len(self._notes),
            "active_id": self.active_id,
            "active": active.to_dict() if active else None,
            "timeline": self.timeline(),
            "empty": not self.loading and not self.error and not self._notes,
            "loading": self.loading,
            "error": self.error.to_dict() if self.error else None,
            "saving": self.saving,
            "save_error": self.save_error.to_dict() if self.save_error else None,
            "draft": self.draft.to_dict(),
        }
