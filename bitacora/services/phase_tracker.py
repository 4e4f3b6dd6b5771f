"""Phase tracker: committed project phase plus a pending manual selection.

Phases 1..4 (see ``PHASES``). ``committed_phase`` is authoritative and
``None`` until the first load; ``pending_phase`` is the operator's unsaved
pick. They stay independent until ``save()`` collapses them.

Persistence: one ``project_phase`` row per project name, updated in place or
inserted when absent. An absent row reads as phase 1.
"""

from __future__ import annotations

import asyncio
import logging

from bitacora.core.domain import FIRST_PHASE, LAST_PHASE, PHASES, PhaseStatus, phase_label
from bitacora.core.exceptions import SaveError, ValidationError
from bitacora.integrations.store_gateway import MAYBE_SINGLE, TableStore

logger = logging.getLogger(__name__)

PHASE_TABLE = "project_phase"


def derive_status(phase_id: int, committed_phase: int | None) -> PhaseStatus:
    """Pure ordering rule: done < current < upcoming; all pending when unset."""
    if committed_phase is None:
        return PhaseStatus.PENDING
    if phase_id < committed_phase:
        return PhaseStatus.DONE
    if phase_id == committed_phase:
        return PhaseStatus.CURRENT
    return PhaseStatus.UPCOMING


def _valid_phase(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and FIRST_PHASE <= value <= LAST_PHASE


class PhaseTracker:
    """Owns committed/pending phase state for the selected project.

    At most one save runs at a time; a second ``save()`` waits for the first
    and then writes whatever is pending at that moment, so writes land in
    call order and the last selection wins.
    """

    def __init__(self, store: TableStore, *, write_store: TableStore | None = None) -> None:
        self._store = store
        self._write_store = write_store or store
        self._save_lock = asyncio.Lock()
        self._load_seq = 0

        self.project_name: str | None = None
        self.committed_phase: int | None = None
        self.pending_phase: int | None = None
        self.loading = False
        self.saving = False
        self.error: SaveError | None = None

    # ── Derived view ─────────────────────────────────────────────────────

    def derived_status(self, phase_id: int) -> PhaseStatus:
        return derive_status(phase_id, self.committed_phase)

    def statuses(self) -> list[dict]:
        out = []
        for phase in PHASES:
            status = self.derived_status(phase.id)
            out.append({
                "id": phase.id,
                "label": phase.label,
                "status": status.value,
                "status_label": status.label,
            })
        return out

    # ── Load ─────────────────────────────────────────────────────────────

    async def load(self, project_name: str) -> int | None:
        """Fetch the stored phase; resets any unsaved pending pick.

        Returns the applied phase, or ``None`` when a newer load superseded
        this one and its result was discarded. Read failures are masked to
        phase 1.
        """
        self._load_seq += 1
        seq = self._load_seq
        self.project_name = project_name
        self.loading = True
        self.error = None

        data, error = await self._store.select(
            PHASE_TABLE,
            columns="current_phase",
            filters={"project_name": project_name},
            mode=MAYBE_SINGLE,
        )
        if seq != self._load_seq:
            logger.debug("Discarding stale phase load project=%s", project_name)
            return None

        phase = FIRST_PHASE
        if error:
            logger.warning("Phase load failed project=%s error=%s; defaulting to %d",
                           project_name, error, FIRST_PHASE)
        elif data is not None:
            stored = data.get("current_phase")
            if _valid_phase(stored):
                phase = stored
            else:
                logger.warning("Ignoring out-of-range phase %r for project=%s", stored, project_name)

        self.committed_phase = phase
        self.pending_phase = phase
        self.loading = False
        return phase

    # ── Edit ─────────────────────────────────────────────────────────────

    def select_pending(self, phase_id) -> int:
        if not _valid_phase(phase_id):
            raise ValidationError(
                f"Phase must be between {FIRST_PHASE} and {LAST_PHASE}",
                details={"phase": f"got {phase_id!r}"},
            )
        self.pending_phase = phase_id
        return phase_id

    async def save(self) -> int:
        """Persist ``pending_phase``; on success it becomes ``committed_phase``.

        Raises:
            ValidationError: nothing pending or no project selected.
            SaveError: the store rejected the write. Pending pick is kept.
        """
        async with self._save_lock:
            phase = self.pending_phase
            project_name = self.project_name
            if phase is None or not project_name:
                raise ValidationError("Select a project and a phase before saving")

            seq = self._load_seq
            self.saving = True
            self.error = None
            try:
                error = await self._write(project_name, phase)
            finally:
                self.saving = False

            if error:
                logger.warning("Phase save failed project=%s phase=%d error=%s", project_name, phase, error)
                exc = SaveError("Could not save the phase.", details={"store": error})
                if seq == self._load_seq:
                    self.error = exc
                raise exc

            logger.info("Phase saved project=%s phase=%d (%s)", project_name, phase, phase_label(phase))
            if seq == self._load_seq:
                self.committed_phase = phase
            return phase

    async def _write(self, project_name: str, phase: int) -> str | None:
        """Update the row by project name, inserting it when absent."""
        data, error = await self._write_store.update(
            PHASE_TABLE, {"current_phase": phase}, {"project_name": project_name},
        )
        if error:
            return error
        if data:
            return None
        _, error = await self._write_store.insert(
            PHASE_TABLE, [{"project_name": project_name, "current_phase": phase}],
        )
        return error

    def to_dict(self) -> dict:
        return {
            "committed": self.committed_phase,
            "committed_label": phase_label(self.committed_phase),
            "pending": self.pending_phase,
            "total": len(PHASES),
            "phases": self.statuses(),
            "loading": self.loading,
            "saving": self.saving,
            "error": self.error.to_dict() if self.error else None,
        }
