"""
Dashboard load orchestrator.

One ``Dashboard`` instance is one presented view: either the internal
operator view (project picker, phase control, note editor, share links) or
the token-gated client view (read-mostly).

Triggers and what they drive:

    open()                      internal → load project list, select first
                                client   → AccessGate.resolve(token)
                                           → project id lookup
                                           → project_identity_changed()
    select_project(name)        internal only → project_identity_changed()
    project_identity_changed()  PhaseTracker.load(name) ∥ SessionStore.load(id)

Each subsystem owns its state (loading / error / data) and is mutated only
through its own methods. Phase and session loads run concurrently and never
depend on each other's outcome. Re-triggering before a load completes is
safe: every subsystem tags its loads and drops results that are no longer
the latest (last request wins), so a slow load for a previous project can
never overwrite the current one.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from bitacora.core.domain import Project
from bitacora.core.exceptions import AccessDeniedError, LoadError, NotFoundError, ReadOnlyError
from bitacora.integrations.store_gateway import MAYBE_SINGLE, TableStore, create_store
from bitacora.services.access_gate import AccessGate
from bitacora.services.phase_tracker import PhaseTracker
from bitacora.services.session_store import SessionStore
from bitacora.services.share_link import LinkSettings, ShareLink, ShareLinkIssuer
from bitacora.utils.helpers import utcnow

logger = logging.getLogger(__name__)

PROJECTS_TABLE = "projects"
PROJECT_COLUMNS = "id, name, client_name"


class DashboardMode(str, enum.Enum):
    INTERNAL = "internal"
    CLIENT = "client"


@dataclass(frozen=True)
class ProjectIdentity:
    name: str
    id: int | None = None

    @property
    def complete(self) -> bool:
        return bool(self.name) and self.id is not None


class Dashboard:
    """Hub wiring the access gate, phase tracker, session store and issuer."""

    def __init__(
        self,
        mode: DashboardMode | str,
        store: TableStore,
        *,
        write_store: TableStore | None = None,
        token: str | None = None,
        link_settings: LinkSettings | None = None,
        support_contact: str | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.mode = DashboardMode(mode)
        self.token = token
        self.support_contact = support_contact
        self._store = store
        self._write_store = write_store or store

        self.gate = AccessGate(store, clock=clock)
        self.phase = PhaseTracker(store, write_store=self._write_store)
        self.sessions = SessionStore(store, write_store=self._write_store, today=lambda: clock().date())
        self.issuer = ShareLinkIssuer(self._write_store, link_settings, clock=clock) if link_settings else None

        self.projects: list[Project] = []
        self.projects_loading = False
        self.projects_error: LoadError | None = None
        self.identity: ProjectIdentity | None = None
        self.client_name: str | None = None
        self.access_error: AccessDeniedError | None = None
        self._generation = 0

    @property
    def is_client(self) -> bool:
        return self.mode == DashboardMode.CLIENT

    def _require_internal(self, action: str) -> None:
        if self.is_client:
            raise ReadOnlyError(action)

    # ── Triggers ─────────────────────────────────────────────────────────

    async def open(self, project_name: str | None = None) -> None:
        """Run the entry trigger for this view's mode.

        Internal views select ``project_name`` when given, otherwise the
        first project by name. Client views ignore it: the token decides.
        """
        if self.is_client:
            await self.enter_client_mode()
            return
        await self.load_projects()
        if project_name:
            await self.select_project(project_name)
        elif self.identity is None and self.projects:
            first = self.projects[0]
            await self.project_identity_changed(first.name, first.id)

    async def load_projects(self) -> list[Project]:
        self.projects_loading = True
        self.projects_error = None
        data, error = await self._store.select(PROJECTS_TABLE, columns=PROJECT_COLUMNS, order="name")
        self.projects_loading = False
        if error:
            logger.warning("Project list load failed error=%s", error)
            self.projects_error = LoadError("Could not load projects.", details={"store": error})
            return self.projects
        self.projects = [Project.from_row(row) for row in data or []]
        return self.projects

    def find_project(self, name: str) -> Project | None:
        for project in self.projects:
            if project.name == name:
                return project
        return None

    async def select_project(self, name: str) -> ProjectIdentity:
        self._require_internal("Changing the project")
        project = self.find_project(name)
        if project is None:
            raise NotFoundError("Project", name)
        await self.project_identity_changed(project.name, project.id)
        return self.identity

    async def project_identity_changed(self, name: str, project_id: int | None) -> bool:
        """Switch the selected project and reload its phase and sessions.

        Returns True when this trigger is still the current one once both
        loads have settled.
        """
        self._generation += 1
        generation = self._generation
        self.identity = ProjectIdentity(name=name, id=project_id)
        if not self.identity.complete:
            logger.warning("Project identity incomplete name=%s id=%s; loads not triggered", name, project_id)
            return False

        logger.debug("Loading project=%s id=%s generation=%d", name, project_id, generation)
        results = await asyncio.gather(
            self.phase.load(name),
            self.sessions.load(project_id),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result
        return generation == self._generation

    async def enter_client_mode(self) -> ProjectIdentity | None:
        """Resolve the token, then the project id, then trigger the loads.

        Any failure lands in ``access_error``; the view stays interactive.
        """
        self.access_error = None
        self.client_name = None
        generation = self._generation
        try:
            access = await self.gate.resolve(self.token)
        except AccessDeniedError as exc:
            self.access_error = exc
            return None

        self.client_name = access.client_name
        data, error = await self._store.select(
            PROJECTS_TABLE,
            columns=PROJECT_COLUMNS,
            filters={"name": access.project_name},
            mode=MAYBE_SINGLE,
        )
        if generation != self._generation:
            logger.debug("Discarding stale client resolution project=%s", access.project_name)
            return self.identity
        if error or not data:
            logger.warning(
                "Project lookup after valid token failed project=%s error=%s",
                access.project_name, error or "no such project",
            )
            self.identity = ProjectIdentity(name=access.project_name, id=None)
            self.access_error = self.gate.lookup_failed()
            return None

        project = Project.from_row(data)
        await self.project_identity_changed(project.name, project.id)
        return self.identity

    # ── Actions ──────────────────────────────────────────────────────────

    def select_pending_phase(self, phase_id: int) -> int:
        self._require_internal("Changing the phase")
        return self.phase.select_pending(phase_id)

    async def save_phase(self) -> int:
        self._require_internal("Saving the phase")
        return await self.phase.save()

    async def create_session(self, draft=None):
        self._require_internal("Creating notes")
        return await self.sessions.create(draft)

    def select_session(self, session_id):
        return self.sessions.set_active(session_id)

    async def share(self) -> ShareLink:
        self._require_internal("Sharing the client view")
        if self.issuer is None:
            raise RuntimeError("Dashboard built without link settings cannot issue share links")
        name = self.identity.name if self.identity else None
        project = self.find_project(name) if name else None
        return await self.issuer.issue(name, project.client_name if project else "")

    # ── Presentation state ───────────────────────────────────────────────

    def snapshot(self) -> dict:
        sessions = self.sessions.to_dict()
        state = {
            "mode": self.mode.value,
            "project": (
                {"name": self.identity.name, "id": self.identity.id} if self.identity else None
            ),
            "phase": self.phase.to_dict(),
            "sessions": sessions,
        }
        if self.is_client:
            sessions.pop("draft", None)
            sessions.pop("save_error", None)
            sessions.pop("saving", None)
            if sessions.get("error"):
                # Store error text stays server-side
                sessions["error"].pop("details", None)
            state["client"] = {
                "name": self.client_name,
                "state": self.gate.state.value,
                "validating": self.gate.loading,
                "error": self.access_error.to_dict() if self.access_error else None,
                "support_contact": self.support_contact if self.access_error else None,
            }
        else:
            state["projects"] = [p.to_dict() for p in self.projects]
            state["projects_loading"] = self.projects_loading
            state["projects_error"] = self.projects_error.to_dict() if self.projects_error else None
        return state


def build_dashboard(config, mode: DashboardMode | str, *, token: str | None = None) -> Dashboard:
    """Wire a ``Dashboard`` from app config.

    The client view reads with the public credential and never writes; the
    internal view reads and writes with the service credential.
    """
    mode = DashboardMode(mode)
    store = create_store(config, privileged=mode == DashboardMode.INTERNAL)
    return Dashboard(
        mode,
        store,
        token=token,
        link_settings=LinkSettings.from_config(config),
        support_contact=config.get("SUPPORT_CONTACT"),
    )
