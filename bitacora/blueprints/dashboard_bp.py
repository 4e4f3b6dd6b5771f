"""
Internal (operator) dashboard blueprint.

Endpoints:
    GET  /api/v1/projects             : project list, ordered by name
    GET  /api/v1/dashboard            : full view state (?project=, ?session=)
    PUT  /api/v1/dashboard/phase      : save the current phase
    POST /api/v1/dashboard/sessions   : create a session note
    POST /api/v1/dashboard/share      : mint a client link

Every request builds a fresh ``Dashboard`` and drives it to completion;
nothing is kept between requests.
"""

import logging

from flask import Blueprint, current_app, g, jsonify, request

from bitacora.core.domain import SessionDraft
from bitacora.services.dashboard import DashboardMode, build_dashboard
from bitacora.utils.errors import E, api_error
from bitacora.utils.helpers import run_async

logger = logging.getLogger(__name__)

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/v1")


def _dashboard():
    return build_dashboard(current_app.config, DashboardMode.INTERNAL)


def _project_from_body(data: dict):
    name = str(data.get("project") or "").strip()
    g.project_name = name or None
    return name


@dashboard_bp.route("/projects", methods=["GET"])
def list_projects():
    """Projects available to the operator."""
    dash = _dashboard()
    run_async(dash.load_projects())
    if dash.projects_error:
        raise dash.projects_error
    items = [p.to_dict() for p in dash.projects]
    return jsonify({"items": items, "total": len(items)}), 200


@dashboard_bp.route("/dashboard", methods=["GET"])
def get_dashboard():
    """Full internal view for one project (first project when omitted)."""
    project = request.args.get("project", "").strip() or None
    session_id = request.args.get("session", type=int)
    g.project_name = project
    dash = _dashboard()
    run_async(dash.open(project))
    if session_id is not None:
        dash.select_session(session_id)
    return jsonify(dash.snapshot()), 200


@dashboard_bp.route("/dashboard/phase", methods=["PUT"])
def save_phase():
    """Select and persist the current phase of a project."""
    data = request.get_json(silent=True) or {}
    project = _project_from_body(data)
    if not project:
        return api_error(E.VALIDATION_REQUIRED, "project is required")
    if data.get("phase") is None:
        return api_error(E.VALIDATION_REQUIRED, "phase is required")
    if isinstance(data["phase"], bool):
        return api_error(E.VALIDATION_INVALID, "phase must be an integer")
    try:
        phase = int(data["phase"])
    except (TypeError, ValueError):
        return api_error(E.VALIDATION_INVALID, "phase must be an integer")

    dash = _dashboard()

    async def _run():
        await dash.open(project)
        dash.select_pending_phase(phase)
        return await dash.save_phase()

    run_async(_run())
    return jsonify(dash.phase.to_dict()), 200


@dashboard_bp.route("/dashboard/sessions", methods=["POST"])
def create_session():
    """Validate and create a session note; it becomes the active one."""
    data = request.get_json(silent=True) or {}
    project = _project_from_body(data)
    if not project:
        return api_error(E.VALIDATION_REQUIRED, "project is required")
    draft = SessionDraft.from_dict(data)

    dash = _dashboard()

    async def _run():
        await dash.open(project)
        return await dash.create_session(draft)

    note = run_async(_run())
    return jsonify({"session": note.to_dict(), "sessions": dash.sessions.to_dict()}), 201


@dashboard_bp.route("/dashboard/share", methods=["POST"])
def share_project():
    """Issue a client token for the project and return the client URL."""
    data = request.get_json(silent=True) or {}
    project = _project_from_body(data)
    if not project:
        return api_error(E.VALIDATION_REQUIRED, "project is required")

    dash = _dashboard()

    async def _run():
        await dash.load_projects()
        await dash.select_project(project)
        return await dash.share()

    link = run_async(_run())
    return jsonify(link.to_dict()), 201
