"""
Client (token-gated) dashboard blueprint.

Endpoints:
    GET /api/v1/client/dashboard?token=<token>: read-mostly project view

Access errors come back as the standard error envelope with the support
contact attached: 403 for invalid links, 410 for expired ones.
"""

from flask import Blueprint, current_app, g, jsonify, request

from bitacora.services.dashboard import DashboardMode, build_dashboard
from bitacora.utils.helpers import run_async

client_bp = Blueprint("client", __name__, url_prefix="/api/v1/client")


@client_bp.route("/dashboard", methods=["GET"])
def client_dashboard():
    token = request.args.get("token", "")
    dash = build_dashboard(current_app.config, DashboardMode.CLIENT, token=token)
    run_async(dash.open())
    if dash.access_error:
        raise dash.access_error
    g.project_name = dash.identity.name if dash.identity else None
    return jsonify(dash.snapshot()), 200
