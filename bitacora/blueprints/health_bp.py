"""
Health check blueprint.

Endpoints:
    GET /api/v1/health/ready : simple 200 for load balancers
    GET /api/v1/health/live  : store reachability check
"""

import logging
import time

from flask import Blueprint, current_app, jsonify

from bitacora.integrations.store_gateway import create_store
from bitacora.utils.helpers import run_async

logger = logging.getLogger(__name__)

health_bp = Blueprint("health_bp", __name__, url_prefix="/api/v1/health")


@health_bp.route("/ready", methods=["GET"])
def ready():
    """Simple readiness probe: always 200 if app is running."""
    return jsonify({"status": "ok"}), 200


@health_bp.route("/live", methods=["GET"])
def live():
    """Liveness check with store status."""
    checks = {}
    overall = True

    # ── Tabular store ────────────────────────────────────────────────
    backend = current_app.config.get("STORE_BACKEND", "sql")
    t0 = time.perf_counter()
    _, error = run_async(create_store(current_app.config, privileged=True).ping())
    store_ms = (time.perf_counter() - t0) * 1000
    if error:
        checks["store"] = {"status": "error", "backend": backend, "detail": error}
        overall = False
        logger.error("Health check: store failed: %s", error)
    else:
        checks["store"] = {"status": "ok", "backend": backend, "latency_ms": round(store_ms, 1)}

    # ── App info ─────────────────────────────────────────────────────
    checks["app"] = {
        "name": "Bitacora",
        "debug": current_app.debug,
        "testing": current_app.testing,
    }

    status_code = 200 if overall else 503
    return jsonify({
        "status": "healthy" if overall else "degraded",
        "checks": checks,
    }), status_code
