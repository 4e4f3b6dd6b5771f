"""
Bitacora project dashboard
Flask Application Factory.

Usage:
    from bitacora import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

from flask import Flask
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate

from bitacora.config import config
from bitacora.models import db
from bitacora.middleware.logging_config import configure_logging
from bitacora.middleware.timing import init_request_timing
from bitacora.middleware.diagnostics import run_startup_diagnostics
from bitacora.middleware.security_headers import init_security_headers
from bitacora.middleware.basic_auth import init_basic_auth
from bitacora.middleware.rate_limiter import init_rate_limits
from bitacora.utils.errors import register_error_handlers

logger = logging.getLogger(__name__)

migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],                     # no global limit: apply per-blueprint
    storage_uri=os.getenv("REDIS_URL", "memory://"),  # Redis in production, memory for dev
)


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config[config_name])

    # The rest backend keeps no local tables; Flask-SQLAlchemy still needs a URI
    if not app.config.get("SQLALCHEMY_DATABASE_URI") and app.config.get("STORE_BACKEND") == "rest":
        app.config["SQLALCHEMY_DATABASE_URI"] = "sqlite:///:memory:"

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Security headers, basic auth, request timing ─────────────────────
    init_security_headers(app)
    init_basic_auth(app)
    init_request_timing(app)

    # ── Auto-create tables (safe for production: CREATE IF NOT EXISTS) ──
    if app.config.get("STORE_BACKEND", "sql") == "sql":
        with app.app_context():
            if app.config["SQLALCHEMY_DATABASE_URI"].startswith("sqlite:///") and ":memory:" not in app.config["SQLALCHEMY_DATABASE_URI"]:
                os.makedirs(app.instance_path, exist_ok=True)
            try:
                db.create_all()
                app.logger.info("db.create_all() completed successfully")
            except Exception as e:
                app.logger.warning("db.create_all() failed: %s", e)

    # ── Blueprints ───────────────────────────────────────────────────────
    from bitacora.blueprints.dashboard_bp import dashboard_bp
    from bitacora.blueprints.client_bp import client_bp
    from bitacora.blueprints.health_bp import health_bp

    app.register_blueprint(dashboard_bp)
    app.register_blueprint(client_bp)
    app.register_blueprint(health_bp)

    # ── Error handlers ───────────────────────────────────────────────────
    register_error_handlers(app)

    @app.errorhandler(404)
    def not_found(e):
        from flask import request
        return {"error": "Not found", "path": request.path}, 404

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return {"error": "Internal server error"}, 500

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(429)
    def rate_limited(e):
        return {"error": "Too many requests", "retry_after": e.description}, 429

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("seed-demo")
    def seed_demo_cmd():
        """Insert a demo project with a few session notes (sql store only)."""
        from bitacora.models.seed import seed_demo
        created = seed_demo()
        logger.info("Seeded demo project: %s", created or "already present")

    # ── Startup diagnostics ──────────────────────────────────────────────
    run_startup_diagnostics(app)

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    return app
