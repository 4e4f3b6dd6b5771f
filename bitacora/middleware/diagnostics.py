"""
Startup diagnostics: runs once when the Flask app starts.

Checks the tabular store and share-link configuration and logs a summary
banner.
"""

import logging
import os
import sys

from flask import Flask

from bitacora.integrations.store_gateway import create_store
from bitacora.utils.helpers import run_async

logger = logging.getLogger(__name__)


def run_startup_diagnostics(app: Flask):
    """Run diagnostic checks during app startup (inside app context)."""
    if app.config.get("TESTING"):
        return  # skip during tests for speed

    issues: list[str] = []

    with app.app_context():
        py = f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"

        # ── Store connectivity ───────────────────────────────────────
        backend = app.config.get("STORE_BACKEND", "sql")
        store_status = "ok"
        try:
            _, error = run_async(create_store(app.config, privileged=True).ping())
        except ValueError as exc:
            error = str(exc)
        if error:
            store_status = f"FAILED ({error})"
            issues.append(f"Store unreachable: {error}")

        if backend == "rest" and not app.config.get("STORE_PUBLIC_KEY"):
            issues.append("STORE_PUBLIC_KEY not set: client view reads will be rejected")

        # ── Share links ──────────────────────────────────────────────
        ttl = app.config.get("SHARE_LINK_TTL_DAYS")
        ttl_status = f"{ttl} days" if ttl else "permanent"
        base_url = app.config.get("PUBLIC_BASE_URL", "")
        segment = app.config.get("INTERNAL_HOST_SEGMENT", "")
        if segment and segment not in base_url:
            issues.append(
                f"PUBLIC_BASE_URL does not contain '{segment}': client links will point at the internal host"
            )

        auth_enabled = bool(os.environ.get("SITE_USERNAME") or app.config.get("SITE_USERNAME"))

    logger.info(
        "Startup diagnostics: python=%s store=%s(%s) share_links=%s basic_auth=%s",
        py, backend, store_status, ttl_status, "on" if auth_enabled else "off",
    )
    for issue in issues:
        logger.warning("Startup issue: %s", issue)
