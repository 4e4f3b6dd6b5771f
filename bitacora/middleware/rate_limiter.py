"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter.
The Limiter instance is created in bitacora/__init__.py with no default
limits; this module applies granular limits per route category.

Usage:
    from bitacora.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)

INTERNAL_LIMIT = "120/minute"


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per remote IP):
        - Client view:      CLIENT_RATE_LIMIT (token guessing is the threat)
        - Internal API:     120/minute
        - Health check:     exempt

    Rate limiting is disabled in testing mode.
    """

    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    client_limit = app.config.get("CLIENT_RATE_LIMIT", "30/minute")
    bp = app.blueprints.get("client")
    if bp:
        limiter.limit(client_limit)(bp)

    bp = app.blueprints.get("dashboard")
    if bp:
        limiter.limit(INTERNAL_LIMIT)(bp)

    # Health check: exempt from rate limiting
    bp = app.blueprints.get("health_bp")
    if bp:
        limiter.exempt(bp)

    app.logger.info("Rate limiter configured (client=%s, internal=%s)", client_limit, INTERNAL_LIMIT)
