"""HTTP Basic Auth for the internal (operator) API."""
import hmac
import os

from flask import Response, request

# Reachable without operator credentials
_PUBLIC_PREFIXES = ("/api/v1/client", "/api/v1/health")


def init_basic_auth(app):
    """Add basic auth if SITE_USERNAME and SITE_PASSWORD are set."""
    username = os.environ.get("SITE_USERNAME") or app.config.get("SITE_USERNAME")
    password = os.environ.get("SITE_PASSWORD") or app.config.get("SITE_PASSWORD")

    if not username or not password:
        app.logger.info("Basic auth: disabled (no SITE_USERNAME/SITE_PASSWORD)")
        return

    app.logger.info("Basic auth: enabled for internal routes")

    @app.before_request
    def require_basic_auth():
        if request.path.startswith(_PUBLIC_PREFIXES):
            return None

        auth = request.authorization
        if (
            not auth
            or not hmac.compare_digest(auth.username or "", username)
            or not hmac.compare_digest(auth.password or "", password)
        ):
            return Response(
                "Login required.", 401,
                {"WWW-Authenticate": 'Basic realm="Bitacora"'}
            )
