"""
JWT Auth Middleware — verifies the ID token from the Authorization header.

Sets:
    g.identity        Identity on success, else None
    g.identity_error  "invalid" when a token was sent but failed verification

The middleware never blocks a request; route guards in app.auth decide.
When AUTH_ENABLED is false (local development) requests without a token
run as a development admin.
"""

import logging

from flask import current_app, g, request

from app.core.exceptions import AuthenticationError
from app.services.identity_service import Identity, bearer_token, verify_id_token

logger = logging.getLogger(__name__)

# Paths that skip token verification entirely
JWT_SKIP_PREFIXES = (
    "/api/v1/health",
    "/api/rss",
    "/static/",
)

DEV_IDENTITY_UID = "dev-user"


def _auth_enabled() -> bool:
    value = str(current_app.config.get("AUTH_ENABLED", "true"))
    return value.lower() not in ("false", "0", "no", "off")


def _dev_identity() -> Identity:
    admins = current_app.config.get("ADMIN_EMAILS") or ["dev@localhost"]
    return Identity(uid=DEV_IDENTITY_UID, email=admins[0], claims={"admin": True})


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        g.identity = None
        g.identity_error = None
        g.pop("access", None)

        path = request.path
        if not path.startswith("/api/"):
            return
        for prefix in JWT_SKIP_PREFIXES:
            if path.startswith(prefix):
                return

        token = bearer_token(request.headers.get("Authorization", ""))
        if token is None:
            if not _auth_enabled():
                g.identity = _dev_identity()
            return

        try:
            g.identity = verify_id_token(token)
        except AuthenticationError:
            # Route guards decide
            g.identity_error = "invalid"
