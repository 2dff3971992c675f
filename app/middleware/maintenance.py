"""
Maintenance mode middleware.

While settings ``maintenanceMode`` is on, API calls from callers who are
neither admins nor listed in ``allowedUserIds`` receive 503 with the
configured ``maintenanceMessage``.
"""

import logging

from flask import g, request

from app.services.access_service import current_access
from app.services.settings_service import DEFAULT_SETTINGS, peek_settings
from app.utils.errors import E, api_error

logger = logging.getLogger(__name__)

# Always reachable so the UI can show the banner and admins can switch it off
_EXEMPT_PREFIXES = (
    "/api/v1/health",
    "/api/v1/me/access",
    "/api/v1/settings",
    "/api/rss",
)


def init_maintenance_mode(app):
    """Register the maintenance gate. Must run after the JWT middleware."""

    @app.before_request
    def _maintenance_gate():
        path = request.path
        if not path.startswith("/api/") or path.startswith(_EXEMPT_PREFIXES):
            return None
        settings = peek_settings()
        if not settings or not settings.get("maintenanceMode"):
            return None

        access = current_access() if getattr(g, "identity", None) is not None else None
        if access is not None:
            allowed = set(settings.get("allowedUserIds") or [])
            if access.is_admin or access.user_id in allowed or access.identity.uid in allowed:
                return None

        logger.info("Maintenance mode blocked path=%s", path)
        message = settings.get("maintenanceMessage") or DEFAULT_SETTINGS["maintenanceMessage"]
        return api_error(E.MAINTENANCE, message)
