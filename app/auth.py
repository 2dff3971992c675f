"""
Intranet Portal
Route guards.

Provides:
    - require_auth         — a verified identity token must be present
    - require_admin        — caller must resolve to an admin
    - require_permission   — caller must hold a collaborator permission

Security model:
    - The identity middleware verifies ``Authorization: Bearer <idToken>``
      and stores the result in ``g.identity``.
    - Roles are resolved server-side by app.services.access_service.
    - Unauthenticated → 401. Unauthorized → 403 with a ``redirect`` field
      pointing at GUARD_REDIRECT_PATH so the UI can send the user home.
"""

import functools
import logging

from flask import current_app, g, request

from app.services.access_service import current_access
from app.services.identity_service import TOKEN_INVALID_MESSAGE, TOKEN_MISSING_MESSAGE
from app.utils.errors import E, api_error

logger = logging.getLogger(__name__)


def _unauthenticated():
    message = TOKEN_INVALID_MESSAGE if getattr(g, "identity_error", None) else TOKEN_MISSING_MESSAGE
    return api_error(E.UNAUTHENTICATED, message)


def _forbidden(reason: str):
    access = current_access()
    logger.warning(
        "Access denied: %s user=%s path=%s",
        reason, access.identity.email if access else None, request.path,
    )
    return api_error(
        E.FORBIDDEN,
        "Acesso negado.",
        redirect=current_app.config.get("GUARD_REDIRECT_PATH", "/dashboard"),
    )


# ── Authentication decorator ─────────────────────────────────────────────────

def require_auth(f):
    """Decorator: require a verified identity token for the endpoint."""
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        if getattr(g, "identity", None) is None:
            return _unauthenticated()
        return f(*args, **kwargs)

    return decorated


# ── Role decorators ──────────────────────────────────────────────────────────

def require_admin(f):
    """
    Decorator: require an admin caller.

    Usage:
        @require_admin
        def delete_news(news_id): ...
    """
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        if getattr(g, "identity", None) is None:
            return _unauthenticated()
        if not current_access().is_admin:
            return _forbidden("admin required")
        return f(*args, **kwargs)

    return decorated


def require_permission(permission: str):
    """
    Decorator: require a collaborator permission (admins always pass).

    Usage:
        @require_permission("canManageRequests")
        def list_all_requests(): ...
    """
    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            if getattr(g, "identity", None) is None:
                return _unauthenticated()
            if not current_access().has_permission(permission):
                return _forbidden(f"permission {permission} required")
            return f(*args, **kwargs)
        return decorated
    return decorator
