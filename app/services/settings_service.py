"""
System Settings Service — the ``systemSettings/config`` document.

Holds maintenance mode, legal document links and the server-side admin
and super-admin email lists.
"""

import logging

from app import collections as col
from app.core.exceptions import AuthorizationError, UpstreamError, ValidationError
from app.storage import get_store

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS = {
    "maintenanceMode": False,
    "maintenanceMessage": "O portal está em manutenção. Voltaremos em breve.",
    "allowedUserIds": [],
    "termsUrl": "",
    "termsVersion": 1,
    "privacyPolicyUrl": "",
    "adminEmails": [],
    "superAdminEmails": [],
}

_FIELD_TYPES = {
    "maintenanceMode": bool,
    "maintenanceMessage": str,
    "allowedUserIds": list,
    "termsUrl": str,
    "termsVersion": int,
    "privacyPolicyUrl": str,
    "adminEmails": list,
    "superAdminEmails": list,
}

ROLE_KEYS = ("adminEmails", "superAdminEmails")


def get_settings(store=None) -> dict:
    """Return the settings document, creating it with defaults when missing."""
    store = store or get_store()
    doc = store.get(col.SYSTEM_SETTINGS, col.SYSTEM_SETTINGS_DOC)
    if doc is None:
        logger.info("Creating default system settings document")
        doc = store.set(col.SYSTEM_SETTINGS, col.SYSTEM_SETTINGS_DOC, DEFAULT_SETTINGS)
    return {**DEFAULT_SETTINGS, **doc}


def peek_settings(store=None) -> dict | None:
    """Return the stored document without creating it."""
    store = store or get_store()
    return store.get(col.SYSTEM_SETTINGS, col.SYSTEM_SETTINGS_DOC)


def load_required_settings(store=None) -> dict:
    """Return the stored document; a missing document is a server fault."""
    doc = peek_settings(store)
    if doc is None:
        logger.error("System settings document %s/%s is missing", col.SYSTEM_SETTINGS, col.SYSTEM_SETTINGS_DOC)
        raise UpstreamError("System settings document is missing")
    return doc


def update_settings(changes: dict, store=None, access=None) -> dict:
    """Merge ``changes`` into the settings document.

    Role lists are reserved to super admins once at least one exists;
    before that any admin may bootstrap them.
    """
    store = store or get_store()
    if access is not None and not access.is_super_admin and set(ROLE_KEYS) & changes.keys():
        current = peek_settings(store) or {}
        if current.get("superAdminEmails"):
            logger.warning("Role list change refused for %s", access.identity.email)
            raise AuthorizationError("Apenas super administradores alteram os papéis.")
    errors = {}
    for key, value in changes.items():
        expected = _FIELD_TYPES.get(key)
        if expected is None:
            errors[key] = "unknown setting"
        elif expected is int and (isinstance(value, bool) or not isinstance(value, int)):
            errors[key] = "must be an integer"
        elif expected is not int and not isinstance(value, expected):
            errors[key] = f"must be {expected.__name__}"
    if errors:
        raise ValidationError("Invalid settings", details=errors)

    for key in ROLE_KEYS:
        if key in changes:
            changes[key] = [str(e).strip().lower() for e in changes[key] if str(e).strip()]

    get_settings(store)
    doc = store.set(col.SYSTEM_SETTINGS, col.SYSTEM_SETTINGS_DOC, changes, merge=True)
    logger.info("System settings updated keys=%s", sorted(changes))
    return {**DEFAULT_SETTINGS, **doc}
