"""
Access Service — server-side role resolution.

A caller's role is never decided by the client. It is resolved from:
    - the verified token (``admin`` claim)
    - ADMIN_EMAILS app config and settings ``adminEmails``
    - settings ``superAdminEmails`` (billing, settings administration)
    - the collaborator record matching the token email (permissions)

Admins implicitly hold every permission.
"""

import logging
from dataclasses import dataclass, field

from flask import current_app, g

from app import collections as col
from app.services.identity_service import Identity
from app.services.settings_service import peek_settings
from app.storage import get_store

logger = logging.getLogger(__name__)

PERMISSION_KEYS = (
    "canManageContent",
    "canManageWorkflows",
    "canManageRequests",
    "canViewTasks",
    "canViewBI",
    "canViewDra",
)


@dataclass
class Access:
    identity: Identity
    is_admin: bool = False
    is_super_admin: bool = False
    collaborator: dict | None = None
    permissions: dict = field(default_factory=dict)

    @property
    def user_id(self) -> str:
        """Collaborator id when the caller is a known collaborator, else the token uid."""
        if self.collaborator:
            return self.collaborator["id"]
        return self.identity.uid

    @property
    def display_name(self) -> str:
        if self.collaborator and self.collaborator.get("name"):
            return self.collaborator["name"]
        return self.identity.email or self.identity.uid

    @property
    def audience_ids(self) -> set:
        ids = {"all", self.identity.uid}
        if self.collaborator:
            ids.add(self.collaborator["id"])
            if self.collaborator.get("id3a"):
                ids.add(self.collaborator["id3a"])
        return ids

    def has_permission(self, key: str) -> bool:
        return self.is_admin or bool(self.permissions.get(key))

    def to_dict(self) -> dict:
        return {
            "uid": self.identity.uid,
            "email": self.identity.email,
            "userId": self.user_id,
            "name": self.display_name,
            "isAdmin": self.is_admin,
            "isSuperAdmin": self.is_super_admin,
            "permissions": {k: self.has_permission(k) for k in PERMISSION_KEYS},
        }


def find_collaborator_by_email(email: str, store=None) -> dict | None:
    if not email:
        return None
    store = store or get_store()
    needle = email.strip().lower()
    for record in store.list(col.COLLABORATORS):
        if str(record.get("email", "")).strip().lower() == needle:
            return record
    return None


def resolve_access(identity: Identity, store=None) -> Access:
    """Compute the role set for a verified identity."""
    store = store or get_store()
    email = identity.normalized_email
    settings = peek_settings(store) or {}

    config_admins = {e.lower() for e in current_app.config.get("ADMIN_EMAILS", [])}
    setting_admins = {str(e).lower() for e in settings.get("adminEmails", [])}
    super_admins = {str(e).lower() for e in settings.get("superAdminEmails", [])}

    is_super_admin = bool(email) and email in super_admins
    is_admin = (
        bool(identity.claims.get("admin"))
        or (bool(email) and (email in config_admins or email in setting_admins))
        or is_super_admin
    )

    collaborator = find_collaborator_by_email(email, store)
    permissions = dict((collaborator or {}).get("permissions") or {})

    return Access(
        identity=identity,
        is_admin=is_admin,
        is_super_admin=is_super_admin,
        collaborator=collaborator,
        permissions={k: bool(permissions.get(k)) for k in PERMISSION_KEYS},
    )


def current_access() -> Access | None:
    """Resolve (once per request) the access of the authenticated caller."""
    if "access" in g:
        return g.access
    identity = getattr(g, "identity", None)
    g.access = resolve_access(identity) if identity is not None else None
    return g.access
