"""
Intranet Portal
Access blueprint — role resolution, system settings and embeds.

Endpoints:
    GET   /api/v1/me/access   — resolved roles/permissions for the UI guard
    GET   /api/v1/settings    — system settings (any signed-in user)
    PATCH /api/v1/settings    — merge update (admin; role lists need a super admin)
    GET   /api/v1/embeds      — third-party embed URLs visible to the caller
"""

import logging

from flask import Blueprint, current_app, jsonify, request

from app.auth import require_admin, require_auth
from app.services import settings_service
from app.services.access_service import current_access

logger = logging.getLogger(__name__)

access_bp = Blueprint("access", __name__, url_prefix="/api/v1")


@access_bp.route("/me/access", methods=["GET"])
@require_auth
def my_access():
    access = current_access()
    payload = access.to_dict()
    payload["redirect"] = current_app.config.get("GUARD_REDIRECT_PATH", "/dashboard")
    return jsonify(payload)


@access_bp.route("/settings", methods=["GET"])
@require_auth
def get_settings():
    settings = settings_service.get_settings()
    if not current_access().is_admin:
        # Role lists stay server-side for regular users
        settings = {k: v for k, v in settings.items() if k not in ("adminEmails", "superAdminEmails")}
    return jsonify(settings)


@access_bp.route("/settings", methods=["PATCH"])
@require_admin
def update_settings():
    data = request.get_json(silent=True) or {}
    access = current_access()
    updated = settings_service.update_settings(data, access=access)
    logger.info("System settings updated keys=%s by %s", sorted(data), access.identity.email)
    return jsonify(updated)


@access_bp.route("/embeds", methods=["GET"])
@require_auth
def embeds():
    urls = dict(current_app.config.get("EMBED_URLS", {}))
    if not current_access().has_permission("canViewBI"):
        urls.pop("powerBi", None)
    return jsonify({k: v for k, v in urls.items() if v})
