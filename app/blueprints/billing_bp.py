"""
Intranet Portal
Billing blueprint — monthly cost summary for super admins.

Endpoint:
    GET /api/billing   (Authorization: Bearer <idToken>)

Responses:
    200  billing summary
    401  token missing, expired or invalid
    403  caller not in systemSettings/config superAdminEmails
    500  settings document missing or any unexpected failure
"""

import logging

from flask import Blueprint, jsonify, request
from werkzeug.exceptions import HTTPException

from app.core.exceptions import AuthenticationError, UpstreamError
from app.services import billing_service, identity_service, settings_service

logger = logging.getLogger(__name__)

billing_bp = Blueprint("billing", __name__, url_prefix="/api")

INTERNAL_ERROR_MESSAGE = "Erro interno do servidor ao buscar dados de faturamento."
FORBIDDEN_MESSAGE = "Acesso negado: apenas super administradores."


@billing_bp.route("/billing", methods=["GET"])
def billing_summary():
    token = identity_service.bearer_token(request.headers.get("Authorization"))
    if token is None:
        return jsonify({"error": identity_service.TOKEN_MISSING_MESSAGE}), 401
    try:
        identity = identity_service.verify_id_token(token)
    except AuthenticationError:
        return jsonify({"error": identity_service.TOKEN_INVALID_MESSAGE}), 401

    try:
        settings = settings_service.load_required_settings()
    except UpstreamError as exc:
        logger.error("Billing API: %s", exc)
        return jsonify({"error": INTERNAL_ERROR_MESSAGE}), 500

    super_admins = {str(e).strip().lower() for e in settings.get("superAdminEmails") or []}
    if not identity.normalized_email or identity.normalized_email not in super_admins:
        logger.warning("Billing API: access denied for %s", identity.email)
        return jsonify({"error": FORBIDDEN_MESSAGE}), 403

    return jsonify(billing_service.billing_summary()), 200


@billing_bp.errorhandler(Exception)
def _handle_unexpected(error: Exception):
    if isinstance(error, HTTPException):
        return error
    logger.exception("Billing API failure")
    return jsonify({"error": INTERNAL_ERROR_MESSAGE}), 500
