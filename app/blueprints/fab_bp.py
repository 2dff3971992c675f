"""
Intranet Portal
FAB campaign blueprint — per-user campaign pipelines behind the floating bubble.

Routes (admin):
  GET    /fab/messages                                   – all messages + status
  GET    /fab/messages/<user_id>                         – one message
  PUT    /fab/messages/<user_id>                         – create / merge
  DELETE /fab/messages/<user_id>                         – delete
  PATCH  /fab/messages/<user_id>/activation              – pause / resume
  POST   /fab/messages/<user_id>/start                   – send current CTA
  POST   /fab/start-bulk                                 – send CTAs for many users
  POST   /fab/messages/<user_id>/campaigns/<cid>/effective – stamp effectiveAt
  POST   /fab/messages/<user_id>/campaigns/<cid>/archive   – archive a campaign
  POST   /fab/import                                     – CSV import
  GET    /fab/analytics/status|tags|history              – chart aggregations

Routes (current user):
  GET    /fab/me/bubble                                  – bubble content
  POST   /fab/me/click                                   – CTA clicked
  POST   /fab/me/complete-follow-up                      – follow-up done
"""

import logging

from flask import Blueprint, jsonify, request

from app.auth import require_admin, require_auth
from app.services import fab_analytics, fab_service
from app.services.access_service import current_access
from app.utils.errors import E, api_error

logger = logging.getLogger(__name__)

fab_bp = Blueprint("fab", __name__, url_prefix="/api/v1/fab")


def _user_ids_filter():
    raw = request.args.get("userIds", "")
    return [u.strip() for u in raw.split(",") if u.strip()] or None


# ═════════════════════════════════════════════════════════════════════════════
# ADMIN
# ═════════════════════════════════════════════════════════════════════════════

@fab_bp.route("/messages", methods=["GET"])
@require_admin
def list_messages():
    messages = fab_service.list_messages()
    return jsonify([
        {**m, "displayStatus": fab_service.message_status(m)} for m in messages
    ])


@fab_bp.route("/messages/<user_id>", methods=["GET"])
@require_admin
def get_message(user_id):
    message = fab_service.get_message(user_id)
    if message is None:
        return api_error(E.NOT_FOUND, f"FAB message for {user_id} not found")
    return jsonify({**message, "displayStatus": fab_service.message_status(message)})


@fab_bp.route("/messages/<user_id>", methods=["PUT"])
@require_admin
def upsert_message(user_id):
    data = request.get_json(silent=True) or {}
    return jsonify(fab_service.upsert_message_for_user(user_id, data)), 200


@fab_bp.route("/messages/<user_id>", methods=["DELETE"])
@require_admin
def delete_message(user_id):
    fab_service.delete_message_for_user(user_id)
    return jsonify({"message": "Deleted", "userId": user_id}), 200


@fab_bp.route("/messages/<user_id>/activation", methods=["PATCH"])
@require_admin
def set_activation(user_id):
    data = request.get_json(silent=True) or {}
    if "isActive" not in data:
        return api_error(E.VALIDATION_REQUIRED, "isActive is required")
    return jsonify(fab_service.set_activation(user_id, data["isActive"])), 200


@fab_bp.route("/messages/<user_id>/start", methods=["POST"])
@require_admin
def start_campaign(user_id):
    return jsonify(fab_service.start_campaign(user_id)), 200


@fab_bp.route("/start-bulk", methods=["POST"])
@require_admin
def start_bulk():
    data = request.get_json(silent=True) or {}
    user_ids = data.get("userIds")
    if not isinstance(user_ids, list) or not user_ids:
        return api_error(E.VALIDATION_REQUIRED, "userIds must be a non-empty list")
    return jsonify(fab_service.start_campaigns(user_ids)), 200


@fab_bp.route("/messages/<user_id>/campaigns/<campaign_id>/effective", methods=["POST"])
@require_admin
def mark_effective(user_id, campaign_id):
    return jsonify(fab_service.mark_campaign_effective(user_id, campaign_id)), 200


@fab_bp.route("/messages/<user_id>/campaigns/<campaign_id>/archive", methods=["POST"])
@require_admin
def archive_campaign(user_id, campaign_id):
    return jsonify(fab_service.archive_individual_campaign(user_id, campaign_id)), 200


@fab_bp.route("/import", methods=["POST"])
@require_admin
def import_csv():
    """Body: raw ``text/csv``, or JSON ``{"csv": "..."}``."""
    if request.mimetype == "text/csv":
        text = request.get_data(as_text=True)
    else:
        text = (request.get_json(silent=True) or {}).get("csv")
    if not isinstance(text, str) or not text.strip():
        return api_error(E.VALIDATION_REQUIRED, "CSV content is required")
    return jsonify(fab_service.import_campaigns_csv(text)), 200


# ── Analytics ────────────────────────────────────────────────────────────────

@fab_bp.route("/analytics/status", methods=["GET"])
@require_admin
def analytics_status():
    messages = fab_service.list_messages()
    return jsonify(fab_analytics.campaign_status_totals(messages, _user_ids_filter()))


@fab_bp.route("/analytics/tags", methods=["GET"])
@require_admin
def analytics_tags():
    messages = fab_service.list_messages()
    return jsonify(fab_analytics.tag_distribution(messages, _user_ids_filter()))


@fab_bp.route("/analytics/history", methods=["GET"])
@require_admin
def analytics_history():
    messages = fab_service.list_messages()
    return jsonify(fab_analytics.campaign_history(messages, _user_ids_filter()))


# ═════════════════════════════════════════════════════════════════════════════
# CURRENT USER
# ═════════════════════════════════════════════════════════════════════════════

@fab_bp.route("/me/bubble", methods=["GET"])
@require_auth
def my_bubble():
    return jsonify(fab_service.bubble_for_user(current_access().user_id))


@fab_bp.route("/me/click", methods=["POST"])
@require_auth
def my_click():
    return jsonify(fab_service.mark_campaign_as_clicked(current_access().user_id)), 200


@fab_bp.route("/me/complete-follow-up", methods=["POST"])
@require_auth
def my_complete_follow_up():
    return jsonify(fab_service.complete_follow_up(current_access().user_id)), 200
