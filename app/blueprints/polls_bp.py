"""
Intranet Portal
Quick polls blueprint.

Endpoints:
    GET    /api/v1/polls                        — polls visible to the caller
    GET    /api/v1/polls/pending?page=<page>    — unanswered polls for a page
    POST   /api/v1/polls                        — create (canManageContent)
    GET    /api/v1/polls/<id>                   — single poll
    PATCH  /api/v1/polls/<id>                   — update (canManageContent)
    DELETE /api/v1/polls/<id>                   — delete with its responses
    POST   /api/v1/polls/<id>/responses         — answer
    GET    /api/v1/polls/<id>/responses         — raw answers (canManageContent)
    GET    /api/v1/polls/<id>/results           — counts per option (canManageContent)
"""

from flask import Blueprint, jsonify, request

from app.auth import require_auth, require_permission
from app.services import poll_service
from app.services.access_service import current_access
from app.utils.errors import E, api_error

polls_bp = Blueprint("polls", __name__, url_prefix="/api/v1/polls")


@polls_bp.route("", methods=["GET"])
@require_auth
def list_polls():
    return jsonify(poll_service.list_polls(current_access()))


@polls_bp.route("/pending", methods=["GET"])
@require_auth
def pending_polls():
    page = (request.args.get("page") or "").strip()
    if not page:
        return api_error(E.VALIDATION_REQUIRED, "page query parameter is required")
    return jsonify(poll_service.pending_polls(current_access(), page))


@polls_bp.route("", methods=["POST"])
@require_permission("canManageContent")
def create_poll():
    data = request.get_json(silent=True) or {}
    return jsonify(poll_service.create_poll(data)), 201


@polls_bp.route("/<poll_id>", methods=["GET"])
@require_auth
def get_poll(poll_id):
    return jsonify(poll_service.get_poll(poll_id))


@polls_bp.route("/<poll_id>", methods=["PATCH", "PUT"])
@require_permission("canManageContent")
def update_poll(poll_id):
    data = request.get_json(silent=True) or {}
    return jsonify(poll_service.update_poll(poll_id, data))


@polls_bp.route("/<poll_id>", methods=["DELETE"])
@require_permission("canManageContent")
def delete_poll(poll_id):
    poll_service.delete_poll(poll_id)
    return jsonify({"message": "Deleted", "id": poll_id}), 200


@polls_bp.route("/<poll_id>/responses", methods=["POST"])
@require_auth
def submit_response(poll_id):
    data = request.get_json(silent=True) or {}
    if "answer" not in data:
        return api_error(E.VALIDATION_REQUIRED, "answer is required")
    return jsonify(poll_service.submit_response(poll_id, current_access(), data["answer"])), 201


@polls_bp.route("/<poll_id>/responses", methods=["GET"])
@require_permission("canManageContent")
def list_responses(poll_id):
    return jsonify(poll_service.list_responses(poll_id))


@polls_bp.route("/<poll_id>/results", methods=["GET"])
@require_permission("canManageContent")
def poll_results(poll_id):
    return jsonify(poll_service.poll_results(poll_id))
