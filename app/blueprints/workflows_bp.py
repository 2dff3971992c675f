"""
Intranet Portal
Workflow requests blueprint.

Routes:
  POST   /workflow-requests                       – submit a request
  GET    /workflow-requests                       – all requests (canManageRequests)
  GET    /workflow-requests/mine                  – caller's own requests
  GET    /workflow-requests/assigned              – open requests assigned to caller
  GET    /workflow-requests/<id>                  – single request
  POST   /workflow-requests/<id>/transition       – change status
  POST   /workflow-requests/<id>/assign           – set current approver
  POST   /workflow-requests/<id>/viewed           – mark as viewed by caller
"""

from flask import Blueprint, jsonify, request

from app.auth import require_auth, require_permission
from app.services import workflow_service
from app.services.access_service import current_access
from app.utils.errors import E, api_error

workflows_bp = Blueprint("workflows", __name__, url_prefix="/api/v1/workflow-requests")


@workflows_bp.route("", methods=["POST"])
@require_auth
def submit_request():
    """Body: { type, formData }"""
    data = request.get_json(silent=True) or {}
    record = workflow_service.submit_request(current_access(), data.get("type"), data.get("formData", {}))
    return jsonify(record), 201


@workflows_bp.route("", methods=["GET"])
@require_permission("canManageRequests")
def list_requests():
    status = request.args.get("status")
    return jsonify(workflow_service.list_requests(status=status))


@workflows_bp.route("/mine", methods=["GET"])
@require_auth
def my_requests():
    status = request.args.get("status")
    return jsonify(workflow_service.list_requests(current_access(), mine_only=True, status=status))


@workflows_bp.route("/assigned", methods=["GET"])
@require_auth
def assigned_requests():
    return jsonify(workflow_service.list_assigned(current_access()))


@workflows_bp.route("/<request_id>", methods=["GET"])
@require_auth
def get_request(request_id):
    return jsonify(workflow_service.get_request(request_id, current_access()))


@workflows_bp.route("/<request_id>/transition", methods=["POST"])
@require_auth
def transition_request(request_id):
    """Body: { status, notes? }"""
    data = request.get_json(silent=True) or {}
    target = data.get("status")
    if not target:
        return api_error(E.VALIDATION_REQUIRED, "status is required")
    record = workflow_service.transition_request(
        request_id, target, current_access(), notes=data.get("notes", ""),
    )
    return jsonify(record)


@workflows_bp.route("/<request_id>/assign", methods=["POST"])
@require_permission("canManageRequests")
def assign_request(request_id):
    """Body: { approver: {id, name} }"""
    data = request.get_json(silent=True) or {}
    return jsonify(workflow_service.assign_request(request_id, data.get("approver"), current_access()))


@workflows_bp.route("/<request_id>/viewed", methods=["POST"])
@require_auth
def mark_viewed(request_id):
    workflow_service.get_request(request_id, current_access())
    return jsonify(workflow_service.mark_viewed(request_id, current_access()))
