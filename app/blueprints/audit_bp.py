"""
Intranet Portal
Audit blueprint — usage events behind the admin audit dashboard.

Endpoints:
    GET  /api/v1/audit/events    — list events in a date range (admin)
    POST /api/v1/audit/events    — record an event for the caller
    GET  /api/v1/audit/summary   — counts per type + most-interacted items (admin)
"""

from flask import Blueprint, jsonify, request

from app.auth import require_admin, require_auth
from app.blueprints import paginate_records
from app.services import audit_service
from app.services.access_service import current_access
from app.utils.errors import E, api_error

audit_bp = Blueprint("audit", __name__, url_prefix="/api/v1/audit")


# ── List / filter ────────────────────────────────────────────────────────────

@audit_bp.route("/events", methods=["GET"])
@require_admin
def list_events():
    """
    Return audit events, newest first.

    Query params:
        start      — YYYY-MM-DD (default: end - 30 days, never before 2024-08-01)
        end        — YYYY-MM-DD (default: today)
        eventType  — filter by event type
        userId     — filter by user
        limit      — page size (default 200)
        offset     — starting position
    """
    result = audit_service.list_events(
        start=request.args.get("start"),
        end=request.args.get("end"),
        event_type=request.args.get("eventType"),
        user_id=request.args.get("userId"),
    )
    items, total = paginate_records(result["events"])
    return jsonify({
        "start": result["start"],
        "end": result["end"],
        "events": items,
        "total": total,
    })


# ── Record ───────────────────────────────────────────────────────────────────

@audit_bp.route("/events", methods=["POST"])
@require_auth
def record_event():
    """Body: { eventType, details? }"""
    data = request.get_json(silent=True) or {}
    event_type = data.get("eventType")
    if not event_type:
        return api_error(E.VALIDATION_REQUIRED, "eventType is required")
    if event_type not in audit_service.EVENT_TYPES:
        return api_error(
            E.VALIDATION_INVALID,
            f"eventType must be one of {sorted(audit_service.EVENT_TYPES)}",
        )
    details = data.get("details") or {}
    if not isinstance(details, dict):
        return api_error(E.VALIDATION_INVALID, "details must be an object")
    entry = audit_service.log_event(event_type, current_access().user_id, details=details)
    return jsonify(entry), 201


# ── Summary ──────────────────────────────────────────────────────────────────

@audit_bp.route("/summary", methods=["GET"])
@require_admin
def summary():
    result = audit_service.list_events(
        start=request.args.get("start"),
        end=request.args.get("end"),
        event_type=request.args.get("eventType"),
    )
    top = request.args.get("top", 10, type=int)
    return jsonify({
        "start": result["start"],
        "end": result["end"],
        **audit_service.summarize(result["events"], top=max(1, min(top, 100))),
    })
