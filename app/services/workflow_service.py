"""
Workflow Request Service — HR-style requests routed to approvers.

Manages request status transitions with:
  - Transition validation (REQUEST_TRANSITIONS)
  - Sequential human-readable ids from the ``workflowCounter`` counter
  - History entries appended on every status change

Statuses:
    pending → in_progress | approved | rejected
    in_progress → approved | rejected | completed
    approved → completed

Usage:
    from app.services import workflow_service

    request = workflow_service.submit_request(access, "vacation", {"days": 5})
    workflow_service.transition_request(request["id"], "approved", access, notes="ok")
"""

import logging

from app import collections as col
from app.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from app.services import audit_service
from app.storage import ArrayUnion, get_store
from app.utils.helpers import utcnow_iso

logger = logging.getLogger(__name__)

REQUEST_STATUSES = ("pending", "in_progress", "approved", "rejected", "completed")

REQUEST_TRANSITIONS = {
    "pending": {"in_progress", "approved", "rejected"},
    "in_progress": {"approved", "rejected", "completed"},
    "approved": {"completed"},
    "rejected": set(),
    "completed": set(),
}


class TransitionError(ValidationError):
    """Raised when a request status transition is invalid."""

    def __init__(self, request_id: str, current: str, target: str, reason: str | None = None):
        msg = f"Cannot move request {request_id} from '{current}' to '{target}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, details={"from": current, "to": target})
        self.request_id = request_id
        self.current_status = current
        self.target_status = target


def validate_transition(current: str, target: str) -> dict:
    """Check a transition without side effects."""
    if target not in REQUEST_STATUSES:
        return {"valid": False, "from": current, "to": target, "reason": "unknown status"}
    allowed = REQUEST_TRANSITIONS.get(current, set())
    if target not in allowed:
        return {
            "valid": False,
            "from": current,
            "to": target,
            "reason": f"allowed: {', '.join(sorted(allowed)) or 'none (final status)'}",
        }
    return {"valid": True, "from": current, "to": target, "reason": None}


def _history_entry(status: str, access, notes: str = "") -> dict:
    return {
        "timestamp": utcnow_iso(),
        "status": status,
        "userId": access.user_id,
        "userName": access.display_name,
        "notes": notes or "",
    }


def _require_request(request_id: str, store) -> dict:
    record = store.get(col.WORKFLOWS, request_id)
    if record is None:
        raise NotFoundError(resource="WorkflowRequest", resource_id=request_id)
    return record


def submit_request(access, request_type: str, form_data: dict, store=None) -> dict:
    if not isinstance(request_type, str) or not request_type.strip():
        raise ValidationError("type is required", details={"type": "required"})
    if not isinstance(form_data, dict):
        raise ValidationError("formData must be an object", details={"formData": "must be an object"})
    store = store or get_store()

    sequence = store.next_sequence(col.WORKFLOW_COUNTER)
    now = utcnow_iso()
    record = store.add(col.WORKFLOWS, {
        "requestId": f"{sequence:04d}",
        "type": request_type.strip(),
        "status": "pending",
        "submittedBy": {
            "userId": access.user_id,
            "userName": access.display_name,
            "userEmail": access.identity.email,
        },
        "submittedAt": now,
        "lastUpdatedAt": now,
        "formData": form_data,
        "history": [_history_entry("pending", access, "Solicitação criada.")],
        "currentApprover": None,
        "viewedBy": [access.user_id],
    })
    audit_service.log_event(
        "workflow_submitted", access.user_id,
        details={"requestId": record["requestId"], "type": record["type"]}, store=store,
    )
    logger.info("Workflow request submitted id=%s seq=%s type=%s", record["id"], record["requestId"], record["type"])
    return record


def transition_request(request_id: str, target: str, access, notes: str = "", store=None) -> dict:
    store = store or get_store()
    record = _require_request(request_id, store)
    approver_id = (record.get("currentApprover") or {}).get("id")
    if not access.has_permission("canManageRequests") and approver_id != access.user_id:
        raise AuthorizationError("Only the assigned approver or a request manager can change this request")
    current = record.get("status", "pending")
    check = validate_transition(current, target)
    if not check["valid"]:
        raise TransitionError(request_id, current, target, check["reason"])

    history = list(record.get("history") or []) + [_history_entry(target, access, notes)]
    updated = store.update(col.WORKFLOWS, request_id, {
        "status": target,
        "history": history,
        "lastUpdatedAt": utcnow_iso(),
    })
    logger.info("Workflow request %s: %s → %s by %s", request_id, current, target, access.user_id)
    return updated


def assign_request(request_id: str, approver: dict, access, store=None) -> dict:
    if not isinstance(approver, dict) or not approver.get("id"):
        raise ValidationError("approver.id is required", details={"approver": "required"})
    store = store or get_store()
    record = _require_request(request_id, store)
    history = list(record.get("history") or []) + [
        _history_entry(record.get("status", "pending"), access,
                       f"Atribuído a {approver.get('name') or approver['id']}."),
    ]
    return store.update(col.WORKFLOWS, request_id, {
        "currentApprover": {"id": approver["id"], "name": approver.get("name", "")},
        "history": history,
        "lastUpdatedAt": utcnow_iso(),
    })


def mark_viewed(request_id: str, access, store=None) -> dict:
    store = store or get_store()
    _require_request(request_id, store)
    return store.update(col.WORKFLOWS, request_id, {"viewedBy": ArrayUnion(access.user_id)})


def can_view(record: dict, access) -> bool:
    if access.has_permission("canManageRequests"):
        return True
    if (record.get("submittedBy") or {}).get("userId") == access.user_id:
        return True
    return (record.get("currentApprover") or {}).get("id") == access.user_id


def get_request(request_id: str, access, store=None) -> dict:
    store = store or get_store()
    record = _require_request(request_id, store)
    if not can_view(record, access):
        raise NotFoundError(resource="WorkflowRequest", resource_id=request_id)
    return record


def list_requests(access=None, mine_only: bool = False, status: str | None = None, store=None) -> list[dict]:
    store = store or get_store()
    records = store.list(col.WORKFLOWS)
    if mine_only:
        records = [r for r in records if (r.get("submittedBy") or {}).get("userId") == access.user_id]
    if status:
        records = [r for r in records if r.get("status") == status]
    return sorted(records, key=lambda r: r.get("submittedAt") or "", reverse=True)


def list_assigned(access, store=None) -> list[dict]:
    """Open requests waiting on the caller as approver."""
    store = store or get_store()
    return [
        r for r in list_requests(store=store)
        if (r.get("currentApprover") or {}).get("id") == access.user_id
        and r.get("status") in ("pending", "in_progress")
    ]
