"""
FAB Campaign Service — per-user follow-up campaign pipeline.

One ``fabMessages`` document per collaborator (document id == userId, the
collaborator record id). Each document carries an ordered ``pipeline`` of
campaigns and a cursor (``activeCampaignIndex``) into it.

Message status transitions:

    ready ──start──▶ pending_cta ──click──▶ pending_follow_up
      ▲                                        │
      └────────── completeFollowUp ────────────┤ (next campaign exists)
                                               ▼
                                           completed  (pipeline exhausted)

Campaign status: loaded → active → completed.

Invariants:
    - activeCampaignIndex points at a pipeline element while the message
      is pending_cta or pending_follow_up.
    - effectiveAt, once set on a campaign, is never cleared or changed.

Usage:
    from app.services import fab_service
    fab_service.start_campaign("collab-123")
"""

import csv
import io
import logging
import time
import uuid

from app import collections as col
from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.services.access_service import find_collaborator_by_email
from app.storage import get_store
from app.utils.helpers import utcnow_iso

logger = logging.getLogger(__name__)

CAMPAIGN_TAGS = ("Relacionamento", "Produto", "Mercado", "Evento", "Treinamento")
DEFAULT_TAG = "Relacionamento"

MESSAGE_STATUSES = ("ready", "pending_cta", "pending_follow_up", "completed")
PENDING_STATUSES = ("pending_cta", "pending_follow_up")
NOT_CREATED = "not_created"
CAMPAIGN_STATUSES = ("loaded", "active", "completed")

CSV_REQUIRED_HEADERS = ("userEmail", "ctaMessage", "followUpMessage", "tag")

_IMMUTABLE_CAMPAIGN_FIELDS = ("effectiveAt",)


class CampaignStateError(ConflictError):
    """Raised when an operation is not allowed in the message's current status."""

    def __init__(self, user_id: str, action: str, current: str, reason: str | None = None):
        msg = f"Cannot '{action}' FAB message for user {user_id} (status={current})"
        if reason:
            msg += f": {reason}"
        super().__init__("FabMessage", "status", current, message=msg)
        self.user_id = user_id
        self.action = action
        self.current_status = current


def new_campaign_id() -> str:
    return f"campaign_{int(time.time() * 1000)}_{uuid.uuid4().hex[:6]}"


# ── Reads ────────────────────────────────────────────────────────────────────

def list_messages(store=None) -> list[dict]:
    store = store or get_store()
    return store.list(col.FAB_MESSAGES)


def get_message(user_id: str, store=None) -> dict | None:
    store = store or get_store()
    return store.get(col.FAB_MESSAGES, user_id)


def _require_message(user_id: str, store) -> dict:
    message = store.get(col.FAB_MESSAGES, user_id)
    if message is None:
        raise NotFoundError(resource="FabMessage", resource_id=user_id)
    return message


def message_status(message: dict | None) -> str:
    """Status shown in the admin table; users without a record are ``not_created``."""
    if not message:
        return NOT_CREATED
    return message.get("status") or NOT_CREATED


def current_campaign(message: dict) -> dict | None:
    pipeline = message.get("pipeline") or []
    index = message.get("activeCampaignIndex", 0)
    if isinstance(index, int) and 0 <= index < len(pipeline):
        return pipeline[index]
    return None


# ── Validation helpers ───────────────────────────────────────────────────────

def _normalize_campaign(raw: dict, position: int, previous: dict | None) -> dict:
    if not isinstance(raw, dict):
        raise ValidationError("Campaign must be an object", details={f"pipeline[{position}]": "not an object"})
    errors = {}
    cta = raw.get("ctaMessage")
    follow_up = raw.get("followUpMessage")
    if not isinstance(cta, str) or not cta.strip():
        errors[f"pipeline[{position}].ctaMessage"] = "is required"
    if not isinstance(follow_up, str) or not follow_up.strip():
        errors[f"pipeline[{position}].followUpMessage"] = "is required"
    tag = raw.get("tag", DEFAULT_TAG)
    if tag not in CAMPAIGN_TAGS:
        errors[f"pipeline[{position}].tag"] = f"must be one of {', '.join(CAMPAIGN_TAGS)}"
    status = raw.get("status", "loaded")
    if status not in CAMPAIGN_STATUSES:
        errors[f"pipeline[{position}].status"] = f"must be one of {', '.join(CAMPAIGN_STATUSES)}"
    if errors:
        raise ValidationError("Invalid campaign", details=errors)

    campaign = {**raw, "tag": tag, "status": status}
    campaign["id"] = raw.get("id") or new_campaign_id()
    if previous:
        for key in _IMMUTABLE_CAMPAIGN_FIELDS:
            if previous.get(key):
                campaign[key] = previous[key]
    return campaign


def _clamp_index(index, pipeline: list) -> int:
    if not isinstance(index, int) or isinstance(index, bool) or index < 0:
        return 0
    if not pipeline:
        return 0
    return min(index, len(pipeline) - 1)


def _next_open_index(pipeline: list, start: int):
    return next((i for i in range(start, len(pipeline))
                 if pipeline[i].get("status") != "completed"), None)


# ── Admin writes ─────────────────────────────────────────────────────────────

def upsert_message_for_user(user_id: str, payload: dict, store=None) -> dict:
    """Create or merge the FAB message of ``user_id``.

    When ``pipeline`` is supplied (admin save) completed campaigns are
    reset to ``loaded`` and the message goes back to ``ready`` so it can
    be sent again; the existing cursor is kept (clamped to the pipeline).
    """
    if not user_id:
        raise ValidationError("userId is required", details={"userId": "required"})
    store = store or get_store()
    existing = store.get(col.FAB_MESSAGES, user_id) or {}
    changes = {k: v for k, v in payload.items() if k not in ("id", "userId")}

    if "isActive" in changes and not isinstance(changes["isActive"], bool):
        raise ValidationError("isActive must be a boolean", details={"isActive": "must be a boolean"})
    if "status" in changes and changes["status"] not in MESSAGE_STATUSES:
        raise ValidationError("Invalid status", details={"status": f"must be one of {', '.join(MESSAGE_STATUSES)}"})

    if "pipeline" in changes:
        raw_pipeline = changes["pipeline"]
        if not isinstance(raw_pipeline, list):
            raise ValidationError("pipeline must be a list", details={"pipeline": "must be a list"})
        previous_by_id = {c.get("id"): c for c in existing.get("pipeline") or [] if c.get("id")}
        pipeline = []
        for position, raw in enumerate(raw_pipeline):
            campaign = _normalize_campaign(raw, position, previous_by_id.get(raw.get("id") if isinstance(raw, dict) else None))
            if campaign["status"] == "completed":
                campaign["status"] = "loaded"
            pipeline.append(campaign)
        changes["pipeline"] = pipeline
        changes["status"] = changes.get("status", "ready")
        index = changes.get("activeCampaignIndex", existing.get("activeCampaignIndex", 0))
        changes["activeCampaignIndex"] = _clamp_index(index, pipeline)

    doc = {
        "userName": "",
        "isActive": True,
        "status": "ready",
        "activeCampaignIndex": 0,
        "pipeline": [],
        "archivedCampaigns": [],
        **{k: v for k, v in existing.items() if k != "id"},
        **changes,
        "userId": user_id,
    }
    _check_cursor(doc)

    saved = store.set(col.FAB_MESSAGES, user_id, doc)
    logger.info("FAB message upserted user=%s status=%s campaigns=%d",
                user_id, saved.get("status"), len(saved.get("pipeline") or []))
    return saved


def _check_cursor(doc: dict):
    if doc.get("status") in PENDING_STATUSES and current_campaign(doc) is None:
        raise ValidationError(
            "activeCampaignIndex must point at a pipeline campaign while a campaign is pending",
            details={"activeCampaignIndex": doc.get("activeCampaignIndex")},
        )


def set_activation(user_id: str, is_active: bool, store=None) -> dict:
    store = store or get_store()
    _require_message(user_id, store)
    if not isinstance(is_active, bool):
        raise ValidationError("isActive must be a boolean", details={"isActive": "must be a boolean"})
    return store.update(col.FAB_MESSAGES, user_id, {"isActive": is_active})


def delete_message_for_user(user_id: str, store=None) -> None:
    store = store or get_store()
    store.delete(col.FAB_MESSAGES, user_id)
    logger.info("FAB message deleted user=%s", user_id)


# ── Pipeline state machine ───────────────────────────────────────────────────

def _replace_campaign(pipeline: list, index: int, **fields) -> list:
    updated = [dict(c) for c in pipeline]
    for key, value in fields.items():
        if key in _IMMUTABLE_CAMPAIGN_FIELDS and updated[index].get(key):
            continue
        updated[index][key] = value
    return updated


def start_campaign(user_id: str, store=None) -> dict:
    """Send the current campaign's CTA: ready → pending_cta."""
    store = store or get_store()
    message = _require_message(user_id, store)
    status = message_status(message)
    if status != "ready":
        raise CampaignStateError(user_id, "start", status)
    if not message.get("isActive", True):
        raise CampaignStateError(user_id, "start", status, "pipeline is paused")
    index = message.get("activeCampaignIndex", 0)
    if current_campaign(message) is None:
        raise CampaignStateError(user_id, "start", status, "no campaign at the current position")

    pipeline = _replace_campaign(message["pipeline"], index, status="active", sentAt=utcnow_iso())
    return store.update(col.FAB_MESSAGES, user_id, {"pipeline": pipeline, "status": "pending_cta"})


def start_campaigns(user_ids: list[str], store=None) -> dict:
    """Bulk start; each user is reported individually."""
    store = store or get_store()
    started, failed = [], []
    for user_id in user_ids:
        try:
            start_campaign(user_id, store=store)
            started.append(user_id)
        except (NotFoundError, ConflictError) as exc:
            failed.append({"userId": user_id, "error": str(exc)})
    logger.info("Bulk campaign start: started=%d failed=%d", len(started), len(failed))
    return {"started": started, "failed": failed}


def mark_campaign_as_clicked(user_id: str, store=None) -> dict:
    """The user clicked the CTA bubble: pending_cta → pending_follow_up."""
    store = store or get_store()
    message = _require_message(user_id, store)
    status = message_status(message)
    if status != "pending_cta":
        raise CampaignStateError(user_id, "click", status)
    index = message.get("activeCampaignIndex", 0)
    pipeline = _replace_campaign(message["pipeline"], index, clickedAt=utcnow_iso())
    return store.update(col.FAB_MESSAGES, user_id, {"pipeline": pipeline, "status": "pending_follow_up"})


def complete_follow_up(user_id: str, store=None) -> dict:
    """Close the current campaign and advance the cursor.

    With a next campaign the message returns to ``ready`` for the next
    send; otherwise it becomes ``completed`` and the cursor stays on the
    last campaign.
    """
    store = store or get_store()
    message = _require_message(user_id, store)
    status = message_status(message)
    if status != "pending_follow_up":
        raise CampaignStateError(user_id, "complete follow-up", status)
    index = message.get("activeCampaignIndex", 0)
    pipeline = _replace_campaign(message["pipeline"], index, status="completed", completedAt=utcnow_iso())

    if index + 1 < len(pipeline):
        changes = {"pipeline": pipeline, "status": "ready", "activeCampaignIndex": index + 1}
    else:
        changes = {"pipeline": pipeline, "status": "completed"}
    updated = store.update(col.FAB_MESSAGES, user_id, changes)
    logger.info("FAB follow-up completed user=%s index=%d next_status=%s", user_id, index, changes["status"])
    return updated


def mark_campaign_effective(user_id: str, campaign_id: str, store=None) -> dict:
    """Stamp ``effectiveAt`` once; repeated calls keep the first timestamp."""
    store = store or get_store()
    message = _require_message(user_id, store)
    pipeline = message.get("pipeline") or []
    for index, campaign in enumerate(pipeline):
        if campaign.get("id") == campaign_id:
            if campaign.get("effectiveAt"):
                return message
            updated = _replace_campaign(pipeline, index, effectiveAt=utcnow_iso())
            return store.update(col.FAB_MESSAGES, user_id, {"pipeline": updated})
    raise NotFoundError(resource="Campaign", resource_id=campaign_id)


def archive_individual_campaign(user_id: str, campaign_id: str, store=None) -> dict:
    """Move a campaign from the pipeline to ``archivedCampaigns``.

    The campaign currently awaiting the user (pending_cta / pending_follow_up)
    cannot be archived.
    """
    store = store or get_store()
    message = _require_message(user_id, store)
    pipeline = list(message.get("pipeline") or [])
    position = next((i for i, c in enumerate(pipeline) if c.get("id") == campaign_id), None)
    if position is None:
        raise NotFoundError(resource="Campaign", resource_id=campaign_id)

    status = message_status(message)
    index = message.get("activeCampaignIndex", 0)
    if status in PENDING_STATUSES and position == index:
        raise CampaignStateError(user_id, "archive", status, "campaign is in flight")

    campaign = {**pipeline.pop(position), "archivedAt": utcnow_iso()}
    if position < index:
        index -= 1
    changes = {
        "pipeline": pipeline,
        "archivedCampaigns": list(message.get("archivedCampaigns") or []) + [campaign],
        "activeCampaignIndex": _clamp_index(index, pipeline),
    }
    if status not in PENDING_STATUSES:
        # the cursor never rests on a campaign that was already delivered
        open_index = _next_open_index(pipeline, changes["activeCampaignIndex"])
        if open_index is None:
            changes["status"] = "completed"
        else:
            changes["activeCampaignIndex"] = open_index
            changes["status"] = "ready"
    return store.update(col.FAB_MESSAGES, user_id, changes)


# ── CSV import ───────────────────────────────────────────────────────────────

def import_campaigns_csv(text: str, store=None) -> dict:
    """Build one pipeline per collaborator from a CSV export.

    Rows for unknown emails are skipped; invalid tags fall back to the
    default tag. Each imported user gets status ``ready`` at index 0.
    """
    store = store or get_store()
    reader = csv.DictReader(io.StringIO(text.lstrip("\ufeff")))
    headers = reader.fieldnames or []
    missing = [h for h in CSV_REQUIRED_HEADERS if h not in headers]
    if missing:
        raise ValidationError(
            f"CSV must contain the columns: {', '.join(CSV_REQUIRED_HEADERS)}",
            details={"missingHeaders": missing},
        )

    per_user: dict[str, dict] = {}
    skipped, retagged = [], 0
    for line_no, row in enumerate(reader, start=2):
        if not any((v or "").strip() for v in row.values() if isinstance(v, str)):
            continue
        email = (row.get("userEmail") or "").strip()
        collaborator = find_collaborator_by_email(email, store)
        if collaborator is None:
            logger.warning("CSV import: no collaborator for email=%s line=%d", email, line_no)
            skipped.append({"line": line_no, "userEmail": email})
            continue
        tag = (row.get("tag") or "").strip()
        if tag not in CAMPAIGN_TAGS:
            logger.warning("CSV import: invalid tag %r for %s, using %s", tag, email, DEFAULT_TAG)
            tag = DEFAULT_TAG
            retagged += 1
        user_id = collaborator["id"]
        entry = per_user.setdefault(user_id, {"userName": collaborator.get("name", ""), "campaigns": []})
        entry["campaigns"].append({
            "id": new_campaign_id(),
            "ctaMessage": row.get("ctaMessage") or "",
            "followUpMessage": row.get("followUpMessage") or "",
            "tag": tag,
            "status": "loaded",
        })

    for user_id, entry in per_user.items():
        upsert_message_for_user(user_id, {
            "userName": entry["userName"],
            "pipeline": entry["campaigns"],
            "isActive": True,
            "status": "ready",
            "activeCampaignIndex": 0,
        }, store=store)

    logger.info("CSV import finished users=%d skipped=%d retagged=%d", len(per_user), len(skipped), retagged)
    return {"importedUsers": sorted(per_user), "skipped": skipped, "retagged": retagged}


# ── Bubble view ──────────────────────────────────────────────────────────────

def bubble_for_user(user_id: str, store=None) -> dict:
    """What the floating bubble shows for ``user_id``.

    Active message in a pending state → the current campaign's text.
    Anything else → the ordered idle messages.
    """
    store = store or get_store()
    message = store.get(col.FAB_MESSAGES, user_id)
    if message and message.get("isActive", True) and message.get("status") in PENDING_STATUSES:
        campaign = current_campaign(message)
        if campaign is not None:
            if message["status"] == "pending_cta":
                return {"mode": "active", "state": "cta", "campaignId": campaign["id"],
                        "tag": campaign.get("tag"), "text": campaign.get("ctaMessage")}
            return {"mode": "active", "state": "follow_up", "campaignId": campaign["id"],
                    "tag": campaign.get("tag"), "text": campaign.get("followUpMessage")}
    idle = sorted(store.list(col.IDLE_FAB_MESSAGES), key=lambda m: (m.get("order", 0), m.get("text", "")))
    return {"mode": "idle", "messages": [m.get("text") for m in idle]}
