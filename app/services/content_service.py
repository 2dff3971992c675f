"""
Content Service — flat CRUD collections of the portal.

Each collection is described by a CollectionSpec (fields, defaults, sort
order, audience filtering, write permission). The generic blueprint uses
the registry below; domain operations that go beyond CRUD live here too:

    toggle_news_highlight      newsItems.isHighlight flip
    toggle_highlight_active    highlights.isActive flip (max 3 active)
    mark_message_read          messages.readBy array union
    visible_quick_links        per-user links with {userEmail} substitution
    download_document          audit event + download URL
"""

import logging
from dataclasses import dataclass, field
from urllib.parse import urlsplit

from email_validator import EmailNotValidError, validate_email
from flask import current_app

from app import collections as col
from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.services import audit_service
from app.storage import ArrayUnion, get_store
from app.utils.helpers import parse_date, parse_datetime

logger = logging.getLogger(__name__)

MAX_ACTIVE_HIGHLIGHTS = 3
_MISSING = object()


@dataclass(frozen=True)
class FieldRule:
    name: str
    kind: str = "str"          # str | int | bool | list | dict | url | email | date
    required: bool = True
    default: object = _MISSING
    min_length: int = 0
    min_items: int = 0


@dataclass(frozen=True)
class CollectionSpec:
    name: str
    fields: tuple = field(default_factory=tuple)
    sort_key: str | None = None
    descending: bool = False
    audience: bool = False
    write_permission: str | None = "canManageContent"
    dedupe: bool = False


def _f(name, kind="str", **kw):
    return FieldRule(name=name, kind=kind, **kw)


def _opt(name, kind="str", default=_MISSING, **kw):
    return FieldRule(name=name, kind=kind, required=False, default=default, **kw)


CONTENT_COLLECTIONS: dict[str, CollectionSpec] = {
    spec.name: spec
    for spec in (
        CollectionSpec(
            col.NEWS,
            (_f("title"), _f("snippet"), _f("category"), _f("date", "date"),
             _opt("imageUrl", default=""), _opt("link", default=""),
             _opt("isHighlight", "bool", default=False)),
            sort_key="date", descending=True,
        ),
        CollectionSpec(
            col.DOCUMENTS,
            (_f("name"), _f("category"), _f("type"), _f("size"),
             _f("lastModified", "date"), _f("downloadUrl", "url")),
            sort_key="lastModified", descending=True, dedupe=True,
        ),
        CollectionSpec(
            col.LABS,
            (_f("title"), _opt("subtitle"), _f("category"),
             _f("lastModified", "date"), _f("videoUrl", "url")),
            sort_key="lastModified", descending=True,
        ),
        CollectionSpec(
            col.RANKINGS,
            (_f("name"), _f("pdfUrl", "url"), _opt("order", "int", default=0),
             _opt("recipientIds", "list", default=["all"], min_items=1)),
            sort_key="order", audience=True,
        ),
        CollectionSpec(
            col.CONTACTS,
            (_f("area"), _f("manager"), _f("slackUrl", "url"), _opt("order", "int", default=0)),
            sort_key="order",
        ),
        CollectionSpec(
            col.EVENTS,
            (_f("title"), _f("date", "date"), _f("time"), _f("location"), _f("icon"),
             _opt("recipientIds", "list", default=["all"], min_items=1)),
            sort_key="date", audience=True,
        ),
        CollectionSpec(
            col.HIGHLIGHTS,
            (_f("title"), _f("description"), _f("imageUrl", "url"), _f("link"),
             _opt("isActive", "bool", default=False)),
            sort_key="title", descending=True,
        ),
        CollectionSpec(
            col.MESSAGES,
            (_f("title"), _f("content"), _f("sender"), _f("date", "date"),
             _opt("recipientIds", "list", default=["all"], min_items=1),
             _opt("readBy", "list", default=[])),
            sort_key="date", descending=True, audience=True,
        ),
        CollectionSpec(
            col.COLLABORATORS,
            (_f("name"), _f("email", "email"), _f("axis"), _f("area"), _f("position"),
             _f("leader"), _f("segment"), _f("city"), _opt("id3a"),
             _opt("permissions", "dict", default={})),
            sort_key="name", write_permission=None,
        ),
        CollectionSpec(
            col.QUICK_LINKS,
            (_opt("name"), _f("imageUrl", "url"), _f("link"),
             _opt("isUserSpecific", "bool", default=False),
             _opt("recipientIds", "list", default=["all"], min_items=1),
             _opt("order", "int")),
            sort_key="order", audience=True,
        ),
        CollectionSpec(
            col.APPLICATIONS,
            (_f("name"), _f("icon"), _opt("type"), _opt("items", "list", default=[])),
            sort_key="name",
        ),
        CollectionSpec(
            col.WORKFLOW_AREAS,
            (_f("name"), _f("icon"), _f("storageFolderPath")),
            sort_key="name", write_permission="canManageWorkflows",
        ),
        CollectionSpec(
            col.WORKFLOW_DEFINITIONS,
            (_f("name"), _f("areaId"), _opt("description", default=""),
             _opt("fields", "list", default=[]), _opt("routing", "dict", default={})),
            sort_key="name", write_permission="canManageWorkflows",
        ),
        CollectionSpec(
            col.IDLE_FAB_MESSAGES,
            (_f("text", min_length=10), _opt("order", "int", default=0)),
            sort_key="order", write_permission=None,
        ),
    )
}


def get_spec(name: str) -> CollectionSpec:
    spec = CONTENT_COLLECTIONS.get(name)
    if spec is None:
        raise NotFoundError(resource="Collection", resource_id=name)
    return spec


# ── Validation ───────────────────────────────────────────────────────────────

def _check_value(rule: FieldRule, value):
    """Return (normalised_value, error_message_or_None)."""
    kind = rule.kind
    if kind in ("str", "url", "email", "date"):
        if not isinstance(value, str):
            return value, "must be a string"
        if rule.required and not value.strip():
            return value, "is required"
        if rule.min_length and len(value) < rule.min_length:
            return value, f"must have at least {rule.min_length} characters"
        if kind == "url" and value:
            parts = urlsplit(value)
            if parts.scheme not in ("http", "https") or not parts.netloc:
                return value, "must be an http(s) URL"
        if kind == "email":
            try:
                value = validate_email(
                    value, check_deliverability=False, test_environment=current_app.testing,
                ).normalized
            except EmailNotValidError as exc:
                return value, f"invalid email: {exc}"
        if kind == "date" and value:
            parsed = parse_date(value)
            if parsed is None:
                return value, "must be an ISO date"
            # DD/MM/YYYY is stored as ISO so dates sort chronologically
            if parse_datetime(value) is None:
                value = parsed.isoformat()
        return value, None
    if kind == "int":
        if isinstance(value, bool) or not isinstance(value, int):
            return value, "must be an integer"
        return value, None
    if kind == "bool":
        if not isinstance(value, bool):
            return value, "must be a boolean"
        return value, None
    if kind == "list":
        if not isinstance(value, list):
            return value, "must be a list"
        if len(value) < rule.min_items:
            return value, f"must contain at least {rule.min_items} item(s)"
        return value, None
    if kind == "dict":
        if not isinstance(value, dict):
            return value, "must be an object"
        return value, None
    return value, None


def validate_payload(spec: CollectionSpec, data: dict, partial: bool = False) -> dict:
    """Validate ``data`` against ``spec``; fill defaults on create.

    Unknown keys are kept as-is so admins can attach extra metadata.
    """
    if not isinstance(data, dict):
        raise ValidationError("Payload must be an object")
    result = {k: v for k, v in data.items() if k != "id"}
    errors = {}
    for rule in spec.fields:
        if rule.name in data:
            value, error = _check_value(rule, data[rule.name])
            if error:
                errors[rule.name] = error
            else:
                result[rule.name] = value
        elif not partial:
            if rule.required:
                errors[rule.name] = "is required"
            elif rule.default is not _MISSING:
                default = rule.default
                result[rule.name] = list(default) if isinstance(default, list) else (
                    dict(default) if isinstance(default, dict) else default)
    if errors:
        raise ValidationError(f"Invalid {spec.name} payload", details=errors)
    return result


# ── Reads ────────────────────────────────────────────────────────────────────

def _sort_value(value):
    if isinstance(value, str) and "/" in value:
        parsed = parse_date(value)
        if parsed is not None:
            return parsed.isoformat()
    return value


def sort_records(records: list[dict], key: str | None, descending: bool = False) -> list[dict]:
    """Sort by ``key``; records missing the key always go last."""
    if not key:
        return list(records)
    present = [r for r in records if r.get(key) is not None]
    missing = [r for r in records if r.get(key) is None]
    try:
        present.sort(key=lambda r: _sort_value(r[key]), reverse=descending)
    except TypeError:
        present.sort(key=lambda r: str(r[key]), reverse=descending)
    return present + missing


def _dedupe(records: list[dict]) -> list[dict]:
    seen = set()
    unique = []
    for record in records:
        if record["id"] in seen:
            continue
        seen.add(record["id"])
        unique.append(record)
    return unique


def is_visible_to(record: dict, access) -> bool:
    if access is None or access.is_admin:
        return True
    recipients = record.get("recipientIds") or ["all"]
    return bool(access.audience_ids.intersection(recipients))


def list_records(name: str, access=None, store=None) -> list[dict]:
    spec = get_spec(name)
    store = store or get_store()
    records = store.list(name)
    if spec.dedupe:
        records = _dedupe(records)
    if spec.audience:
        records = [r for r in records if is_visible_to(r, access)]
    return sort_records(records, spec.sort_key, spec.descending)


def get_record(name: str, record_id: str, access=None, store=None) -> dict:
    get_spec(name)
    store = store or get_store()
    record = store.get(name, record_id)
    if record is None or not is_visible_to(record, access):
        raise NotFoundError(resource=name, resource_id=record_id)
    return record


# ── Writes ───────────────────────────────────────────────────────────────────

def _active_highlight_count(store, exclude_id=None) -> int:
    return sum(
        1 for r in store.list(col.HIGHLIGHTS)
        if r.get("isActive") and r["id"] != exclude_id
    )


def _next_order(store, name) -> int:
    orders = [r.get("order") for r in store.list(name) if isinstance(r.get("order"), int)]
    return max(orders) + 1 if orders else 0


def create_record(name: str, data: dict, store=None) -> dict:
    spec = get_spec(name)
    store = store or get_store()
    payload = validate_payload(spec, data)

    if name == col.QUICK_LINKS and payload.get("order") is None:
        payload["order"] = _next_order(store, name)
    if name == col.HIGHLIGHTS and payload.get("isActive"):
        if _active_highlight_count(store) >= MAX_ACTIVE_HIGHLIGHTS:
            raise ConflictError(
                "highlights", "isActive", "true",
                message=f"At most {MAX_ACTIVE_HIGHLIGHTS} highlights can be active",
            )

    record = store.add(name, payload)
    logger.info("Created %s id=%s", name, record["id"], extra={"collection": name})
    return record


def update_record(name: str, record_id: str, data: dict, store=None) -> dict:
    spec = get_spec(name)
    store = store or get_store()
    payload = validate_payload(spec, data, partial=True)
    if name == col.HIGHLIGHTS and payload.get("isActive"):
        current = store.get(name, record_id)
        if current is not None and not current.get("isActive"):
            if _active_highlight_count(store, exclude_id=record_id) >= MAX_ACTIVE_HIGHLIGHTS:
                raise ConflictError(
                    "highlights", "isActive", "true",
                    message=f"At most {MAX_ACTIVE_HIGHLIGHTS} highlights can be active",
                )
    return store.update(name, record_id, payload)


def delete_record(name: str, record_id: str, store=None) -> None:
    get_spec(name)
    store = store or get_store()
    store.delete(name, record_id)
    logger.info("Deleted %s id=%s", name, record_id, extra={"collection": name})


# ── Domain operations ────────────────────────────────────────────────────────

def toggle_news_highlight(news_id: str, store=None) -> dict:
    store = store or get_store()
    item = store.get(col.NEWS, news_id)
    if item is None:
        raise NotFoundError(resource=col.NEWS, resource_id=news_id)
    return store.update(col.NEWS, news_id, {"isHighlight": not item.get("isHighlight", False)})


def toggle_highlight_active(highlight_id: str, store=None) -> dict:
    store = store or get_store()
    item = store.get(col.HIGHLIGHTS, highlight_id)
    if item is None:
        raise NotFoundError(resource=col.HIGHLIGHTS, resource_id=highlight_id)
    activate = not item.get("isActive", False)
    if activate and _active_highlight_count(store, exclude_id=highlight_id) >= MAX_ACTIVE_HIGHLIGHTS:
        raise ConflictError(
            "highlights", "isActive", "true",
            message=f"At most {MAX_ACTIVE_HIGHLIGHTS} highlights can be active",
        )
    return store.update(col.HIGHLIGHTS, highlight_id, {"isActive": activate})


def mark_message_read(message_id: str, access, store=None) -> dict:
    store = store or get_store()
    message = store.get(col.MESSAGES, message_id)
    if message is None or not is_visible_to(message, access):
        raise NotFoundError(resource=col.MESSAGES, resource_id=message_id)
    return store.update(col.MESSAGES, message_id, {"readBy": ArrayUnion(access.user_id)})


def visible_quick_links(access, store=None) -> list[dict]:
    """Links the caller can see; user-specific links get {userEmail} filled in."""
    links = list_records(col.QUICK_LINKS, access=None, store=store)
    email = (access.identity.email or "") if access else ""
    visible = []
    for link in links:
        recipients = link.get("recipientIds") or ["all"]
        # Dashboard view: admins only see links addressed to them as well
        if access is not None and not access.audience_ids.intersection(recipients):
            continue
        if link.get("isUserSpecific"):
            link = {**link, "link": str(link.get("link", "")).replace("{userEmail}", email)}
        visible.append(link)
    return visible


def download_document(document_id: str, access, store=None) -> dict:
    store = store or get_store()
    document = store.get(col.DOCUMENTS, document_id)
    if document is None:
        raise NotFoundError(resource=col.DOCUMENTS, resource_id=document_id)
    audit_service.log_event(
        "document_download",
        user_id=access.user_id,
        details={"documentId": document_id, "documentName": document.get("name")},
        store=store,
    )
    return {"id": document_id, "downloadUrl": document.get("downloadUrl")}
