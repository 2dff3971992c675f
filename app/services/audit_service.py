"""
Audit Service — append-only interaction log in ``audit_logs``.

Entries: {eventType, userId, timestamp, details}

Listing is bounded by a date range. The default range is the last 30 days
and no range may start before AUDIT_START_DATE, the day logging went live.
"""

import logging
from collections import Counter
from datetime import date, datetime, time, timedelta, timezone

from app import collections as col
from app.core.exceptions import ValidationError
from app.storage import get_store
from app.utils.helpers import parse_date, parse_datetime, utcnow_iso

logger = logging.getLogger(__name__)

AUDIT_START_DATE = date(2024, 8, 1)
DEFAULT_RANGE_DAYS = 30

EVENT_TYPES = {
    "document_download",
    "content_view",
    "page_view",
    "search_term_used",
    "login",
    "workflow_submitted",
}


def log_event(event_type: str, user_id: str, details: dict | None = None, store=None) -> dict:
    """Append an audit entry and return it."""
    if not event_type:
        raise ValidationError("eventType is required", details={"eventType": "required"})
    store = store or get_store()
    entry = store.add(col.AUDIT_LOGS, {
        "eventType": event_type,
        "userId": user_id,
        "timestamp": utcnow_iso(),
        "details": details or {},
    })
    logger.info("Audit event %s user=%s", event_type, user_id, extra={"event_type": event_type})
    return entry


def resolve_range(start=None, end=None, today: date | None = None) -> tuple[date, date]:
    """Clamp the requested range: default last 30 days, floor at AUDIT_START_DATE."""
    today = today or datetime.now(timezone.utc).date()
    end_date = parse_date(end) if end else today
    start_date = parse_date(start) if start else (end_date or today) - timedelta(days=DEFAULT_RANGE_DAYS)
    if end_date is None or start_date is None:
        raise ValidationError("Invalid date range", details={"start": start, "end": end})
    if start_date < AUDIT_START_DATE:
        start_date = AUDIT_START_DATE
    if start_date > end_date:
        raise ValidationError("start must be on or before end", details={"start": str(start_date), "end": str(end_date)})
    return start_date, end_date


def list_events(start=None, end=None, event_type: str | None = None, user_id: str | None = None,
                store=None) -> dict:
    store = store or get_store()
    start_date, end_date = resolve_range(start, end)
    lower = datetime.combine(start_date, time.min, tzinfo=timezone.utc)
    upper = datetime.combine(end_date, time.max, tzinfo=timezone.utc)

    events = []
    for entry in store.list(col.AUDIT_LOGS):
        ts = parse_datetime(entry.get("timestamp"))
        if ts is None or not (lower <= ts <= upper):
            continue
        if event_type and entry.get("eventType") != event_type:
            continue
        if user_id and entry.get("userId") != user_id:
            continue
        events.append(entry)
    events.sort(key=lambda e: e["timestamp"], reverse=True)
    return {"start": start_date.isoformat(), "end": end_date.isoformat(), "events": events}


def summarize(events: list[dict], top: int = 10) -> dict:
    """Counts per event type, distinct users and most-interacted items."""
    by_type = Counter(e.get("eventType") for e in events)
    users = {e.get("userId") for e in events if e.get("userId")}
    items = Counter()
    for e in events:
        details = e.get("details") or {}
        name = details.get("documentName") or details.get("contentName") or details.get("contentId")
        if name:
            items[name] += 1
    return {
        "total": len(events),
        "uniqueUsers": len(users),
        "byEventType": dict(by_type),
        "topItems": [{"name": n, "count": c} for n, c in items.most_common(top)],
    }
