"""
Poll Service — quick polls shown on a target page.

Polls live in ``polls``; answers in the ``polls/<pollId>/responses``
sub-collection, one answer per user.
"""

import logging

from app import collections as col
from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.services.content_service import is_visible_to
from app.storage import get_store
from app.utils.helpers import utcnow_iso

logger = logging.getLogger(__name__)


def _normalize_options(options) -> list[str]:
    """Accept ``["a", "b"]`` or ``[{"value": "a"}, ...]``; return plain strings."""
    if not isinstance(options, list):
        return []
    values = []
    for option in options:
        value = option.get("value") if isinstance(option, dict) else option
        if isinstance(value, str) and value.strip():
            values.append(value.strip())
    return values


def validate_poll(data: dict, partial: bool = False) -> dict:
    errors = {}
    result = {}
    if not partial or "question" in data:
        question = data.get("question")
        if not isinstance(question, str) or not question.strip():
            errors["question"] = "is required"
        else:
            result["question"] = question.strip()
    if not partial or "options" in data:
        options = _normalize_options(data.get("options"))
        if len(options) < 2:
            errors["options"] = "at least two non-empty options are required"
        elif len(set(options)) != len(options):
            errors["options"] = "options must be unique"
        else:
            result["options"] = options
    if not partial or "targetPage" in data:
        target = data.get("targetPage")
        if not isinstance(target, str) or not target.strip():
            errors["targetPage"] = "is required"
        else:
            result["targetPage"] = target.strip()
    if not partial or "recipientIds" in data:
        recipients = data.get("recipientIds")
        if not isinstance(recipients, list) or len(recipients) < 1:
            errors["recipientIds"] = "select at least one recipient"
        else:
            result["recipientIds"] = recipients
    if "isActive" in data:
        if not isinstance(data["isActive"], bool):
            errors["isActive"] = "must be a boolean"
        else:
            result["isActive"] = data["isActive"]
    elif not partial:
        result["isActive"] = True
    if errors:
        raise ValidationError("Invalid poll", details=errors)
    return result


def list_polls(access=None, store=None) -> list[dict]:
    store = store or get_store()
    return [p for p in store.list(col.POLLS) if is_visible_to(p, access)]


def get_poll(poll_id: str, store=None) -> dict:
    store = store or get_store()
    poll = store.get(col.POLLS, poll_id)
    if poll is None:
        raise NotFoundError(resource="Poll", resource_id=poll_id)
    return poll


def create_poll(data: dict, store=None) -> dict:
    store = store or get_store()
    poll = store.add(col.POLLS, validate_poll(data))
    logger.info("Poll created id=%s target=%s", poll["id"], poll["targetPage"])
    return poll


def update_poll(poll_id: str, data: dict, store=None) -> dict:
    store = store or get_store()
    get_poll(poll_id, store)
    return store.update(col.POLLS, poll_id, validate_poll(data, partial=True))


def delete_poll(poll_id: str, store=None) -> None:
    store = store or get_store()
    store.delete(col.POLLS, poll_id)
    responses = col.poll_responses(poll_id)
    for response in store.list(responses):
        store.delete(responses, response["id"])


def list_responses(poll_id: str, store=None) -> list[dict]:
    store = store or get_store()
    get_poll(poll_id, store)
    return store.list(col.poll_responses(poll_id))


def submit_response(poll_id: str, access, answer, store=None) -> dict:
    store = store or get_store()
    poll = get_poll(poll_id, store)
    if not poll.get("isActive", True) or not is_visible_to(poll, access):
        raise NotFoundError(resource="Poll", resource_id=poll_id)
    if answer not in poll.get("options", []):
        raise ValidationError("Answer must be one of the poll options", details={"answer": answer})

    responses = col.poll_responses(poll_id)
    if any(r.get("userId") == access.user_id for r in store.list(responses)):
        raise ConflictError("PollResponse", "userId", access.user_id)

    response = store.add(responses, {
        "userId": access.user_id,
        "userName": access.display_name,
        "answer": answer,
        "answeredAt": utcnow_iso(),
    })
    logger.info("Poll response poll=%s user=%s", poll_id, access.user_id)
    return response


def poll_results(poll_id: str, store=None) -> dict:
    store = store or get_store()
    poll = get_poll(poll_id, store)
    responses = store.list(col.poll_responses(poll_id))
    counts = {option: 0 for option in poll.get("options", [])}
    for response in responses:
        if response.get("answer") in counts:
            counts[response["answer"]] += 1
    total = len(responses)
    return {
        "pollId": poll_id,
        "question": poll.get("question"),
        "totalResponses": total,
        "results": [
            {"option": option, "count": count,
             "percentage": round(count * 100.0 / total, 1) if total else 0.0}
            for option, count in counts.items()
        ],
    }


def pending_polls(access, target_page: str, store=None) -> list[dict]:
    """Active polls for ``target_page`` the caller is addressed by and has not answered."""
    store = store or get_store()
    pending = []
    for poll in store.list(col.POLLS):
        if not poll.get("isActive", True) or poll.get("targetPage") != target_page:
            continue
        recipients = poll.get("recipientIds") or []
        if not access.audience_ids.intersection(recipients):
            continue
        answered = any(r.get("userId") == access.user_id for r in store.list(col.poll_responses(poll["id"])))
        if not answered:
            pending.append(poll)
    return pending
