"""
FAB campaign analytics — read-side aggregations for the admin charts.

Each aggregation walks every message's campaigns exactly once.

    campaign_status_totals   total / completed / effective (pipeline only)
    tag_distribution         campaigns per fixed tag (pipeline + archived)
    campaign_history         per-day CTA sends and follow-up displays
"""

from collections import defaultdict

from app.services.fab_service import CAMPAIGN_TAGS
from app.utils.helpers import parse_date


def _filter(messages: list[dict], user_ids=None) -> list[dict]:
    if not user_ids:
        return messages
    wanted = set(user_ids)
    return [m for m in messages if m.get("userId") in wanted]


def campaign_status_totals(messages: list[dict], user_ids=None) -> dict:
    total = completed = effective = 0
    for message in _filter(messages, user_ids):
        for campaign in message.get("pipeline") or []:
            total += 1
            if campaign.get("status") == "completed":
                completed += 1
            if campaign.get("effectiveAt"):
                effective += 1
    return {"total": total, "completed": completed, "effective": effective}


def tag_distribution(messages: list[dict], user_ids=None) -> dict:
    counts = {tag: 0 for tag in CAMPAIGN_TAGS}
    for message in _filter(messages, user_ids):
        campaigns = list(message.get("pipeline") or []) + list(message.get("archivedCampaigns") or [])
        for campaign in campaigns:
            tag = campaign.get("tag")
            if tag in counts:
                counts[tag] += 1
    return counts


def campaign_history(messages: list[dict], user_ids=None) -> list[dict]:
    """Per-day counts, oldest first: ``[{date, ctaSent, followUpDisplayed}]``."""
    days = defaultdict(lambda: {"ctaSent": 0, "followUpDisplayed": 0})
    for message in _filter(messages, user_ids):
        campaigns = list(message.get("pipeline") or []) + list(message.get("archivedCampaigns") or [])
        for campaign in campaigns:
            sent = parse_date(campaign.get("sentAt"))
            if sent is not None:
                days[sent.isoformat()]["ctaSent"] += 1
            clicked = parse_date(campaign.get("clickedAt"))
            if clicked is not None:
                days[clicked.isoformat()]["followUpDisplayed"] += 1
    return [{"date": day, **counts} for day, counts in sorted(days.items())]
