"""Shared utility functions for services and blueprints.

parse_date:      date from ISO or DD/MM/YYYY input, None on bad input
parse_datetime:  timezone-aware datetime from ISO input, None on bad input
utcnow_iso:      current UTC time as an ISO-8601 string (stored timestamps)
"""
import logging
from datetime import date, datetime, timezone

logger = logging.getLogger(__name__)


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def parse_date(value):
    """Parse a date string (ISO or DD/MM/YYYY) to a date object.

    Returns None for empty/invalid input. Supports:
    - YYYY-MM-DD (ISO format)
    - YYYY-MM-DDTHH:MM:SS[+TZ] (datetime ISO → .date())
    - DD/MM/YYYY (pt-BR format used by the CSV imports)
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except (ValueError, TypeError):
        pass
    parsed = parse_datetime(value)
    if parsed is not None:
        return parsed.date()
    try:
        return datetime.strptime(str(value), "%d/%m/%Y").date()
    except (ValueError, TypeError):
        return None


def parse_datetime(value):
    """Parse an ISO timestamp; naive values are assumed to be UTC."""
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
