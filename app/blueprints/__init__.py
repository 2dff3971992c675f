"""
Intranet Portal
Blueprint registry.
"""

from flask import request


def paginate_records(records, default_limit=200, max_limit=1000):
    """Apply limit/offset pagination to an already-filtered record list.

    Query params:
        limit  — max items (default 200, capped at max_limit)
        offset — starting position (default 0)

    Returns:
        (items_list, total_count)
    """
    total = len(records)
    try:
        limit = min(int(request.args.get("limit", default_limit)), max_limit)
    except (ValueError, TypeError):
        limit = default_limit
    try:
        offset = max(int(request.args.get("offset", 0)), 0)
    except (ValueError, TypeError):
        offset = 0
    return records[offset:offset + limit], total
