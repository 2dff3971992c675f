"""
Billing Service — monthly cost summary for super admins.

The cloud billing export is not wired up; ``billing_summary`` returns a
fixed mock month so the admin dashboard has data to render.  Totals and
the end-of-month projection are derived from the per-service costs.
"""

import logging

logger = logging.getLogger(__name__)

MOCK_MONTH = {
    "currentMonth": "Agosto 2024",
    "daysInMonth": 31,
    "currentDay": 15,
    "services": [
        {"id": "hosting", "name": "App Hosting", "cost": 12.50},
        {"id": "firestore", "name": "Firestore", "cost": 25.80},
        {"id": "storage", "name": "Cloud Storage", "cost": 5.20},
        {"id": "auth", "name": "Authentication", "cost": 2.15},
        {"id": "genkit", "name": "Genkit / AI Models", "cost": 45.75},
    ],
}


def project_cost(total: float, current_day: int, days_in_month: int) -> float:
    """Linear projection of month-to-date spend to the full month."""
    if current_day <= 0:
        return round(total, 2)
    return round(total / current_day * days_in_month, 2)


def billing_summary() -> dict:
    services = [dict(s) for s in MOCK_MONTH["services"]]
    total = round(sum(s["cost"] for s in services), 2)
    return {
        "currentMonth": MOCK_MONTH["currentMonth"],
        "daysInMonth": MOCK_MONTH["daysInMonth"],
        "currentDay": MOCK_MONTH["currentDay"],
        "services": services,
        "totalCost": total,
        "projectedCost": project_cost(total, MOCK_MONTH["currentDay"], MOCK_MONTH["daysInMonth"]),
    }
