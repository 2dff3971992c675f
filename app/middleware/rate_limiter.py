"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter.
The Limiter instance is created in app/__init__.py with no default limits;
this module applies granular limits per route category. Scanner-tagged
requests are exempt only behind a trusted proxy.

Usage:
    from app.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

from flask import current_app, g

logger = logging.getLogger(__name__)


def _is_allowlisted_scan() -> bool:
    if not current_app.config.get("TRUSTED_PROXY_COUNT"):
        return False
    return bool(getattr(g, "scanner_scan", False))


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per remote IP):
        - Feed proxies:     30/minute  (each call fans out to external hosts)
        - Portal API:       120/minute
        - Health check:     exempt

    Rate limiting is disabled in testing mode.
    """

    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    limiter.request_filter(_is_allowlisted_scan)

    bp = app.blueprints.get("rss")
    if bp:
        limiter.limit("30/minute")(bp)

    for bp_name in ("collections", "fab", "polls", "workflows", "audit", "access", "billing"):
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit("120/minute")(bp)

    bp = app.blueprints.get("health_bp")
    if bp:
        limiter.exempt(bp)

    app.logger.info("Rate limiter configured — rss: 30/min, api: 120/min")
