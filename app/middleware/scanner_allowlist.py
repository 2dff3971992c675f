"""
Vulnerability scanner allowlist.

Requests to /api/* whose first X-Forwarded-For address is a known scanner
IP *and* whose User-Agent contains the scanner signature are tagged:

    g.scanner_scan = True
    response header X-Detectify-Scan: true

Tagged requests are logged. They get no bypass of the maintenance gate, and
are exempt from rate limits only when X-Forwarded-For comes from a trusted
proxy (TRUSTED_PROXY_COUNT > 0, applied with werkzeug ProxyFix).

Usage:
    from app.middleware.scanner_allowlist import init_scanner_allowlist
    init_scanner_allowlist(app)
"""

import logging

from flask import current_app, g, request

logger = logging.getLogger(__name__)

SCAN_HEADER = "X-Detectify-Scan"


def client_ip() -> str | None:
    """Client address from X-Forwarded-For; None when the header is absent."""
    forwarded = request.headers.get("X-Forwarded-For", "")
    if not forwarded:
        return None
    if current_app.config.get("TRUSTED_PROXY_COUNT"):
        # ProxyFix already resolved the hop appended by our own proxy
        return request.remote_addr
    return forwarded.split(",")[0].strip() or None


def is_scanner_request() -> bool:
    """True when the current request comes from the allowlisted scanner."""
    if not request.path.startswith("/api/"):
        return False
    allowed_ips = set(current_app.config.get("SCANNER_ALLOWED_IPS", []))
    signature = (current_app.config.get("SCANNER_USER_AGENT") or "").lower()
    if not allowed_ips or not signature:
        return False
    user_agent = (request.headers.get("User-Agent") or "").lower()
    return client_ip() in allowed_ips and signature in user_agent


def init_scanner_allowlist(app):
    """Register before/after hooks tagging scanner traffic."""

    @app.before_request
    def _tag_scanner():
        g.scanner_scan = is_scanner_request()
        if g.scanner_scan:
            logger.info(
                "[Detectify] Scan detectado de IP %s path=%s",
                client_ip(), request.path,
                extra={"scanner": True, "path": request.path},
            )

    @app.after_request
    def _mark_scanner_response(response):
        if getattr(g, "scanner_scan", False):
            response.headers[SCAN_HEADER] = "true"
        return response
