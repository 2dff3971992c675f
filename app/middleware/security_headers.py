"""
Security headers middleware.

Applies Content-Security-Policy, X-Content-Type-Options, X-Frame-Options,
Strict-Transport-Security and Referrer-Policy headers to every response.
The CSP ``frame-src`` list is built from the configured embed URLs so the
portal can host the BI, market, chatbot and calendar iframes.

Usage:
    from app.middleware.security_headers import init_security_headers
    init_security_headers(app)
"""

from urllib.parse import urlsplit


def _embed_origins(app) -> list[str]:
    origins = []
    for url in (app.config.get("EMBED_URLS") or {}).values():
        parts = urlsplit(url or "")
        if parts.scheme in ("http", "https") and parts.netloc:
            origin = f"{parts.scheme}://{parts.netloc}"
            if origin not in origins:
                origins.append(origin)
    return origins


def init_security_headers(app):
    """Register after_request handler that injects security headers."""

    frame_src = " ".join(["'self'"] + _embed_origins(app))
    csp = (
        "default-src 'self'; "
        "img-src 'self' data: blob: https:; "
        "connect-src 'self'; "
        f"frame-src {frame_src}; "
        "frame-ancestors 'self'; "
        "base-uri 'self'; "
        "form-action 'self'"
    )

    @app.after_request
    def _add_security_headers(response):
        response.headers.setdefault("Content-Security-Policy", csp)

        # Prevent MIME-type sniffing
        response.headers.setdefault("X-Content-Type-Options", "nosniff")

        # Clickjacking protection
        response.headers.setdefault("X-Frame-Options", "SAMEORIGIN")

        response.headers.setdefault(
            "Strict-Transport-Security", "max-age=31536000; includeSubDomains"
        )
        response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")

        # Remove server identification
        response.headers.pop("Server", None)

        return response
