"""
Intranet Portal
Flask Application Factory.

Usage:
    from app import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

import click
from flask import Flask, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from werkzeug.middleware.proxy_fix import ProxyFix

from app.config import config
from app.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    UpstreamError,
    ValidationError,
)
from app.models import db
from app.storage import init_storage
from app.utils.errors import E, api_error
from app.middleware.logging_config import configure_logging
from app.middleware.timing import init_request_timing
from app.middleware.security_headers import init_security_headers
from app.middleware.rate_limiter import init_rate_limits
from app.middleware.jwt_auth import init_jwt_middleware
from app.middleware.scanner_allowlist import init_scanner_allowlist
from app.middleware.maintenance import init_maintenance_mode

logger = logging.getLogger(__name__)

migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],                     # per-blueprint limits only
    storage_uri=os.getenv("REDIS_URL") or "memory://",
)


def create_app(config_name=None, store=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.
        store: Optional DocumentStore to use instead of the configured backend.

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config[config_name]())

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Reverse proxy (remote_addr taken from the trusted X-Forwarded-For hop)
    proxies = app.config.get("TRUSTED_PROXY_COUNT") or 0
    if proxies:
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=proxies, x_proto=proxies)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Request timing middleware (request id for every log line) ────────
    init_request_timing(app)

    # ── Identity, scanner tagging, maintenance gate (order matters) ──────
    init_jwt_middleware(app)
    init_scanner_allowlist(app)
    init_maintenance_mode(app)

    # ── Security headers (CSP, HSTS, X-Frame-Options, etc.) ─────────────
    init_security_headers(app)

    # ── Request guards (input length + Content-Type) ─────────────────────
    app.config.setdefault("MAX_CONTENT_LENGTH", 2 * 1024 * 1024)  # 2 MB

    @app.before_request
    def _guard_request():
        from flask import abort
        max_len = app.config.get("MAX_CONTENT_LENGTH")
        if max_len and request.content_length and request.content_length > max_len:
            abort(413, description="Request body too large")
        if request.method in ("POST", "PUT", "PATCH") and request.path.startswith("/api/"):
            ct = request.content_type or ""
            # CSV import accepts the raw file body
            if request.path == "/api/v1/fab/import" and "text/csv" in ct:
                return None
            if request.content_length and "json" not in ct:
                abort(415, description="Content-Type must be application/json")

    # ── Models + document store ──────────────────────────────────────────
    from app.models import document as _document_models  # noqa: F401

    with app.app_context():
        if (app.config.get("STORAGE_BACKEND") or "sql").lower() == "sql":
            try:
                db.create_all()
                app.logger.info("db.create_all() completed successfully")
            except Exception as e:
                app.logger.warning("db.create_all() failed: %s", e)
    init_storage(app, store)

    # ── Blueprints ───────────────────────────────────────────────────────
    from app.blueprints.health_bp import health_bp
    from app.blueprints.rss_bp import rss_bp
    from app.blueprints.billing_bp import billing_bp
    from app.blueprints.access_bp import access_bp
    from app.blueprints.collections_bp import collections_bp
    from app.blueprints.fab_bp import fab_bp
    from app.blueprints.polls_bp import polls_bp
    from app.blueprints.workflows_bp import workflows_bp
    from app.blueprints.audit_bp import audit_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(rss_bp)
    app.register_blueprint(billing_bp)
    app.register_blueprint(access_bp)
    app.register_blueprint(collections_bp)
    app.register_blueprint(fab_bp)
    app.register_blueprint(polls_bp)
    app.register_blueprint(workflows_bp)
    app.register_blueprint(audit_bp)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("seed-portal")
    def seed_portal_cmd():
        """Load the demo collections (labs, rankings, news, idle FAB texts)."""
        from app.storage import get_store
        from app.storage.seed_data import SEED_COLLECTIONS
        store = get_store()
        for name, records in SEED_COLLECTIONS.items():
            if store.list(name):
                logger.info("Skipping %s: already has records", name)
                continue
            store.add_many(name, records)
            logger.info("Seeded %d records into %s.", len(records), name)

    @app.cli.command("mint-token")
    @click.argument("email")
    @click.option("--uid", default=None, help="Subject claim (defaults to the email).")
    @click.option("--admin", is_flag=True, help="Add the admin claim.")
    def mint_token_cmd(email, uid, admin):
        """Print a shared-secret ID token for local testing."""
        from app.services.identity_service import issue_token
        claims = {"admin": True} if admin else {}
        click.echo(issue_token(uid or email, email, **claims))

    # ── Error handlers ───────────────────────────────────────────────────
    @app.errorhandler(NotFoundError)
    def _handle_not_found(error):
        return api_error(E.NOT_FOUND, str(error))

    @app.errorhandler(ValidationError)
    def _handle_validation(error):
        return api_error(E.VALIDATION_RULE, str(error), details=error.details)

    @app.errorhandler(ConflictError)
    def _handle_conflict(error):
        return api_error(E.CONFLICT_STATE, str(error))

    @app.errorhandler(AuthenticationError)
    def _handle_unauthenticated(error):
        return api_error(E.UNAUTHENTICATED, str(error))

    @app.errorhandler(AuthorizationError)
    def _handle_forbidden(error):
        redirect = error.redirect or app.config.get("GUARD_REDIRECT_PATH", "/dashboard")
        return api_error(E.FORBIDDEN, str(error), redirect=redirect)

    @app.errorhandler(UpstreamError)
    def _handle_upstream(error):
        logger.error("Upstream failure path=%s: %s", request.path, error)
        return api_error(E.UPSTREAM, str(error))

    @app.errorhandler(404)
    def not_found(e):
        return {"error": "Not found", "path": request.path}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(413)
    def too_large(e):
        return {"error": "Request body too large"}, 413

    @app.errorhandler(415)
    def unsupported_media(e):
        return {"error": e.description}, 415

    @app.errorhandler(429)
    def rate_limited(e):
        return {"error": "Too many requests", "retry_after": e.description}, 429

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return api_error(E.INTERNAL, "Internal server error")

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    return app
