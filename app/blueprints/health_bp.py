"""
Health check blueprint.

Endpoints:
    GET /api/v1/health/ready  — simple 200 for load balancers
    GET /api/v1/health/live   — detailed system health (storage, DB, Redis)
"""

import logging
import time

from flask import Blueprint, current_app, jsonify

from app.models import db
from app.storage import get_store

logger = logging.getLogger(__name__)

health_bp = Blueprint("health_bp", __name__, url_prefix="/api/v1/health")


@health_bp.route("/ready", methods=["GET"])
def ready():
    """Simple readiness probe — always 200 if app is running."""
    return jsonify({"status": "ok"}), 200


@health_bp.route("/live", methods=["GET"])
def live():
    """Detailed liveness check with dependency status."""
    checks = {}
    overall = True
    store = get_store()

    # ── Document store ───────────────────────────────────────────────
    try:
        t0 = time.perf_counter()
        store.list("systemSettings")
        store_ms = (time.perf_counter() - t0) * 1000
        checks["storage"] = {"status": "ok", "backend": store.backend_name, "latency_ms": round(store_ms, 1)}
    except Exception as exc:
        checks["storage"] = {"status": "error", "backend": store.backend_name, "detail": str(exc)}
        overall = False
        logger.error("Health check — storage failed: %s", exc)

    # ── Database ─────────────────────────────────────────────────────
    if store.backend_name == "sql":
        try:
            t0 = time.perf_counter()
            db.session.execute(db.text("SELECT 1"))
            db_ms = (time.perf_counter() - t0) * 1000
            checks["database"] = {"status": "ok", "latency_ms": round(db_ms, 1)}
        except Exception as exc:
            checks["database"] = {"status": "error", "detail": str(exc)}
            overall = False
            logger.error("Health check — database failed: %s", exc)
    else:
        checks["database"] = {"status": "skipped", "detail": "local storage backend"}

    # ── Redis ────────────────────────────────────────────────────────
    redis_url = current_app.config.get("REDIS_URL", "")
    if redis_url and "redis" in redis_url:
        try:
            import redis as redis_lib
            t0 = time.perf_counter()
            r = redis_lib.from_url(redis_url, socket_timeout=2)
            r.ping()
            redis_ms = (time.perf_counter() - t0) * 1000
            checks["redis"] = {"status": "ok", "latency_ms": round(redis_ms, 1)}
        except Exception as exc:
            # Rate-limit storage only; not part of overall health
            checks["redis"] = {"status": "error", "detail": str(exc)}
    else:
        checks["redis"] = {"status": "skipped", "detail": "no REDIS_URL configured"}

    # ── App info ─────────────────────────────────────────────────────
    checks["app"] = {
        "name": "Intranet Portal",
        "debug": current_app.debug,
        "testing": current_app.testing,
    }

    status_code = 200 if overall else 503
    return jsonify({
        "status": "healthy" if overall else "degraded",
        "checks": checks,
    }), status_code
