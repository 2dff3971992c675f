"""
Intranet Portal
RSS blueprint — server-side feed fetching for the browser widgets.

Endpoints:
    GET /api/rss?urls=<comma-separated feed URLs>  — merged JSON items (max 20)
    GET /api/rss-proxy?url=<feed URL>              — raw feed body, CORS-enabled

Both endpoints are public: feeds are public content and the widgets load
before the session is known.
"""

import logging

from flask import Blueprint, Response, current_app, jsonify, request

from app.core.exceptions import UpstreamError, ValidationError
from app.services import rss_service

logger = logging.getLogger(__name__)

rss_bp = Blueprint("rss", __name__, url_prefix="/api")


@rss_bp.route("/rss", methods=["GET"])
def aggregate():
    try:
        urls = rss_service.split_feed_urls(request.args.get("urls"))
        items = rss_service.aggregate_feeds(
            urls,
            timeout=current_app.config.get("RSS_TIMEOUT_SECONDS", rss_service.DEFAULT_TIMEOUT),
            max_items=current_app.config.get("RSS_MAX_ITEMS", rss_service.DEFAULT_MAX_ITEMS),
            max_workers=current_app.config.get("RSS_MAX_WORKERS", rss_service.DEFAULT_MAX_WORKERS),
        )
    except ValidationError as exc:
        return jsonify({"error": str(exc)}), 400
    except UpstreamError as exc:
        logger.error("RSS aggregation failed: %s", exc)
        return jsonify({"error": "Não foi possível carregar os feeds."}), 500
    return jsonify(items), 200


@rss_bp.route("/rss-proxy", methods=["GET", "OPTIONS"])
def proxy():
    if request.method == "OPTIONS":
        return _with_cors(Response(status=204))
    try:
        body, content_type = rss_service.fetch_raw_feed(
            request.args.get("url"),
            timeout=current_app.config.get("RSS_TIMEOUT_SECONDS", rss_service.DEFAULT_TIMEOUT),
        )
    except ValidationError as exc:
        return _with_cors(Response(str(exc), status=400, mimetype="text/plain"))
    except UpstreamError as exc:
        return _with_cors(Response(str(exc), status=500, mimetype="text/plain"))
    return _with_cors(Response(body, status=200, content_type=content_type))


def _with_cors(response):
    response.headers["Access-Control-Allow-Origin"] = "*"
    response.headers["Access-Control-Allow-Methods"] = "GET, OPTIONS"
    return response
