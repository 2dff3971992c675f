"""
Intranet Portal
Content collections blueprint — generic CRUD over the flat collections.

Endpoints:
    GET    /api/v1/collections/<name>            — list (audience-filtered)
    POST   /api/v1/collections/<name>            — create
    GET    /api/v1/collections/<name>/<id>       — single record
    PATCH  /api/v1/collections/<name>/<id>       — partial update
    DELETE /api/v1/collections/<name>/<id>       — delete
    GET    /api/v1/collections/<name>/stream     — live snapshots (SSE)

Domain actions:
    POST /api/v1/documents/<id>/download
    POST /api/v1/news/<id>/toggle-highlight
    POST /api/v1/highlights/<id>/toggle-active
    POST /api/v1/messages/<id>/read
    GET  /api/v1/quick-links/visible
"""

import json
import logging
import queue

from flask import Blueprint, Response, jsonify, request, stream_with_context

from app.auth import require_auth, require_permission
from app.core.exceptions import AuthorizationError
from app.services import content_service
from app.services.access_service import current_access
from app.storage import get_store

logger = logging.getLogger(__name__)

collections_bp = Blueprint("collections", __name__, url_prefix="/api/v1")

STREAM_KEEPALIVE_SECONDS = 15


def _check_write(spec):
    access = current_access()
    if spec.write_permission is None:
        allowed = access.is_admin
    else:
        allowed = access.has_permission(spec.write_permission)
    if not allowed:
        raise AuthorizationError(f"Write access to {spec.name} denied")


# ── CRUD ─────────────────────────────────────────────────────────────────────

@collections_bp.route("/collections/<name>", methods=["GET"])
@require_auth
def list_collection(name):
    records = content_service.list_records(name, access=current_access())
    return jsonify(records), 200


@collections_bp.route("/collections/<name>", methods=["POST"])
@require_auth
def create_item(name):
    spec = content_service.get_spec(name)
    _check_write(spec)
    data = request.get_json(silent=True) or {}
    record = content_service.create_record(name, data)
    return jsonify(record), 201


@collections_bp.route("/collections/<name>/<record_id>", methods=["GET"])
@require_auth
def get_item(name, record_id):
    return jsonify(content_service.get_record(name, record_id, access=current_access())), 200


@collections_bp.route("/collections/<name>/<record_id>", methods=["PATCH", "PUT"])
@require_auth
def update_item(name, record_id):
    spec = content_service.get_spec(name)
    _check_write(spec)
    data = request.get_json(silent=True) or {}
    return jsonify(content_service.update_record(name, record_id, data)), 200


@collections_bp.route("/collections/<name>/<record_id>", methods=["DELETE"])
@require_auth
def delete_item(name, record_id):
    spec = content_service.get_spec(name)
    _check_write(spec)
    content_service.delete_record(name, record_id)
    return jsonify({"message": "Deleted", "id": record_id}), 200


# ── Live snapshots ───────────────────────────────────────────────────────────

def _sse(event: str, payload: dict) -> str:
    return f"event: {event}\ndata: {json.dumps(payload)}\n\n"


@collections_bp.route("/collections/<name>/stream", methods=["GET"])
@require_auth
def stream_collection(name):
    """
    Server-Sent Events: one ``snapshot`` event per committed write.

    Every snapshot carries the collection ``version``; clients keep the
    highest version seen and ignore older ones.
    """
    spec = content_service.get_spec(name)
    access = current_access()
    store = get_store()
    events = queue.Queue()

    def on_change(snapshot):
        events.put(("snapshot", snapshot))

    def on_error(exc):
        events.put(("error", exc))

    unsubscribe = store.subscribe(name, on_change, on_error)
    # the stream outlives the request; do not pin a database connection
    store.release()

    def generate():
        try:
            while True:
                try:
                    kind, item = events.get(timeout=STREAM_KEEPALIVE_SECONDS)
                except queue.Empty:
                    yield ": keep-alive\n\n"
                    continue
                if kind == "error":
                    logger.error("Snapshot stream for %s failed: %s", name, item,
                                 extra={"collection": name})
                    yield _sse("error", {"error": "Falha ao sincronizar a coleção."})
                    return
                records = item.records
                if spec.audience:
                    records = [r for r in records if content_service.is_visible_to(r, access)]
                yield _sse("snapshot", {
                    "collection": name,
                    "version": item.version,
                    "records": content_service.sort_records(records, spec.sort_key, spec.descending),
                })
        finally:
            unsubscribe()

    return Response(
        stream_with_context(generate()),
        mimetype="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


# ── Domain actions ───────────────────────────────────────────────────────────

@collections_bp.route("/documents/<document_id>/download", methods=["POST"])
@require_auth
def download_document(document_id):
    return jsonify(content_service.download_document(document_id, current_access())), 200


@collections_bp.route("/news/<news_id>/toggle-highlight", methods=["POST"])
@require_permission("canManageContent")
def toggle_news_highlight(news_id):
    return jsonify(content_service.toggle_news_highlight(news_id)), 200


@collections_bp.route("/highlights/<highlight_id>/toggle-active", methods=["POST"])
@require_permission("canManageContent")
def toggle_highlight_active(highlight_id):
    return jsonify(content_service.toggle_highlight_active(highlight_id)), 200


@collections_bp.route("/messages/<message_id>/read", methods=["POST"])
@require_auth
def mark_message_read(message_id):
    return jsonify(content_service.mark_message_read(message_id, current_access())), 200


@collections_bp.route("/quick-links/visible", methods=["GET"])
@require_auth
def visible_quick_links():
    return jsonify(content_service.visible_quick_links(current_access())), 200
