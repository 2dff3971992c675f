"""
Document storage package.

The backend is chosen once at startup from ``STORAGE_BACKEND``:

    sql    SQLDocumentStore (default, managed database)
    local  LocalDocumentStore (JSON files, seeded with demo content)

Services receive the store from ``get_store()``; tests may pass their own.
"""

import logging

from flask import current_app

from app.storage.base import ArrayUnion, ChangeBroker, DocumentStore, Snapshot  # noqa: F401

logger = logging.getLogger(__name__)

_EXTENSION_KEY = "document_store"


def build_store(app) -> DocumentStore:
    backend = (app.config.get("STORAGE_BACKEND") or "sql").lower()
    if backend == "sql":
        from app.storage.sql_store import SQLDocumentStore
        return SQLDocumentStore()
    if backend == "local":
        from app.storage.local_store import LocalDocumentStore
        from app.storage.seed_data import SEED_COLLECTIONS
        seeds = SEED_COLLECTIONS if app.config.get("LOCAL_STORE_SEED", True) else {}
        return LocalDocumentStore(app.config["LOCAL_STORE_DIR"], seeds=seeds)
    raise RuntimeError(f"Unknown STORAGE_BACKEND: {backend!r}")


def init_storage(app, store: DocumentStore | None = None):
    """Attach the document store to ``app.extensions``."""
    store = store or build_store(app)
    app.extensions[_EXTENSION_KEY] = store
    logger.info("Document store ready: backend=%s", store.backend_name)
    return store


def get_store() -> DocumentStore:
    return current_app.extensions[_EXTENSION_KEY]
