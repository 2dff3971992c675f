"""
Document store interface.

A store holds named collections of JSON records. Every record carries a
generated ``id``. Two implementations share this contract:

    SQLDocumentStore    managed database via Flask-SQLAlchemy
    LocalDocumentStore  JSON files on disk for offline development

Writes are last-write-wins. After each committed write the store publishes
the full collection snapshot to subscribers through a ChangeBroker; each
snapshot carries a per-collection version that only ever increases, so
consumers can drop snapshots older than the last one they applied. Reads
for a snapshot and its publication happen under one broker lock, so a
higher version never carries older data.
"""

from __future__ import annotations

import abc
import logging
import threading
from dataclasses import dataclass, field
from typing import Callable

from app.storage.sanitize import clean_data

logger = logging.getLogger(__name__)


class ArrayUnion:
    """Update sentinel: append values to a list field, skipping duplicates."""

    def __init__(self, *values):
        self.values = list(values)

    def __repr__(self):
        return f"ArrayUnion({self.values!r})"


def apply_update(current: dict, changes: dict) -> dict:
    """Merge ``changes`` into a copy of ``current`` resolving sentinels."""
    merged = dict(current)
    for key, value in changes.items():
        if key == "id":
            continue
        if isinstance(value, ArrayUnion):
            existing = list(merged.get(key) or [])
            for item in value.values:
                if item not in existing:
                    existing.append(item)
            merged[key] = existing
        else:
            merged[key] = value
    return merged


def strip_sentinels(data: dict) -> dict:
    """Resolve sentinels against an empty record (used on create)."""
    return apply_update({}, data)


# ── Change notification ──────────────────────────────────────────────────

@dataclass
class Snapshot:
    collection: str
    version: int
    records: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"collection": self.collection, "version": self.version, "records": self.records}


class ChangeBroker:
    """Fan-out of collection snapshots to in-process listeners."""

    def __init__(self):
        self._lock = threading.Lock()
        # held by writers across read-then-publish so versions follow read order
        self.publish_lock = threading.RLock()
        self._listeners: dict[str, list[tuple[Callable, Callable | None]]] = {}
        self._versions: dict[str, int] = {}

    def current_version(self, collection: str) -> int:
        with self._lock:
            return self._versions.get(collection, 0)

    def add_listener(self, collection: str, on_change: Callable, on_error: Callable | None = None):
        entry = (on_change, on_error)
        with self._lock:
            self._listeners.setdefault(collection, []).append(entry)

        def unsubscribe():
            with self._lock:
                listeners = self._listeners.get(collection, [])
                if entry in listeners:
                    listeners.remove(entry)

        return unsubscribe

    def publish(self, collection: str, records: list[dict]) -> Snapshot:
        with self._lock:
            version = self._versions.get(collection, 0) + 1
            self._versions[collection] = version
            listeners = list(self._listeners.get(collection, []))
        snapshot = Snapshot(collection=collection, version=version, records=records)
        for on_change, on_error in listeners:
            try:
                on_change(snapshot)
            except Exception as exc:
                logger.exception("Snapshot listener failed collection=%s version=%d", collection, version)
                if on_error is not None:
                    on_error(exc)
        return snapshot

    def publish_error(self, collection: str, exc: Exception):
        with self._lock:
            listeners = list(self._listeners.get(collection, []))
        for _, on_error in listeners:
            if on_error is not None:
                on_error(exc)


# ── Store contract ───────────────────────────────────────────────────────

class DocumentStore(abc.ABC):
    """Capability set shared by every storage backend."""

    backend_name = "abstract"

    def __init__(self, broker: ChangeBroker | None = None):
        self.broker = broker or ChangeBroker()

    @abc.abstractmethod
    def list(self, collection: str) -> list[dict]:
        """Return every record of ``collection`` in insertion order."""

    @abc.abstractmethod
    def get(self, collection: str, doc_id: str) -> dict | None:
        """Return one record or None."""

    @abc.abstractmethod
    def add(self, collection: str, data: dict) -> dict:
        """Insert ``data`` under a generated id and return the stored record."""

    @abc.abstractmethod
    def add_many(self, collection: str, items: list[dict]) -> list[dict]:
        """Insert several records in one write."""

    @abc.abstractmethod
    def set(self, collection: str, doc_id: str, data: dict, merge: bool = False) -> dict:
        """Create or replace (or merge into) the record with ``doc_id``."""

    @abc.abstractmethod
    def update(self, collection: str, doc_id: str, changes: dict) -> dict:
        """Merge ``changes`` into an existing record. Raises NotFoundError."""

    @abc.abstractmethod
    def delete(self, collection: str, doc_id: str) -> None:
        """Remove a record. Raises NotFoundError."""

    @abc.abstractmethod
    def next_sequence(self, counter_id: str) -> int:
        """Atomically increment and return the named counter."""

    def subscribe(self, collection: str, on_change: Callable, on_error: Callable | None = None):
        """Register a snapshot listener and deliver the current snapshot.

        Returns a zero-argument callable that removes the listener.
        """
        with self.broker.publish_lock:
            unsubscribe = self.broker.add_listener(collection, on_change, on_error)
            try:
                records = self.list(collection)
            except Exception as exc:
                logger.error("Initial snapshot failed collection=%s: %s", collection, exc)
                if on_error is None:
                    unsubscribe()
                    raise
                on_error(exc)
                return unsubscribe
            on_change(Snapshot(collection, self.broker.current_version(collection), records))
        return unsubscribe

    def _notify(self, collection: str):
        with self.broker.publish_lock:
            try:
                records = self.list(collection)
            except Exception as exc:
                logger.error("Snapshot refresh failed collection=%s: %s", collection, exc)
                self.broker.publish_error(collection, exc)
                return
            self.broker.publish(collection, records)

    def release(self):
        """End any read transaction held by the calling thread (no-op by default)."""

    @staticmethod
    def _prepare(data: dict) -> dict:
        cleaned = clean_data(data or {})
        cleaned.pop("id", None)
        return cleaned
