"""
Offline document store.

Each collection lives in one JSON file under LOCAL_STORE_DIR. Every write
re-serialises the whole collection. Empty collections are seeded from the
optional seed mapping on first read.
"""

import json
import logging
import os
import random
import string
import time

from app.collections import COUNTERS
from app.core.exceptions import NotFoundError
from app.storage.base import DocumentStore, apply_update, strip_sentinels

logger = logging.getLogger(__name__)

_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


def generate_mock_id() -> str:
    suffix = "".join(random.choices(_SUFFIX_ALPHABET, k=9))
    return f"mock_{int(time.time() * 1000)}_{suffix}"


class LocalDocumentStore(DocumentStore):
    """JSON-file collections guarded by a process-wide lock."""

    backend_name = "local"

    def __init__(self, directory, seeds=None, broker=None):
        super().__init__(broker)
        self.directory = directory
        self.seeds = seeds or {}
        # shared with the broker so file writes and snapshot publication share one order
        self._lock = self.broker.publish_lock
        os.makedirs(directory, exist_ok=True)

    def _path(self, collection):
        return os.path.join(self.directory, f"{collection.replace('/', '__')}.json")

    def _load(self, collection):
        path = self._path(collection)
        if not os.path.exists(path):
            seed = self.seeds.get(collection)
            if not seed:
                return []
            records = [{**strip_sentinels(self._prepare(item)), "id": item.get("id") or generate_mock_id()}
                       for item in seed]
            self._save(collection, records)
            logger.info("Seeded local collection=%s records=%d", collection, len(records))
            return records
        with open(path, encoding="utf-8") as fh:
            return json.load(fh)

    def _save(self, collection, records):
        path = self._path(collection)
        tmp = f"{path}.tmp"
        with open(tmp, "w", encoding="utf-8") as fh:
            json.dump(records, fh, ensure_ascii=False, indent=2)
        os.replace(tmp, path)

    def _write(self, collection, records):
        self._save(collection, records)
        self._notify(collection)

    # ── Reads ────────────────────────────────────────────────────────────

    def list(self, collection):
        with self._lock:
            return [dict(r) for r in self._load(collection)]

    def get(self, collection, doc_id):
        with self._lock:
            for record in self._load(collection):
                if record.get("id") == doc_id:
                    return dict(record)
        return None

    # ── Writes ───────────────────────────────────────────────────────────

    def add(self, collection, data):
        record = {**strip_sentinels(self._prepare(data)), "id": generate_mock_id()}
        with self._lock:
            records = self._load(collection)
            records.append(record)
            self._write(collection, records)
        return dict(record)

    def add_many(self, collection, items):
        created = [{**strip_sentinels(self._prepare(item)), "id": generate_mock_id()} for item in items]
        with self._lock:
            records = self._load(collection)
            records.extend(created)
            self._write(collection, records)
        return [dict(r) for r in created]

    def set(self, collection, doc_id, data, merge=False):
        payload = self._prepare(data)
        with self._lock:
            records = self._load(collection)
            for idx, record in enumerate(records):
                if record.get("id") == doc_id:
                    base = record if merge else {}
                    records[idx] = {**apply_update(base, payload), "id": doc_id}
                    result = records[idx]
                    break
            else:
                result = {**strip_sentinels(payload), "id": doc_id}
                records.append(result)
            self._write(collection, records)
        return dict(result)

    def update(self, collection, doc_id, changes):
        payload = self._prepare(changes)
        with self._lock:
            records = self._load(collection)
            for idx, record in enumerate(records):
                if record.get("id") == doc_id:
                    records[idx] = {**apply_update(record, payload), "id": doc_id}
                    self._write(collection, records)
                    return dict(records[idx])
        raise NotFoundError(resource=collection, resource_id=doc_id)

    def delete(self, collection, doc_id):
        with self._lock:
            records = self._load(collection)
            remaining = [r for r in records if r.get("id") != doc_id]
            if len(remaining) == len(records):
                raise NotFoundError(resource=collection, resource_id=doc_id)
            self._write(collection, remaining)

    def next_sequence(self, counter_id):
        with self._lock:
            current = self.get(COUNTERS, counter_id) or {}
            value = int(current.get("currentNumber", 0)) + 1
            self.set(COUNTERS, counter_id, {"currentNumber": value}, merge=True)
        return value
