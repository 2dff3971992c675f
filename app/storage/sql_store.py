"""Document store backed by the portal_documents table."""

import logging
import secrets
import string

from sqlalchemy.exc import SQLAlchemyError

from app.collections import COUNTERS
from app.core.exceptions import NotFoundError
from app.models import db
from app.models.document import StoredDocument
from app.storage.base import DocumentStore, apply_update, strip_sentinels

logger = logging.getLogger(__name__)

_ID_ALPHABET = string.ascii_letters + string.digits
_ID_LENGTH = 20


def generate_id() -> str:
    """20-character alphanumeric id, same shape as the hosted database's auto ids."""
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(_ID_LENGTH))


class SQLDocumentStore(DocumentStore):
    """Persist collections in the relational database (one row per record)."""

    backend_name = "sql"

    def _query(self, collection):
        return StoredDocument.query.filter_by(collection=collection)

    def _row(self, collection, doc_id, for_update=False):
        q = self._query(collection).filter_by(doc_id=doc_id)
        if for_update:
            q = q.with_for_update()
        return q.first()

    def _commit(self, collection, action):
        try:
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception("Store write failed action=%s collection=%s", action, collection)
            raise
        self._notify(collection)

    def release(self):
        # returns the pooled connection; the next query opens a new transaction
        db.session.close()

    # ── Reads ────────────────────────────────────────────────────────────

    def list(self, collection):
        rows = self._query(collection).order_by(StoredDocument.id.asc()).all()
        return [row.to_record() for row in rows]

    def get(self, collection, doc_id):
        row = self._row(collection, doc_id)
        return row.to_record() if row else None

    # ── Writes ───────────────────────────────────────────────────────────

    def add(self, collection, data):
        row = StoredDocument(
            collection=collection,
            doc_id=generate_id(),
            data=strip_sentinels(self._prepare(data)),
        )
        db.session.add(row)
        self._commit(collection, "add")
        return row.to_record()

    def add_many(self, collection, items):
        rows = [
            StoredDocument(
                collection=collection,
                doc_id=generate_id(),
                data=strip_sentinels(self._prepare(item)),
            )
            for item in items
        ]
        db.session.add_all(rows)
        self._commit(collection, "add_many")
        return [row.to_record() for row in rows]

    def set(self, collection, doc_id, data, merge=False):
        payload = self._prepare(data)
        row = self._row(collection, doc_id, for_update=True)
        if row is None:
            row = StoredDocument(collection=collection, doc_id=doc_id, data=strip_sentinels(payload))
            db.session.add(row)
        else:
            base = row.data if merge else {}
            # Reassign so SQLAlchemy sees the JSON column as dirty.
            row.data = apply_update(base or {}, payload)
        self._commit(collection, "set")
        return row.to_record()

    def update(self, collection, doc_id, changes):
        row = self._row(collection, doc_id, for_update=True)
        if row is None:
            raise NotFoundError(resource=collection, resource_id=doc_id)
        row.data = apply_update(row.data or {}, self._prepare(changes))
        self._commit(collection, "update")
        return row.to_record()

    def delete(self, collection, doc_id):
        row = self._row(collection, doc_id)
        if row is None:
            raise NotFoundError(resource=collection, resource_id=doc_id)
        db.session.delete(row)
        self._commit(collection, "delete")

    def next_sequence(self, counter_id):
        row = self._row(COUNTERS, counter_id, for_update=True)
        if row is None:
            row = StoredDocument(collection=COUNTERS, doc_id=counter_id, data={"currentNumber": 1})
            db.session.add(row)
            value = 1
        else:
            value = int((row.data or {}).get("currentNumber", 0)) + 1
            row.data = {**(row.data or {}), "currentNumber": value}
        self._commit(COUNTERS, "next_sequence")
        return value
