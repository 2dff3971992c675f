"""
Intranet Portal
Document storage model.

Models:
    - StoredDocument: one JSON document inside a named collection.

Every portal collection (newsItems, fabMessages, audit_logs, ...) shares this
table. Sub-collections use slash paths such as ``polls/<pollId>/responses``.
"""

from datetime import datetime, timezone

from app.models import db


def _utcnow():
    return datetime.now(timezone.utc)


class StoredDocument(db.Model):
    """A schemaless record keyed by (collection, doc_id)."""

    __tablename__ = "portal_documents"
    __table_args__ = (
        db.UniqueConstraint("collection", "doc_id", name="uq_portal_documents_collection_doc"),
        db.Index("idx_portal_documents_collection", "collection"),
    )

    id = db.Column(db.Integer, primary_key=True)
    collection = db.Column(db.String(255), nullable=False)
    doc_id = db.Column(db.String(120), nullable=False)
    data = db.Column(db.JSON, nullable=False, default=dict)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    def to_record(self) -> dict:
        record = dict(self.data or {})
        record["id"] = self.doc_id
        return record

    def __repr__(self):
        return f"<StoredDocument {self.collection}/{self.doc_id}>"
