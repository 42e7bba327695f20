from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class DocumentSequence(db.Model):
    """
    Atomic document counters (one row per document type).

    WHY: Receipt numbers derived from the clock collide when two cashiers
    check out in the same instant; a counter row incremented inside the sale
    transaction cannot.
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("document_type", name="uq_doc_sequences_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    document_type = db.Column(db.String(32), nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_type": self.document_type,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }
