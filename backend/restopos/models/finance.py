from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class CapitalEntry(db.Model):
    """Owner capital injected into the business (initial or additional)."""
    __tablename__ = "capital_entries"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    amount = db.Column(db.Integer, nullable=False)
    entry_type = db.Column(db.String(16), nullable=False, default="additional")
    note = db.Column(db.String(255), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "amount": self.amount,
            "entry_type": self.entry_type,
            "note": self.note,
            "occurred_at": to_utc_z(self.occurred_at),
            "updated_at": to_utc_z(self.updated_at),
        }
