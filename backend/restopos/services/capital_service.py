# Overview: Capital entries (owner money put into the business) CRUD.

from __future__ import annotations

import logging

from ..extensions import db
from ..models import CapitalEntry
from ..time_utils import utcnow
from .inventory_service import NotFoundError

logger = logging.getLogger(__name__)

CAPITAL_MUTABLE_FIELDS = {"amount", "entry_type", "note", "occurred_at"}


def _load_entry(entry_id: int) -> CapitalEntry:
    entry = db.session.query(CapitalEntry).filter_by(id=entry_id).first()
    if entry is None:
        raise NotFoundError("capital entry", entry_id)
    return entry


def list_capital_entries() -> dict:
    entries = (
        db.session.query(CapitalEntry)
        .order_by(CapitalEntry.occurred_at.desc(), CapitalEntry.id.desc())
        .all()
    )
    return {
        "items": [e.to_dict() for e in entries],
        "count": len(entries),
        "total": sum(e.amount for e in entries),
    }


def create_capital_entry(*, patch: dict) -> CapitalEntry:
    entry = CapitalEntry(
        amount=patch["amount"],
        entry_type=patch.get("entry_type") or "additional",
        note=patch.get("note"),
        occurred_at=patch.get("occurred_at") or utcnow(),
    )
    db.session.add(entry)
    db.session.commit()
    logger.info("Capital entry %s recorded: %s (%s)", entry.id, entry.amount, entry.entry_type)
    return entry


def update_capital_entry(entry_id: int, *, patch: dict) -> CapitalEntry:
    entry = _load_entry(entry_id)
    for k, v in patch.items():
        if k in CAPITAL_MUTABLE_FIELDS:
            setattr(entry, k, v)
    db.session.commit()
    return entry


def delete_capital_entry(entry_id: int) -> None:
    entry = _load_entry(entry_id)
    db.session.delete(entry)
    db.session.commit()
    logger.info("Capital entry %s deleted", entry_id)
