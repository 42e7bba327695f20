# Overview: Atomic document numbering (receipt numbers) backed by counter rows.

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


def _increment(document_type: str) -> int | None:
    stmt = (
        update(DocumentSequence)
        .where(DocumentSequence.document_type == document_type)
        .values(next_number=DocumentSequence.next_number + 1)
    )
    result = db.session.execute(stmt)
    if not result.rowcount:
        return None
    current = (
        db.session.query(DocumentSequence.next_number)
        .filter_by(document_type=document_type)
        .scalar()
    )
    return current - 1


def next_document_number(*, document_type: str, prefix: str, pad: int = 6) -> str:
    """
    Allocate the next number for document_type, e.g. "TRX-000042".

    Must be called inside an open transaction (run_in_transaction): the
    increment commits or rolls back together with the document it numbers,
    so a rejected sale never burns a receipt number.
    """
    if not document_type:
        raise DocumentSequenceError("document_type is required")

    next_num = _increment(document_type)
    if next_num is None:
        try:
            # Savepoint: a concurrent first insert must not abort the outer transaction
            with db.session.begin_nested():
                db.session.add(DocumentSequence(document_type=document_type, next_number=2))
            next_num = 1
        except IntegrityError:
            next_num = _increment(document_type)
            if next_num is None:
                raise DocumentSequenceError(f"could not allocate {document_type} number")

    return f"{prefix}-{next_num:0{pad}d}"
