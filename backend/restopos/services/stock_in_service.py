"""
Stock-In Service - material purchases and their reversal

WHY: Purchases are the only way stock goes up after a material is created.
Each purchase writes the new stock and its audit row in one transaction;
deleting the row reverses the increment against the material's live stock,
never against the stock figure stored on the row.
"""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import func, or_

from ..extensions import db
from ..models import StockIn, quantity_to_json
from ..time_utils import range_start, utcnow
from ..validation import require_positive_int, require_positive_quantity
from .concurrency import lock_for_update, run_in_transaction
from .inventory_service import (
    InsufficientStockForReversalError,
    NotFoundError,
    load_material,
)
from .periods import filter_by_period

logger = logging.getLogger(__name__)


def purchase_total(quantity: Decimal, unit_price: int) -> int:
    """quantity * unit_price rounded half-up to a whole currency unit."""
    return int((Decimal(quantity) * unit_price).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def record_purchase(material_id, quantity, unit_price, note: str | None = None) -> StockIn:
    """
    Add purchased material to stock and record the purchase.

    Raises:
        ValidationError: quantity or unit_price not positive
        NotFoundError: material missing
        ConflictRetryExhaustedError: contention outlasted the store's retries
    """
    material_id = require_positive_int(material_id, "material_id")
    quantity = require_positive_quantity(quantity, "quantity")
    unit_price = require_positive_int(unit_price, "unit_price")
    note = (note or "").strip()[:255] or None

    def _op() -> StockIn:
        material = load_material(material_id, lock=True)
        now = utcnow()

        previous_stock = material.stock
        new_stock = previous_stock + quantity

        material.stock = new_stock
        material.last_restocked_at = now

        record = StockIn(
            material_id=material.id,
            material_name=material.name,
            quantity=quantity,
            unit_price=unit_price,
            total=purchase_total(quantity, unit_price),
            previous_stock=previous_stock,
            new_stock=new_stock,
            note=note,
            created_at=now,
        )
        db.session.add(record)
        db.session.flush()
        return record

    record = run_in_transaction(_op)
    logger.info(
        "Stock-in %s: +%s %s (stock %s -> %s)",
        record.id,
        record.quantity,
        record.material_name,
        record.previous_stock,
        record.new_stock,
    )
    return record


def reverse_purchase(stock_in_id) -> dict:
    """
    Delete a stock-in record and take its quantity back out of stock.

    The material's current stock is re-read inside the transaction; if sales
    have already consumed part of the purchase the reversal is refused
    rather than clamped.

    Returns the deleted record's data plus the resulting stock.

    Raises:
        NotFoundError: record or material missing
        InsufficientStockForReversalError: stock would go negative
    """
    stock_in_id = require_positive_int(stock_in_id, "stock_in_id")

    def _op() -> dict:
        record = lock_for_update(db.session.query(StockIn).filter_by(id=stock_in_id)).first()
        if record is None:
            raise NotFoundError("stock-in", stock_in_id)

        material = load_material(record.material_id, lock=True)
        remaining = material.stock - record.quantity
        if remaining < 0:
            raise InsufficientStockForReversalError(
                material.id, material.name, material.stock, record.quantity
            )

        material.stock = remaining
        deleted = record.to_dict()
        deleted["stock_after_reversal"] = quantity_to_json(remaining)
        db.session.delete(record)
        return deleted

    deleted = run_in_transaction(_op)
    logger.info(
        "Stock-in %s reversed: -%s %s (stock now %s)",
        deleted["id"],
        deleted["quantity"],
        deleted["material_name"],
        deleted["stock_after_reversal"],
    )
    return deleted


def list_stock_ins(
    *,
    material_id: int | None = None,
    search: str | None = None,
    time_range: str | None = None,
    limit: int = 500,
) -> dict:
    """
    Stock-in history, newest first, with filters and summary stats.

    Stats: total_spent and total_quantity over the filtered rows, today_spent
    over today's rows regardless of filters.
    """
    query = db.session.query(StockIn)

    if material_id is not None:
        query = query.filter(StockIn.material_id == material_id)

    if search and search.strip():
        term = f"%{search.strip()}%"
        query = query.filter(or_(StockIn.material_name.ilike(term), StockIn.note.ilike(term)))

    query = filter_by_period(query, StockIn.created_at, time_range=time_range)

    totals = query.with_entities(
        func.coalesce(func.sum(StockIn.total), 0),
        func.coalesce(func.sum(StockIn.quantity), 0),
    ).one()

    today_spent = (
        db.session.query(func.coalesce(func.sum(StockIn.total), 0))
        .filter(StockIn.created_at >= range_start("day"))
        .scalar()
    )

    records = query.order_by(StockIn.created_at.desc(), StockIn.id.desc()).limit(limit).all()

    return {
        "items": [r.to_dict() for r in records],
        "count": len(records),
        "stats": {
            "total_spent": int(totals[0] or 0),
            "total_quantity": float(totals[1] or 0),
            "today_spent": int(today_spent or 0),
        },
    }
