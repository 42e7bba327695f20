"""
Sales Service - inventory-consistent checkout

WHY: A sale converts a cart of menu items into raw-material deductions
through each product's bill of materials. The deduction, the receipt number
and the sale records commit together or not at all, so concurrent checkouts
can never oversell a material.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from flask import current_app
from sqlalchemy import or_, select

from ..extensions import db
from ..models import Product, Sale, SaleLine
from ..time_utils import utcnow
from ..validation import (
    ValidationError,
    coerce_int,
    parse_cart,
    parse_payment_method,
)
from .concurrency import run_in_transaction
from .periods import filter_by_period
from .document_service import next_document_number
from .inventory_service import (
    InsufficientStockError,
    MaterialSnapshots,
    check_and_deduct,
    explode_bom,
    load_product,
)

logger = logging.getLogger(__name__)

BPS_DENOMINATOR = 10_000


class InsufficientCashError(ValidationError):
    """Cash tendered does not cover the grand total. Rejected before any write."""

    def __init__(self, grand_total: int, cash_tendered: int):
        super().__init__(
            "Cash tendered is less than the grand total",
            details={
                "grand_total": grand_total,
                "cash_tendered": cash_tendered,
                "shortfall": grand_total - cash_tendered,
            },
        )
        self.grand_total = grand_total
        self.cash_tendered = cash_tendered


@dataclass(frozen=True)
class SaleTotals:
    subtotal: int
    tax: int
    service_charge: int
    grand_total: int


@dataclass
class PricedLine:
    product: Product
    quantity: int
    note: str | None

    @property
    def line_total(self) -> int:
        return self.product.price * self.quantity


def apply_rate_bps(amount: int, rate_bps: int) -> int:
    """amount * rate, rounded half-up to a whole currency unit."""
    return (amount * rate_bps + BPS_DENOMINATOR // 2) // BPS_DENOMINATOR


def compute_totals(subtotal: int, *, tax_rate_bps: int, service_charge_bps: int) -> SaleTotals:
    tax = apply_rate_bps(subtotal, tax_rate_bps)
    service_charge = apply_rate_bps(subtotal, service_charge_bps)
    return SaleTotals(subtotal, tax, service_charge, subtotal + tax + service_charge)


def settle_payment(totals: SaleTotals, payment_method: str, cash_tendered: int | None) -> tuple[int | None, int]:
    """
    Return (cash_tendered, change_due) for the receipt.

    Non-cash payments record no tendered amount and no change.
    """
    if payment_method != "cash":
        return None, 0
    if cash_tendered is None:
        raise ValidationError("cash_tendered is required for cash payments")
    if cash_tendered < totals.grand_total:
        raise InsufficientCashError(totals.grand_total, cash_tendered)
    return cash_tendered, max(0, cash_tendered - totals.grand_total)


def _totals_for(priced: list[PricedLine]) -> SaleTotals:
    return compute_totals(
        sum(p.line_total for p in priced),
        tax_rate_bps=current_app.config.get("TAX_RATE_BPS", 0),
        service_charge_bps=current_app.config.get("SERVICE_CHARGE_BPS", 0),
    )


def _price_cart(lines: list[dict]) -> list[PricedLine]:
    return [
        PricedLine(
            product=load_product(line["product_id"], require_active=True),
            quantity=line["quantity"],
            note=line["note"],
        )
        for line in lines
    ]


def _parse_cash(payment_method: str, cash_tendered) -> int | None:
    if payment_method != "cash":
        return None
    if cash_tendered is None or cash_tendered == "":
        raise ValidationError("cash_tendered is required for cash payments")
    cash = coerce_int(cash_tendered, "cash_tendered")
    if cash < 0:
        raise ValidationError("cash_tendered cannot be negative")
    return cash


def quote_cart(cart) -> dict:
    """Price a cart without touching stock (checkout screen preview)."""
    priced = _price_cart(parse_cart(cart))
    totals = _totals_for(priced)
    return {
        "lines": [
            {
                "product_id": p.product.id,
                "product_name": p.product.name,
                "quantity": p.quantity,
                "unit_price": p.product.price,
                "line_total": p.line_total,
            }
            for p in priced
        ],
        "subtotal": totals.subtotal,
        "tax": totals.tax,
        "service_charge": totals.service_charge,
        "grand_total": totals.grand_total,
    }


def submit_sale(
    cart,
    payment_method: str,
    cash_tendered=None,
    customer_note: str | None = None,
) -> Sale:
    """
    Check out a cart: deduct BOM materials and record the sale atomically.

    cart: [{"product_id": int, "quantity": int, "note": str | None}, ...]

    Raises:
        ValidationError: empty cart, bad quantity, payment method or cash amount
        InsufficientCashError: cash tendered below grand total (no transaction started)
        NotFoundError: product or material missing
        InsufficientStockError: some material cannot cover the combined requirement
        ConflictRetryExhaustedError: contention outlasted the store's retries
    """
    lines = parse_cart(cart)
    method = parse_payment_method(payment_method)
    cash = _parse_cash(method, cash_tendered)
    note = (customer_note or "").strip()[:255] or None

    # Cheap rejections before taking the write lock
    priced = _price_cart(lines)
    settle_payment(_totals_for(priced), method, cash)
    explode_bom((p.product, p.quantity) for p in priced)

    def _op() -> Sale:
        # Re-read everything: prices, BOMs and stock may have moved since the pre-check
        priced_lines = _price_cart(lines)
        totals = _totals_for(priced_lines)
        tendered, change_due = settle_payment(totals, method, cash)
        required = explode_bom((p.product, p.quantity) for p in priced_lines)

        now = utcnow()
        check_and_deduct(required, MaterialSnapshots(), now=now)

        sale = Sale(
            receipt_number=next_document_number(document_type="SALE", prefix="TRX"),
            subtotal=totals.subtotal,
            tax=totals.tax,
            service_charge=totals.service_charge,
            grand_total=totals.grand_total,
            payment_method=method,
            cash_tendered=tendered,
            change_due=change_due,
            customer_note=note,
            status="COMPLETED",
            created_at=now,
        )
        for p in priced_lines:
            sale.lines.append(SaleLine(
                product_id=p.product.id,
                product_name=p.product.name,
                quantity=p.quantity,
                unit_price=p.product.price,
                line_total=p.line_total,
                note=p.note,
                created_at=now,
            ))
        db.session.add(sale)
        db.session.flush()
        return sale

    try:
        sale = run_in_transaction(_op)
    except InsufficientStockError as exc:
        logger.info("Sale rejected: %s", exc)
        raise

    logger.info(
        "Sale %s committed: %s line(s), grand_total=%s, payment=%s",
        sale.receipt_number,
        len(lines),
        sale.grand_total,
        sale.payment_method,
    )
    return sale


def get_sale(receipt_number: str) -> Sale | None:
    return db.session.query(Sale).filter_by(receipt_number=receipt_number).first()


def list_sales(
    *,
    search: str | None = None,
    payment_method: str | None = None,
    time_range: str | None = None,
    date: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Sale summaries, newest first, with optional filters and pagination.

    search matches the receipt number or any product name on the receipt.
    An explicit date (YYYY-MM-DD) takes precedence over time_range.
    """
    query = db.session.query(Sale)

    query = filter_by_period(query, Sale.created_at, time_range=time_range, date=date)

    if payment_method and payment_method != "all":
        query = query.filter(Sale.payment_method == payment_method)

    if search and search.strip():
        term = f"%{search.strip()}%"
        line_match = select(SaleLine.sale_id).where(SaleLine.product_name.ilike(term))
        query = query.filter(or_(Sale.receipt_number.ilike(term), Sale.id.in_(line_match)))

    query = query.order_by(Sale.created_at.desc(), Sale.id.desc())

    if page is None:
        sales = query.all()
        return {"items": [s.to_dict() for s in sales], "count": len(sales)}

    per_page = min(per_page or 20, 100)
    page = max(page, 1)
    total = query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1
    sales = query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [s.to_dict() for s in sales],
        "count": len(sales),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }
