# Overview: Service-layer operations for reporting; sales aggregates and the financial summary.

from __future__ import annotations

from sqlalchemy import func, or_

from ..extensions import db
from ..models import CapitalEntry, Sale, SaleLine, StockIn
from ..time_utils import to_utc_z
from ..validation import PAYMENT_METHODS
from .periods import filter_by_period

TOP_PRODUCTS_LIMIT = 5


def _line_query(*, search, payment_method, time_range, date):
    query = db.session.query(SaleLine).join(Sale, SaleLine.sale_id == Sale.id)
    query = filter_by_period(query, Sale.created_at, time_range=time_range, date=date)
    if payment_method and payment_method != "all":
        query = query.filter(Sale.payment_method == payment_method)
    if search and search.strip():
        term = f"%{search.strip()}%"
        query = query.filter(or_(
            SaleLine.product_name.ilike(term),
            Sale.receipt_number.ilike(term),
            Sale.customer_note.ilike(term),
        ))
    return query


def sales_report(
    *,
    search: str | None = None,
    payment_method: str | None = None,
    time_range: str | None = "day",
    date: str | None = None,
    limit: int = 500,
) -> dict:
    """
    Sold lines for a window plus revenue aggregates.

    revenue and the averages use line totals (before tax and service charge);
    the payment breakdown uses receipt grand totals.
    """
    lines_q = _line_query(search=search, payment_method=payment_method, time_range=time_range, date=date)

    revenue, items_sold, line_count = lines_q.with_entities(
        func.coalesce(func.sum(SaleLine.line_total), 0),
        func.coalesce(func.sum(SaleLine.quantity), 0),
        func.count(SaleLine.id),
    ).one()
    revenue, items_sold, line_count = int(revenue or 0), int(items_sold or 0), int(line_count or 0)

    top_rows = (
        lines_q.with_entities(
            SaleLine.product_name.label("name"),
            func.sum(SaleLine.quantity).label("quantity"),
            func.sum(SaleLine.line_total).label("revenue"),
        )
        .group_by(SaleLine.product_name)
        .order_by(func.sum(SaleLine.line_total).desc(), SaleLine.product_name.asc())
        .limit(TOP_PRODUCTS_LIMIT)
        .all()
    )

    day_expr = func.date(Sale.created_at)
    daily_rows = (
        lines_q.with_entities(
            day_expr.label("day"),
            func.count(func.distinct(Sale.id)).label("sales_count"),
            func.sum(SaleLine.quantity).label("items_sold"),
            func.sum(SaleLine.line_total).label("revenue"),
        )
        .group_by(day_expr)
        .order_by(day_expr)
        .all()
    )

    sale_ids = lines_q.with_entities(SaleLine.sale_id).distinct()
    payment_rows = (
        db.session.query(
            Sale.payment_method,
            func.count(Sale.id),
            func.coalesce(func.sum(Sale.grand_total), 0),
        )
        .filter(Sale.id.in_(sale_ids.scalar_subquery()))
        .group_by(Sale.payment_method)
        .all()
    )
    payments = {m: {"count": 0, "amount": 0} for m in PAYMENT_METHODS + ("other",)}
    for method, count, amount in payment_rows:
        bucket = payments[method if method in PAYMENT_METHODS else "other"]
        bucket["count"] += int(count)
        bucket["amount"] += int(amount or 0)

    lines = (
        lines_q.order_by(SaleLine.created_at.desc(), SaleLine.id.desc())
        .limit(limit)
        .all()
    )

    return {
        "time_range": None if date else time_range,
        "date": date,
        "summary": {
            "revenue": revenue,
            "items_sold": items_sold,
            "line_count": line_count,
            "average_per_line": revenue // line_count if line_count else 0,
        },
        "top_products": [
            {"name": r.name, "quantity": int(r.quantity or 0), "revenue": int(r.revenue or 0)}
            for r in top_rows
        ],
        "daily": [
            {
                "day": str(r.day),
                "sales_count": int(r.sales_count or 0),
                "items_sold": int(r.items_sold or 0),
                "revenue": int(r.revenue or 0),
            }
            for r in daily_rows
        ],
        "payments": payments,
        "lines": [
            dict(
                line.to_dict(),
                receipt_number=line.sale.receipt_number,
                payment_method=line.sale.payment_method,
                sold_at=to_utc_z(line.sale.created_at),
            )
            for line in lines
        ],
    }


def profit_margin(income: int, expenses: int) -> float:
    """Profit as a percentage of expenses; 100 for income with no expenses."""
    if expenses > 0:
        return round((income - expenses) / expenses * 100, 1)
    return 100.0 if income > 0 else 0.0


def financial_summary(*, time_range: str | None = "all", date: str | None = None) -> dict:
    """
    Capital, income and expenses for a window.

    total_capital is all-time; income (sale line totals), expenses (stock-in
    totals) and capital_added are restricted to the window.
    balance = total_capital + income - expenses.
    profit_margin is profit over expenses, as a percentage.
    """
    total_capital = db.session.query(func.coalesce(func.sum(CapitalEntry.amount), 0)).scalar()

    capital_added = filter_by_period(
        db.session.query(func.coalesce(func.sum(CapitalEntry.amount), 0)),
        CapitalEntry.occurred_at,
        time_range=time_range,
        date=date,
    ).scalar()

    income = filter_by_period(
        db.session.query(func.coalesce(func.sum(SaleLine.line_total), 0)),
        SaleLine.created_at,
        time_range=time_range,
        date=date,
    ).scalar()

    expenses = filter_by_period(
        db.session.query(func.coalesce(func.sum(StockIn.total), 0)),
        StockIn.created_at,
        time_range=time_range,
        date=date,
    ).scalar()

    total_capital, capital_added = int(total_capital or 0), int(capital_added or 0)
    income, expenses = int(income or 0), int(expenses or 0)
    profit = income - expenses

    return {
        "time_range": None if date else time_range,
        "date": date,
        "total_capital": total_capital,
        "capital_added": capital_added,
        "income": income,
        "expenses": expenses,
        "profit": profit,
        "profit_margin": profit_margin(income, expenses),
        "balance": total_capital + income - expenses,
    }
