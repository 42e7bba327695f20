from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class Sale(db.Model):
    """
    Checkout summary (one per receipt).

    Written once, inside the same transaction that deducts material stock.
    Never mutated afterwards. All amounts are integers in the smallest
    currency unit.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("receipt_number", name="uq_sales_receipt_number"),
        db.Index("ix_sales_created_payment", "created_at", "payment_method"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable receipt number (e.g., "TRX-000123")
    receipt_number = db.Column(db.String(32), nullable=False)

    subtotal = db.Column(db.Integer, nullable=False)
    tax = db.Column(db.Integer, nullable=False, default=0)
    service_charge = db.Column(db.Integer, nullable=False, default=0)
    grand_total = db.Column(db.Integer, nullable=False)

    payment_method = db.Column(db.String(16), nullable=False)
    cash_tendered = db.Column(db.Integer, nullable=True)  # cash payments only
    change_due = db.Column(db.Integer, nullable=False, default=0)

    customer_note = db.Column(db.String(255), nullable=True)
    status = db.Column(db.String(16), nullable=False, default="COMPLETED")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    lines = db.relationship(
        "SaleLine",
        order_by="SaleLine.id",
        cascade="all, delete-orphan",
        backref="sale",
        lazy=True,
    )

    def __repr__(self) -> str:
        return f"<Sale {self.receipt_number} grand_total={self.grand_total}>"

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "receipt_number": self.receipt_number,
            "subtotal": self.subtotal,
            "tax": self.tax,
            "service_charge": self.service_charge,
            "grand_total": self.grand_total,
            "payment_method": self.payment_method,
            "cash_tendered": self.cash_tendered,
            "change_due": self.change_due,
            "customer_note": self.customer_note,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class SaleLine(db.Model):
    """
    Sold product snapshot.

    product_id is not a foreign key: deleting a product keeps its history, and
    product_name / unit_price record what the customer actually paid for.
    """
    __tablename__ = "sale_lines"
    __table_args__ = (
        db.Index("ix_sale_lines_product", "product_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)

    product_id = db.Column(db.Integer, nullable=False)
    product_name = db.Column(db.String(255), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Integer, nullable=False)
    line_total = db.Column(db.Integer, nullable=False)

    note = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "line_total": self.line_total,
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
        }
