from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


# Material quantities are fractional (kg, liter); three decimals covers grams/ml.
Quantity = db.Numeric(14, 3, asdecimal=True)


def quantity_to_json(value):
    """Whole quantities serialize as int, fractional ones as float."""
    if value is None:
        return None
    value = Decimal(value)
    if value == value.to_integral_value():
        return int(value)
    return float(value)


class Material(db.Model):
    """
    Raw material held in stock (flour, oil, coffee beans...).

    STOCK INVARIANT:
    - stock >= 0 after every committed transaction.
    - stock is written only by the sale and stock-in transaction engines.
      Catalogue edits (name, unit, min_stock) never touch it.

    version_id is an optimistic lock: a concurrent write to the same row makes
    the losing UPDATE raise StaleDataError, which the transaction runner retries.
    """
    __tablename__ = "materials"
    __table_args__ = (
        db.Index("ix_materials_name", "name"),
        db.Index("ix_materials_unit", "unit"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    unit = db.Column(db.String(32), nullable=False)

    stock = db.Column(Quantity, nullable=False, default=Decimal("0"))

    # Advisory only; never blocks a transaction
    min_stock = db.Column(Quantity, nullable=True)

    last_used_at = db.Column(db.DateTime(timezone=True), nullable=True)
    last_restocked_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Material id={self.id} name={self.name!r} stock={self.stock} {self.unit}>"

    def stock_status(self, warning_factor: int = 2) -> str:
        """danger: at or under min_stock; warning: under min_stock * factor; good otherwise."""
        if not self.min_stock:
            return "good"
        if self.stock <= self.min_stock:
            return "danger"
        if self.stock < self.min_stock * warning_factor:
            return "warning"
        return "good"

    def to_dict(self, warning_factor: int = 2) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "unit": self.unit,
            "stock": quantity_to_json(self.stock),
            "min_stock": quantity_to_json(self.min_stock),
            "status": self.stock_status(warning_factor),
            "last_used_at": to_utc_z(self.last_used_at),
            "last_restocked_at": to_utc_z(self.last_restocked_at),
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Product(db.Model):
    """
    Sellable menu item.

    The BOM (bill of materials) lists the materials consumed per unit sold.
    Sales keep a snapshot of name and price, so editing or deleting a product
    never rewrites history.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_name", "name"),
        db.Index("ix_products_active_category", "is_active", "category"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(64), nullable=True)

    # Smallest currency unit (rupiah)
    price = db.Column(db.Integer, nullable=False)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    bom_items = db.relationship(
        "BomItem",
        order_by="BomItem.position",
        cascade="all, delete-orphan",
        backref="product",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} price={self.price}>"

    def to_dict(self, material_names: dict[int, str] | None = None) -> dict:
        material_names = material_names or {}
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "price": self.price,
            "is_active": self.is_active,
            "bom": [
                item.to_dict(material_name=material_names.get(item.material_id))
                for item in self.bom_items
            ],
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class BomItem(db.Model):
    """
    One BOM row: quantity of a material consumed per unit of product.

    material_id is deliberately not a foreign key; materials can be deleted
    while a product still lists them, and the sale engine reports the gap.
    """
    __tablename__ = "product_bom_items"
    __table_args__ = (
        db.Index("ix_bom_product_position", "product_id", "position"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    material_id = db.Column(db.Integer, nullable=False, index=True)
    quantity = db.Column(Quantity, nullable=False)
    position = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self, material_name: str | None = None) -> dict:
        return {
            "material_id": self.material_id,
            "material_name": material_name,
            "quantity": quantity_to_json(self.quantity),
        }


class StockIn(db.Model):
    """
    Purchase of raw material (stock-in). Immutable audit row.

    previous_stock / new_stock are captured at write time for the audit trail
    only. Reversal re-reads the live material stock; new_stock may be stale.
    """
    __tablename__ = "stock_ins"
    __table_args__ = (
        db.Index("ix_stock_ins_material_created", "material_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    material_id = db.Column(db.Integer, nullable=False)
    material_name = db.Column(db.String(255), nullable=False)

    quantity = db.Column(Quantity, nullable=False)
    unit_price = db.Column(db.Integer, nullable=False)
    total = db.Column(db.Integer, nullable=False)

    previous_stock = db.Column(Quantity, nullable=False)
    new_stock = db.Column(Quantity, nullable=False)

    note = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "material_id": self.material_id,
            "material_name": self.material_name,
            "quantity": quantity_to_json(self.quantity),
            "unit_price": self.unit_price,
            "total": self.total,
            "previous_stock": quantity_to_json(self.previous_stock),
            "new_stock": quantity_to_json(self.new_stock),
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
        }
