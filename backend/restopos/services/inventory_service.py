# Overview: Shared inventory-store access for the sale and stock-in engines.

# backend/restopos/services/inventory_service.py

from __future__ import annotations

from collections import OrderedDict
from decimal import Decimal
from typing import Iterable

from ..extensions import db
from ..models import Material, Product, quantity_to_json
from .concurrency import lock_for_update

"""
RestoPOS Inventory Invariants (authoritative)

Stock model:
- Material.stock is a stored quantity (not ledger-derived) and is the only
  shared mutable resource.
- It is written only inside run_in_transaction(), by submit_sale(),
  record_purchase() and reverse_purchase().

Business invariants:
- stock >= 0 for every material after every commit.
- A sale requires, per material, the SUM over all cart lines of
  bom_quantity * line_quantity; validation happens against that sum, never
  line by line.
- A failed validation for any material leaves every material unchanged.

Reads:
- Decisions are made on rows read inside the transaction (locked where the
  database supports it), never on values fetched earlier for display.
- Within one attempt each material is read once (MaterialSnapshots).
"""


class InventoryError(Exception):
    """Base for inventory-domain failures. details is returned to API callers."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class NotFoundError(InventoryError):
    """Referenced material, product or record no longer exists."""

    def __init__(self, entity: str, entity_id: int):
        super().__init__(
            f"{entity.capitalize()} {entity_id} not found",
            details={"entity": entity, "entity_id": entity_id},
        )
        self.entity = entity
        self.entity_id = entity_id


class InsufficientStockError(InventoryError):
    """Required quantity exceeds what is on hand. Quantities must change; no retry."""

    def __init__(self, material_id: int, material_name: str, required: Decimal, available: Decimal):
        super().__init__(
            f"Insufficient stock for {material_name}: requires {quantity_to_json(required)}, "
            f"available {quantity_to_json(available)}",
            details={
                "material_id": material_id,
                "material_name": material_name,
                "required": quantity_to_json(required),
                "available": quantity_to_json(available),
            },
        )
        self.material_id = material_id
        self.material_name = material_name
        self.required = required
        self.available = available


class InsufficientStockForReversalError(InventoryError):
    """Reversing a stock-in would drive stock negative (it was partly consumed)."""

    def __init__(self, material_id: int, material_name: str, current_stock: Decimal, quantity: Decimal):
        super().__init__(
            f"Cannot reverse purchase: {material_name} has {quantity_to_json(current_stock)} "
            f"in stock, reversal needs {quantity_to_json(quantity)}",
            details={
                "material_id": material_id,
                "material_name": material_name,
                "current_stock": quantity_to_json(current_stock),
                "quantity": quantity_to_json(quantity),
            },
        )
        self.material_id = material_id
        self.current_stock = current_stock
        self.quantity = quantity


def load_material(material_id: int, *, lock: bool = False) -> Material:
    """
    Read a material row, raising NotFoundError if it is gone.

    lock=True is for use inside run_in_transaction(): it takes a row lock
    where supported and refreshes any copy already in the identity map, so a
    retried attempt never decides on a stale stock value.
    """
    query = db.session.query(Material).filter_by(id=material_id)
    if lock:
        query = lock_for_update(query).populate_existing()
    material = query.first()
    if material is None:
        raise NotFoundError("material", material_id)
    return material


def load_product(product_id: int, *, require_active: bool = False) -> Product:
    product = db.session.query(Product).filter_by(id=product_id).first()
    if product is None:
        raise NotFoundError("product", product_id)
    if require_active and not product.is_active:
        raise InventoryError(
            f"Product {product.name} is inactive",
            details={"product_id": product_id},
        )
    return product


class MaterialSnapshots:
    """
    Per-attempt memo of materials read inside a transaction.

    Create a fresh instance inside each attempt: a retried attempt must
    re-read everything.
    """

    def __init__(self):
        self._materials: dict[int, Material] = {}
        self.reads = 0

    def get(self, material_id: int) -> Material:
        material = self._materials.get(material_id)
        if material is None:
            material = load_material(material_id, lock=True)
            self.reads += 1
            self._materials[material_id] = material
        return material

    def __contains__(self, material_id: int) -> bool:
        return material_id in self._materials

    def __len__(self) -> int:
        return len(self._materials)


def explode_bom(lines: Iterable[tuple[Product, int]]) -> "OrderedDict[int, Decimal]":
    """
    Aggregate material requirements for (product, quantity) pairs.

    Shared ingredients are summed across lines, in first-seen order.
    """
    required: "OrderedDict[int, Decimal]" = OrderedDict()
    for product, quantity in lines:
        if not product.bom_items:
            raise InventoryError(
                f"Product {product.name} has no bill of materials",
                details={"product_id": product.id},
            )
        for item in product.bom_items:
            needed = Decimal(item.quantity) * quantity
            required[item.material_id] = required.get(item.material_id, Decimal("0")) + needed
    return required


def check_and_deduct(required: dict[int, Decimal], snapshots: MaterialSnapshots, *, now) -> list[Material]:
    """
    Validate every requirement against its snapshot, then write all deductions.

    All checks run before the first write, so a shortfall on any material
    leaves every row untouched (the caller's transaction rolls back anyway).
    """
    materials = [snapshots.get(material_id) for material_id in required]

    for material in materials:
        needed = required[material.id]
        if material.stock < needed:
            raise InsufficientStockError(material.id, material.name, needed, material.stock)

    for material in materials:
        material.stock = material.stock - required[material.id]
        material.last_used_at = now

    return materials


def max_producible(product: Product) -> int:
    """
    Whole units of product the current stock could make (advisory, for menus).

    A missing material counts as zero stock.
    """
    if not product.bom_items:
        return 0

    material_ids = [item.material_id for item in product.bom_items]
    stock_by_id = {
        m.id: m.stock
        for m in db.session.query(Material).filter(Material.id.in_(material_ids)).all()
    }

    units = None
    for item in product.bom_items:
        stock = stock_by_id.get(item.material_id, Decimal("0"))
        possible = int(stock // Decimal(item.quantity))
        units = possible if units is None else min(units, possible)
    return max(units or 0, 0)
