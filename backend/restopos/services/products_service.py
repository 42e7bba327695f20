# backend/restopos/services/products_service.py
"""
Products Service - menu items and their bills of materials

A product is sellable only while it is active and has a non-empty BOM whose
materials exist. BOM edits replace the whole list.
"""
from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import or_

from ..extensions import db
from ..models import BomItem, Material, Product
from ..validation import ValidationError, parse_bom
from .concurrency import run_in_transaction
from .inventory_service import load_product, max_producible

logger = logging.getLogger(__name__)

PRODUCT_MUTABLE_FIELDS = {"name", "category", "price", "is_active"}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _material_names(material_ids) -> dict[int, str]:
    ids = set(material_ids)
    if not ids:
        return {}
    rows = db.session.query(Material.id, Material.name).filter(Material.id.in_(ids)).all()
    return {mid: name for mid, name in rows}


def serialize_product(p: Product) -> dict:
    return p.to_dict(material_names=_material_names(i.material_id for i in p.bom_items))


def _require_materials_exist(bom: list[tuple[int, Decimal]]) -> None:
    wanted = {material_id for material_id, _ in bom}
    found = set(_material_names(wanted))
    missing = sorted(wanted - found)
    if missing:
        raise ValidationError(
            "bom references unknown materials",
            details={"missing_material_ids": missing},
        )


def _replace_bom(p: Product, bom: list[tuple[int, Decimal]]) -> None:
    p.bom_items.clear()
    for position, (material_id, quantity) in enumerate(bom):
        p.bom_items.append(BomItem(material_id=material_id, quantity=quantity, position=position))


def list_products(
    *,
    search: str | None = None,
    category: str | None = None,
    active: bool | None = None,
) -> dict:
    query = db.session.query(Product)
    if search and search.strip():
        term = f"%{search.strip()}%"
        query = query.filter(or_(Product.name.ilike(term), Product.category.ilike(term)))
    if category and category != "all":
        query = query.filter(Product.category == category)
    if active is not None:
        query = query.filter(Product.is_active.is_(active))

    products = query.order_by(Product.name.asc(), Product.id.asc()).all()
    names = _material_names(i.material_id for p in products for i in p.bom_items)
    categories = db.session.query(Product.category).filter(Product.category.isnot(None)).distinct()

    return {
        "items": [p.to_dict(material_names=names) for p in products],
        "count": len(products),
        "categories": sorted(c for (c,) in categories),
    }


def get_product(product_id: int) -> Product:
    return load_product(product_id)


def create_product(*, patch: dict) -> Product:
    """
    Create a product from a validated patch. patch["bom"] is the raw BOM list.

    Raises:
        ValidationError: empty/invalid BOM or unknown material
    """
    bom = parse_bom(patch.get("bom"))
    _require_materials_exist(bom)

    p = Product(
        name=patch["name"],
        category=patch.get("category"),
        price=patch["price"],
        is_active=patch.get("is_active", True),
    )
    _replace_bom(p, bom)
    db.session.add(p)
    db.session.commit()
    logger.info("Product %s created (%s, %s BOM item(s))", p.id, p.name, len(bom))
    return p


def update_product(product_id: int, *, patch: dict) -> Product:
    """Patch product fields; a "bom" key replaces the BOM wholesale."""
    bom = parse_bom(patch["bom"]) if "bom" in patch else None
    if bom is not None:
        _require_materials_exist(bom)

    def _op() -> Product:
        p = load_product(product_id)
        apply_product_patch(p, patch)
        if bom is not None:
            _replace_bom(p, bom)
        return p

    return run_in_transaction(_op)


def toggle_product_active(product_id: int) -> Product:
    def _op() -> Product:
        p = load_product(product_id)
        p.is_active = not p.is_active
        return p

    p = run_in_transaction(_op)
    logger.info("Product %s is now %s", p.id, "active" if p.is_active else "inactive")
    return p


def delete_product(product_id: int) -> None:
    """Delete a product and its BOM. Past sale lines keep their snapshot."""
    def _op() -> None:
        db.session.delete(load_product(product_id))

    run_in_transaction(_op)
    logger.info("Product %s deleted", product_id)


def product_availability(product_id: int) -> dict:
    """Advisory count of units current stock can make; never reserves anything."""
    p = load_product(product_id)
    return {
        "product_id": p.id,
        "name": p.name,
        "is_active": p.is_active,
        "available_units": max_producible(p),
    }
