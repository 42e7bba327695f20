# backend/restopos/services/materials_service.py
"""
Materials Service - raw-material catalogue

Catalogue edits cover name, unit and min_stock. Stock is set once, as the
opening stock on create; after that it moves only through sales and
stock-ins.
"""
from __future__ import annotations

import logging
from decimal import Decimal

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..models import Material
from ..validation import ValidationError
from .concurrency import run_in_transaction
from .inventory_service import load_material

logger = logging.getLogger(__name__)

MATERIAL_MUTABLE_FIELDS = {"name", "unit", "min_stock"}
STOCK_STATUSES = ("danger", "warning", "good")


def _warning_factor() -> int:
    return current_app.config.get("LOW_STOCK_WARNING_FACTOR", 2)


def apply_material_patch(m: Material, patch: dict) -> None:
    for k, v in patch.items():
        if k not in MATERIAL_MUTABLE_FIELDS:
            continue
        setattr(m, k, v)


def serialize_material(m: Material) -> dict:
    return m.to_dict(warning_factor=_warning_factor())


def list_materials(
    *,
    search: str | None = None,
    unit: str | None = None,
    status: str | None = None,
) -> dict:
    """
    Materials ordered by name.

    search matches name or unit; status filters on the computed stock status
    (danger / warning / good) and is applied after loading.
    """
    if status and status != "all" and status not in STOCK_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(STOCK_STATUSES)}")

    query = db.session.query(Material)
    if search and search.strip():
        term = f"%{search.strip()}%"
        query = query.filter(or_(Material.name.ilike(term), Material.unit.ilike(term)))
    if unit and unit != "all":
        query = query.filter(Material.unit == unit)

    factor = _warning_factor()
    materials = query.order_by(Material.name.asc(), Material.id.asc()).all()
    if status and status != "all":
        materials = [m for m in materials if m.stock_status(factor) == status]

    return {
        "items": [m.to_dict(warning_factor=factor) for m in materials],
        "count": len(materials),
        "units": sorted({u for (u,) in db.session.query(Material.unit).distinct()}),
    }


def low_stock_materials() -> list[Material]:
    """Materials whose stock is at or below their min_stock."""
    return (
        db.session.query(Material)
        .filter(Material.min_stock.isnot(None))
        .filter(Material.stock <= Material.min_stock)
        .order_by(Material.name.asc())
        .all()
    )


def get_material(material_id: int) -> Material:
    return load_material(material_id)


def create_material(*, patch: dict) -> Material:
    """
    Create a material. patch may carry "stock" as the opening stock.
    """
    m = Material(
        name=patch["name"],
        unit=patch["unit"],
        stock=patch.get("stock") or Decimal("0"),
        min_stock=patch.get("min_stock"),
    )
    db.session.add(m)
    db.session.commit()
    logger.info("Material %s created (%s, opening stock %s)", m.id, m.name, m.stock)
    return m


def update_material(material_id: int, *, patch: dict) -> Material:
    """
    Edit catalogue fields. Runs as a locked transaction because the row is
    version-checked against concurrent stock writes.
    """
    if "stock" in patch:
        raise ValidationError("stock cannot be edited directly; record a stock-in instead")

    def _op() -> Material:
        m = load_material(material_id, lock=True)
        apply_material_patch(m, patch)
        return m

    return run_in_transaction(_op)


def delete_material(material_id: int) -> None:
    """
    Delete a material. Products that still list it in their BOM cannot be
    sold until the BOM is edited; history rows keep the material name.
    """
    def _op() -> None:
        m = load_material(material_id, lock=True)
        db.session.delete(m)

    run_in_transaction(_op)
    logger.info("Material %s deleted", material_id)
