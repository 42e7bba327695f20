# Overview: Flask API routes for the raw-material catalogue; parses input and returns JSON responses.

# backend/restopos/routes/materials.py
"""
Material catalogue routes.

Stock is settable only on create (opening stock). Afterwards it changes
through /api/sales and /api/stock-in; PUT rejects a "stock" field.
"""
from flask import Blueprint, current_app, request

from ..models import Material
from ..services import materials_service
from ..services.concurrency import ConflictRetryExhaustedError
from ..services.inventory_service import NotFoundError
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    enforce_rules_material,
    validate_payload,
)

materials_bp = Blueprint("materials", __name__, url_prefix="/api/materials")

MATERIAL_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "unit", "stock", "min_stock"},
    required_on_create={"name", "unit"},
)

MATERIAL_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "unit", "min_stock"},
)


@materials_bp.get("")
def list_materials_route():
    """
    Query params:
    - search: name or unit contains
    - unit: exact unit
    - status: danger | warning | good | all
    """
    try:
        return materials_service.list_materials(
            search=request.args.get("search"),
            unit=request.args.get("unit"),
            status=request.args.get("status"),
        )
    except ValidationError as e:
        return {"error": str(e), "details": e.details}, 400


@materials_bp.get("/low-stock")
def low_stock_route():
    materials = materials_service.low_stock_materials()
    return {
        "items": [materials_service.serialize_material(m) for m in materials],
        "count": len(materials),
    }


@materials_bp.post("")
def create_material_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Material, payload=payload, policy=MATERIAL_CREATE_POLICY, partial=False)
        enforce_rules_material(patch)
    except ValidationError as e:
        return {"error": str(e), "details": e.details}, 400

    try:
        m = materials_service.create_material(patch=patch)
    except Exception:
        current_app.logger.exception("Failed to create material")
        return {"error": "Internal server error"}, 500

    return materials_service.serialize_material(m), 201


@materials_bp.get("/<int:material_id>")
def get_material_route(material_id: int):
    try:
        m = materials_service.get_material(material_id)
    except NotFoundError as e:
        return {"error": str(e), "details": e.details}, 404
    return materials_service.serialize_material(m)


@materials_bp.put("/<int:material_id>")
def update_material_route(material_id: int):
    payload = request.get_json(silent=True) or {}

    if "stock" in payload:
        return {"error": "stock cannot be edited directly; record a stock-in instead"}, 400

    try:
        patch = validate_payload(model=Material, payload=payload, policy=MATERIAL_UPDATE_POLICY, partial=True)
        enforce_rules_material(patch)
    except ValidationError as e:
        return {"error": str(e), "details": e.details}, 400

    try:
        m = materials_service.update_material(material_id, patch=patch)
    except NotFoundError as e:
        return {"error": str(e), "details": e.details}, 404
    except ConflictRetryExhaustedError as e:
        return {"error": str(e), "details": e.details}, 503

    return materials_service.serialize_material(m)


@materials_bp.delete("/<int:material_id>")
def delete_material_route(material_id: int):
    try:
        materials_service.delete_material(material_id)
    except NotFoundError as e:
        return {"error": str(e), "details": e.details}, 404
    except ConflictRetryExhaustedError as e:
        return {"error": str(e), "details": e.details}, 503

    return {"deleted": True, "id": material_id}
