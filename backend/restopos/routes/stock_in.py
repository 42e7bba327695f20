# Overview: Flask API routes for material purchases (stock-in); parses input and returns JSON responses.

# backend/restopos/routes/stock_in.py
"""
Stock-in routes.

POST records a purchase and raises stock. DELETE reverses it, refused with
409 when the purchased quantity has already been consumed by sales.
"""
from flask import Blueprint, current_app, request

from ..models import StockIn
from ..services import stock_in_service
from ..services.concurrency import ConflictRetryExhaustedError
from ..services.inventory_service import InsufficientStockForReversalError, NotFoundError
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    coerce_int,
    enforce_rules_stock_in,
    validate_payload,
)

stock_in_bp = Blueprint("stock_in", __name__, url_prefix="/api/stock-in")

STOCK_IN_POLICY = ModelValidationPolicy(
    writable_fields={"material_id", "quantity", "unit_price", "note"},
    required_on_create={"material_id", "quantity", "unit_price"},
)


@stock_in_bp.post("")
def record_purchase_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=StockIn, payload=payload, policy=STOCK_IN_POLICY, partial=False)
        enforce_rules_stock_in(patch)
    except ValidationError as e:
        return {"error": str(e), "details": e.details}, 400

    try:
        record = stock_in_service.record_purchase(
            patch["material_id"],
            patch["quantity"],
            patch["unit_price"],
            note=patch.get("note"),
        )
    except ValidationError as e:
        return {"error": str(e), "details": e.details}, 400
    except NotFoundError as e:
        return {"error": str(e), "details": e.details}, 404
    except ConflictRetryExhaustedError as e:
        return {"error": str(e), "details": e.details}, 503
    except Exception:
        current_app.logger.exception("Failed to record stock-in")
        return {"error": "Internal server error"}, 500

    return record.to_dict(), 201


@stock_in_bp.get("")
def list_stock_ins_route():
    """
    Query params:
    - material_id: int
    - search: material name or note contains
    - range: 7days | 30days | all
    """
    material_id = request.args.get("material_id")
    try:
        return stock_in_service.list_stock_ins(
            material_id=coerce_int(material_id, "material_id") if material_id else None,
            search=request.args.get("search"),
            time_range=request.args.get("range"),
        )
    except ValidationError as e:
        return {"error": str(e), "details": e.details}, 400


@stock_in_bp.delete("/<int:stock_in_id>")
def reverse_purchase_route(stock_in_id: int):
    try:
        deleted = stock_in_service.reverse_purchase(stock_in_id)
    except NotFoundError as e:
        return {"error": str(e), "details": e.details}, 404
    except InsufficientStockForReversalError as e:
        return {"error": str(e), "details": e.details}, 409
    except ConflictRetryExhaustedError as e:
        return {"error": str(e), "details": e.details}, 503
    except Exception:
        current_app.logger.exception("Failed to reverse stock-in")
        return {"error": "Internal server error"}, 500

    return {"deleted": deleted}
