# Overview: Flask API routes for menu products and their BOMs; parses input and returns JSON responses.

# backend/restopos/routes/products.py
from flask import Blueprint, current_app, request

from ..models import Product
from ..services import products_service
from ..services.concurrency import ConflictRetryExhaustedError
from ..services.inventory_service import NotFoundError
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    enforce_rules_product,
    validate_payload,
)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "category", "price", "is_active"},
    required_on_create={"name", "price", "bom"},
    extra_fields={"bom"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _parse_active(raw: str | None) -> bool | None:
    if raw is None or raw == "" or raw == "all":
        return None
    return raw.lower() in ("1", "true", "yes")


@products_bp.get("")
def list_products_route():
    """
    List menu products.

    Query params:
    - search: name or category contains
    - category: exact category
    - active: true | false | all
    """
    return products_service.list_products(
        search=request.args.get("search"),
        category=request.args.get("category"),
        active=_parse_active(request.args.get("active")),
    )


@products_bp.post("")
def create_product_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
        p = products_service.create_product(patch=patch)
    except ValidationError as e:
        return {"error": str(e), "details": e.details}, 400
    except Exception:
        current_app.logger.exception("Failed to create product")
        return {"error": "Internal server error"}, 500

    return products_service.serialize_product(p), 201


@products_bp.get("/<int:product_id>")
def get_product_route(product_id: int):
    try:
        p = products_service.get_product(product_id)
    except NotFoundError as e:
        return {"error": str(e), "details": e.details}, 404
    return products_service.serialize_product(p)


@products_bp.put("/<int:product_id>")
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
        p = products_service.update_product(product_id, patch=patch)
    except ValidationError as e:
        return {"error": str(e), "details": e.details}, 400
    except NotFoundError as e:
        return {"error": str(e), "details": e.details}, 404
    except ConflictRetryExhaustedError as e:
        return {"error": str(e), "details": e.details}, 503

    return products_service.serialize_product(p)


@products_bp.post("/<int:product_id>/toggle-active")
def toggle_product_route(product_id: int):
    try:
        p = products_service.toggle_product_active(product_id)
    except NotFoundError as e:
        return {"error": str(e), "details": e.details}, 404
    except ConflictRetryExhaustedError as e:
        return {"error": str(e), "details": e.details}, 503
    return products_service.serialize_product(p)


@products_bp.get("/<int:product_id>/availability")
def product_availability_route(product_id: int):
    try:
        return products_service.product_availability(product_id)
    except NotFoundError as e:
        return {"error": str(e), "details": e.details}, 404


@products_bp.delete("/<int:product_id>")
def delete_product_route(product_id: int):
    try:
        products_service.delete_product(product_id)
    except NotFoundError as e:
        return {"error": str(e), "details": e.details}, 404
    except ConflictRetryExhaustedError as e:
        return {"error": str(e), "details": e.details}, 503

    return {"deleted": True, "id": product_id}
