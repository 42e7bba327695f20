# Overview: Flask API routes for checkout and sales history; parses input and returns JSON responses.

# backend/restopos/routes/sales.py
"""
Sales API routes.

Status codes:
- 400: invalid cart/payment, insufficient cash, inactive product or product without BOM
- 404: product or material no longer exists
- 409: insufficient stock (details name the material)
- 503: transaction conflicts outlasted retries; safe to resubmit
"""

from flask import Blueprint, current_app, jsonify, request

from ..services import sales_service
from ..services.concurrency import ConflictRetryExhaustedError
from ..services.inventory_service import InsufficientStockError, InventoryError, NotFoundError
from ..validation import ValidationError, coerce_int

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
def submit_sale_route():
    """
    Check out a cart.

    Body:
    {
      "items": [{"product_id": 1, "quantity": 2, "note": "less sugar"}],
      "payment_method": "cash" | "qris" | "card",
      "cash_tendered": 50000,        # cash only
      "customer_note": "table 4"
    }
    """
    data = request.get_json(silent=True) or {}

    try:
        sale = sales_service.submit_sale(
            data.get("items"),
            data.get("payment_method"),
            cash_tendered=data.get("cash_tendered"),
            customer_note=data.get("customer_note"),
        )
        return jsonify({"sale": sale.to_dict()}), 201

    except ValidationError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e), "details": e.details}), 404
    except InsufficientStockError as e:
        return jsonify({"error": str(e), "details": e.details}), 409
    except InventoryError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except ConflictRetryExhaustedError as e:
        return jsonify({"error": str(e), "details": e.details}), 503
    except Exception:
        current_app.logger.exception("Failed to submit sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("/quote")
def quote_sale_route():
    """Price a cart (subtotal, tax, service charge) without deducting stock."""
    data = request.get_json(silent=True) or {}

    try:
        return jsonify(sales_service.quote_cart(data.get("items"))), 200
    except ValidationError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e), "details": e.details}), 404
    except InventoryError as e:
        return jsonify({"error": str(e), "details": e.details}), 400


@sales_bp.get("")
def list_sales_route():
    """
    Query params:
    - search: receipt number or product name contains
    - payment_method: cash | qris | card | all
    - range: day | week | month | all
    - date: YYYY-MM-DD (overrides range)
    - page, per_page: optional pagination
    """
    try:
        page = request.args.get("page")
        per_page = request.args.get("per_page")
        result = sales_service.list_sales(
            search=request.args.get("search"),
            payment_method=request.args.get("payment_method"),
            time_range=request.args.get("range"),
            date=request.args.get("date"),
            page=coerce_int(page, "page") if page else None,
            per_page=coerce_int(per_page, "per_page") if per_page else None,
        )
        return jsonify(result), 200
    except ValidationError as e:
        return jsonify({"error": str(e), "details": e.details}), 400


@sales_bp.get("/<receipt_number>")
def get_sale_route(receipt_number: str):
    sale = sales_service.get_sale(receipt_number)
    if not sale:
        return jsonify({"error": "Sale not found"}), 404
    return jsonify({"sale": sale.to_dict()}), 200
