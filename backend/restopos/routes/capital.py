# Overview: Flask API routes for capital entries; parses input and returns JSON responses.

from flask import Blueprint, request

from ..models import CapitalEntry
from ..services import capital_service
from ..services.inventory_service import NotFoundError
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    enforce_rules_capital,
    validate_payload,
)

capital_bp = Blueprint("capital", __name__, url_prefix="/api/capital")

CAPITAL_POLICY = ModelValidationPolicy(
    writable_fields={"amount", "entry_type", "note", "occurred_at"},
    required_on_create={"amount"},
)


@capital_bp.get("")
def list_capital_route():
    return capital_service.list_capital_entries()


@capital_bp.post("")
def create_capital_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=CapitalEntry, payload=payload, policy=CAPITAL_POLICY, partial=False)
        enforce_rules_capital(patch)
    except ValidationError as e:
        return {"error": str(e), "details": e.details}, 400

    entry = capital_service.create_capital_entry(patch=patch)
    return entry.to_dict(), 201


@capital_bp.put("/<int:entry_id>")
def update_capital_route(entry_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=CapitalEntry, payload=payload, policy=CAPITAL_POLICY, partial=True)
        enforce_rules_capital(patch)
        entry = capital_service.update_capital_entry(entry_id, patch=patch)
    except ValidationError as e:
        return {"error": str(e), "details": e.details}, 400
    except NotFoundError as e:
        return {"error": str(e), "details": e.details}, 404

    return entry.to_dict()


@capital_bp.delete("/<int:entry_id>")
def delete_capital_route(entry_id: int):
    try:
        capital_service.delete_capital_entry(entry_id)
    except NotFoundError as e:
        return {"error": str(e), "details": e.details}, 404
    return {"deleted": True, "id": entry_id}
