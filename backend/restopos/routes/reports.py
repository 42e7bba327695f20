# Overview: Flask API routes for sales and financial reports; parses input and returns JSON responses.

from flask import Blueprint, request

from ..services import reporting_service
from ..validation import ValidationError

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/sales")
def sales_report_route():
    """
    Query params: search, payment_method, range (day|week|month|all, default day),
    date (YYYY-MM-DD, overrides range).
    """
    try:
        return reporting_service.sales_report(
            search=request.args.get("search"),
            payment_method=request.args.get("payment_method"),
            time_range=request.args.get("range", "day"),
            date=request.args.get("date"),
        )
    except ValidationError as e:
        return {"error": str(e), "details": e.details}, 400


@reports_bp.get("/financial")
def financial_summary_route():
    try:
        return reporting_service.financial_summary(
            time_range=request.args.get("range", "all"),
            date=request.args.get("date"),
        )
    except ValidationError as e:
        return {"error": str(e), "details": e.details}, 400
