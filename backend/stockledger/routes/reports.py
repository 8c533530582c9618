from flask import Blueprint, jsonify, request

from ..decorators import ledger_errors
from ..errors import InvalidInput
from ..extensions import db
from ..services import reporting_service


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")

MAX_RECENT_LIMIT = 100


@reports_bp.get("/low-stock")
@ledger_errors
def low_stock_report():
    products = reporting_service.get_low_stock_products(db.session)
    return jsonify({"products": products, "count": len(products)}), 200


@reports_bp.get("/summary")
@ledger_errors
def dashboard_summary():
    return jsonify(reporting_service.get_dashboard_summary(db.session)), 200


@reports_bp.get("/locations")
@ledger_errors
def location_stock_report():
    """Units on hand and stock value per location, warehouse first."""
    return jsonify({"locations": reporting_service.get_location_stock_summary(db.session)}), 200


@reports_bp.get("/recent")
@ledger_errors
def recent_movements():
    """
    Latest stock movements of every type.

    Query: limit (optional, default 5, max 100)
    """
    limit = request.args.get("limit", default=reporting_service.DEFAULT_RECENT_LIMIT, type=int)
    if limit < 1 or limit > MAX_RECENT_LIMIT:
        raise InvalidInput(f"limit must be between 1 and {MAX_RECENT_LIMIT}", details={"limit": limit})
    return jsonify({"transactions": reporting_service.get_recent_movements(db.session, limit)}), 200
