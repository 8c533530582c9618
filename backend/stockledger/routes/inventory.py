# backend/stockledger/routes/inventory.py
"""
Inventory routes.

- Stock reads are open to any caller.
- Stock inward (purchases into the warehouse) requires the ADMIN role.
"""
from flask import Blueprint, request, jsonify

from ..decorators import ledger_errors, require_caller
from ..errors import InvalidInput
from ..extensions import db
from ..identity import ROLE_ADMIN
from ..services import inventory_service, reporting_service


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("")
@ledger_errors
def inventory_overview_route():
    """Every product with its warehouse stock, by name."""
    products = reporting_service.get_inventory_overview(db.session)
    return jsonify({"products": products, "count": len(products)}), 200


@inventory_bp.get("/stock")
@ledger_errors
def get_stock_route():
    """
    Current quantity of one product at one location.

    Query: product_id, location_id (both required)
    """
    product_id = request.args.get("product_id", type=int)
    location_id = request.args.get("location_id", type=int)
    if product_id is None or location_id is None:
        raise InvalidInput("product_id and location_id are required")

    quantity = inventory_service.get_quantity(db.session, product_id, location_id)
    return jsonify({"product_id": product_id, "location_id": location_id, "quantity": quantity}), 200


@inventory_bp.get("/products/<int:product_id>/stock")
@ledger_errors
def get_stock_levels_route(product_id: int):
    levels = inventory_service.get_stock_levels(db.session, product_id)
    return jsonify({"product_id": product_id, "locations": levels}), 200


@inventory_bp.post("/purchases")
@require_caller(ROLE_ADMIN)
@ledger_errors
def record_purchase_route():
    """
    Stock inward into the warehouse.

    Request body:
    {
        "product_id": int,
        "quantity": int
    }

    Returns:
        201: PURCHASE transaction recorded
        400: Invalid request
        404: Unknown product or no warehouse
    """
    data = request.get_json(silent=True) or {}
    if "product_id" not in data or "quantity" not in data:
        raise InvalidInput("product_id and quantity are required")

    tx = inventory_service.record_purchase(db.session, data["product_id"], data["quantity"])
    quantity = inventory_service.get_quantity(db.session, tx.product_id, tx.to_location_id)
    return jsonify({"transaction": tx.to_dict(), "warehouse_quantity": quantity}), 201
