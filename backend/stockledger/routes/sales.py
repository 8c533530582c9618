# Overview: Flask API routes for checkout and invoice history; parses input and returns JSON responses.

# backend/stockledger/routes/sales.py
"""Sales API routes"""

from flask import Blueprint, request, jsonify

from ..decorators import ledger_errors
from ..errors import InvalidInput, NotFound
from ..extensions import db
from ..services import invoice_service, sales_service
from ..services.pricing_service import BillDiscount, to_decimal


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _optional_timeout(data: dict) -> float | None:
    if data.get("timeout") is None:
        return None
    timeout = float(to_decimal(data["timeout"], "timeout"))
    if timeout <= 0:
        raise InvalidInput("timeout must be positive")
    return timeout


@sales_bp.post("/checkout")
@ledger_errors
def checkout_route():
    """
    Execute a checkout.

    Request body:
    {
        "location_id": int,
        "items": [{"product_id": int, "quantity": int,
                   "line_discount": {"type": "FIXED"|"PERCENTAGE", "value": number}}],
        "bill_discount": {"type": ..., "value": number, "apply_to_discounted_items": bool},
        "customer": {"name": str, "phone": str},
        "timeout": seconds (optional)
    }

    Returns:
        201: {invoice_id, grand_total, tax_breakdown, ...}
        400: Invalid cart or discount
        409: Insufficient stock (nothing persisted)
        503: Store busy, retry
    """
    data = request.get_json(silent=True) or {}
    location_id = data.get("location_id")
    if isinstance(location_id, bool) or not isinstance(location_id, int):
        raise InvalidInput("location_id is required")

    result = sales_service.checkout(
        db.session,
        sales_service.parse_checkout_items(data.get("items")),
        BillDiscount.from_dict(data.get("bill_discount")),
        location_id,
        sales_service.Customer.from_dict(data.get("customer")),
        timeout=_optional_timeout(data),
    )
    return jsonify(result.to_dict()), 201


@sales_bp.post("/quote")
@ledger_errors
def quote_route():
    """Price preview with catalog prices; no stock is touched."""
    data = request.get_json(silent=True) or {}
    priced = sales_service.quote(
        db.session,
        sales_service.parse_checkout_items(data.get("items")),
        BillDiscount.from_dict(data.get("bill_discount")),
    )
    return jsonify(priced.to_dict()), 200


@sales_bp.get("/invoices")
@ledger_errors
def list_invoices_route():
    """
    Invoice history, newest first.

    Query: location_id (optional), search (optional), limit (optional, default 500)
    """
    invoices = invoice_service.list_invoices(
        db.session,
        location_id=request.args.get("location_id", type=int),
        search=request.args.get("search"),
        limit=request.args.get("limit", default=invoice_service.DEFAULT_LIMIT, type=int),
    )
    return jsonify({"invoices": [inv.to_dict() for inv in invoices]}), 200


@sales_bp.get("/invoices/<invoice_id>")
@ledger_errors
def get_invoice_route(invoice_id: str):
    invoice = invoice_service.get_invoice(db.session, invoice_id)
    if invoice is None:
        raise NotFound(f"Invoice {invoice_id} not found")
    return jsonify({"invoice": invoice.to_dict()}), 200
