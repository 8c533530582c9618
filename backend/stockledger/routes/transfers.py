# backend/stockledger/routes/transfers.py
"""
Warehouse-to-store transfer API routes.
"""
from flask import Blueprint, request, jsonify, g

from ..decorators import ledger_errors, require_caller
from ..errors import InvalidInput
from ..extensions import db
from ..identity import ROLE_ADMIN
from ..models.inventory import TX_STATUS_PENDING
from ..services import transfer_service
from ..services.pricing_service import to_bool


transfers_bp = Blueprint("transfers", __name__, url_prefix="/api/transfers")


@transfers_bp.route("", methods=["POST"])
@require_caller(ROLE_ADMIN)
@ledger_errors
def dispatch_transfer():
    """
    Dispatch stock from the warehouse to a store.

    Request body:
    {
        "product_id": int,
        "quantity": int,
        "to_location_id": int,
        "auto_receive": bool (optional, default false)
    }

    Returns:
        201: {transfer_id, status}
        400: Invalid request
        403: Forbidden
        409: Insufficient warehouse stock
    """
    data = request.get_json(silent=True) or {}
    missing = [k for k in ("product_id", "quantity", "to_location_id") if k not in data]
    if missing:
        raise InvalidInput(f"Missing required field: {', '.join(missing)}")

    out_tx = transfer_service.dispatch_transfer(
        db.session,
        product_id=data["product_id"],
        quantity=data["quantity"],
        to_location_id=data["to_location_id"],
        auto_receive=to_bool(data.get("auto_receive", False), "auto_receive"),
    )
    return jsonify({
        "transfer_id": out_tx.id,
        "status": out_tx.status,
        "transfer": out_tx.to_dict(),
    }), 201


@transfers_bp.route("/<int:transfer_id>/receive", methods=["POST"])
@require_caller()
@ledger_errors
def receive_transfer(transfer_id: int):
    """
    Receive a pending transfer at its destination store.

    Returns:
        200: Transfer received
        403: Caller not assigned to the destination store
        404: Transfer not found
        409: Transfer already received
    """
    in_tx = transfer_service.receive_transfer(db.session, transfer_id, g.caller)
    return jsonify({
        "transfer_id": transfer_id,
        "status": "COMPLETED",
        "transfer_in": in_tx.to_dict(),
    }), 200


@transfers_bp.route("", methods=["GET"])
@ledger_errors
def list_transfers():
    """
    Transfer history, newest first.

    Query: status=PENDING to list only transfers awaiting receipt
    """
    pending_only = (request.args.get("status") or "").upper() == TX_STATUS_PENDING
    rows = transfer_service.list_transfers(db.session, pending_only=pending_only)
    return jsonify({"transfers": [row.to_dict() for row in rows]}), 200
