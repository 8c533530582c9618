# backend/stockledger/services/transfer_service.py
"""
Warehouse-to-store transfer service.

WHY: Move stock from the single warehouse to a store with an explicit hand-off,
so units in transit are neither counted at the warehouse nor sellable at the
store until someone at the store receives them.

LIFECYCLE (status of the TRANSFER_OUT row):
1. PENDING: dispatched; warehouse already decremented
2. COMPLETED: received at the store (destination incremented, TRANSFER_IN row appended)

auto_receive dispatches straight to COMPLETED. PENDING is the only non-terminal
state; there is no cancel or reject.
"""
from __future__ import annotations

import logging

from sqlalchemy import update
from sqlalchemy.orm import Session

from ..errors import InvalidInput, InvalidTransition, NotFound, PermissionDenied
from ..identity import Caller
from ..models import Transaction
from ..models.inventory import (
    TX_STATUS_COMPLETED,
    TX_STATUS_PENDING,
    TX_TYPE_TRANSFER_IN,
    TX_TYPE_TRANSFER_OUT,
)
from .catalog_service import find_warehouse, get_product, get_store
from .concurrency import apply_lock_timeout, run_with_retry, unit_of_work
from .inventory_service import adjust_quantity

logger = logging.getLogger(__name__)

_transactions = Transaction.__table__


def dispatch_transfer(
    session: Session,
    product_id: int,
    quantity: int,
    to_location_id: int,
    auto_receive: bool = False,
    *,
    timeout: float | None = None,
) -> Transaction:
    """
    Send stock from the warehouse to a store.

    Args:
        product_id: Product to move
        quantity: Units to move (positive)
        to_location_id: Destination store
        auto_receive: Credit the store immediately instead of waiting for receipt

    Returns:
        Transaction: the TRANSFER_OUT row; its id is the transfer id

    Raises:
        InvalidInput: bad quantity or destination is not a store
        InsufficientStock: warehouse holds fewer units; nothing written
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidInput("Quantity must be a positive integer", details={"quantity": quantity})

    product_id = get_product(session, product_id).id
    to_location_id = get_store(session, to_location_id).id
    warehouse_id = find_warehouse(session).id

    def _op(remaining):
        with unit_of_work(session):
            apply_lock_timeout(session, remaining)
            adjust_quantity(session, product_id, warehouse_id, -quantity)

            status = TX_STATUS_COMPLETED if auto_receive else TX_STATUS_PENDING
            out_tx = Transaction(
                type=TX_TYPE_TRANSFER_OUT,
                product_id=product_id,
                from_location_id=warehouse_id,
                to_location_id=to_location_id,
                quantity=quantity,
                status=status,
            )
            session.add(out_tx)

            if auto_receive:
                adjust_quantity(session, product_id, to_location_id, quantity)
                session.add(
                    Transaction(
                        type=TX_TYPE_TRANSFER_IN,
                        product_id=product_id,
                        from_location_id=warehouse_id,
                        to_location_id=to_location_id,
                        quantity=quantity,
                        status=TX_STATUS_COMPLETED,
                    )
                )
            session.flush()

        logger.info(
            "Transfer %s dispatched: product=%s quantity=%s to=%s status=%s",
            out_tx.id, product_id, quantity, to_location_id, out_tx.status,
        )
        return out_tx

    return run_with_retry(session, _op, timeout=timeout)


def _check_can_receive(caller: Caller | None, to_location_id: int) -> None:
    if caller is None:
        raise PermissionDenied("Authentication required to receive transfers")
    if caller.is_admin:
        return
    if caller.assigned_location_id != to_location_id:
        raise PermissionDenied(
            "Only staff assigned to the destination store can receive this transfer",
            details={"to_location_id": to_location_id, "assigned_location_id": caller.assigned_location_id},
        )


def receive_transfer(
    session: Session,
    transfer_id: int,
    caller: Caller | None,
    *,
    timeout: float | None = None,
) -> Transaction:
    """
    Receive a PENDING transfer at its destination store.

    The PENDING -> COMPLETED flip is a conditional update, so a double call
    credits the store once and the second call fails with InvalidTransition.

    Returns:
        Transaction: the TRANSFER_IN row appended on receipt

    Raises:
        NotFound: no TRANSFER_OUT with this id
        PermissionDenied: caller is neither admin nor assigned to the destination
        InvalidTransition: transfer is not PENDING
    """
    out_tx = session.get(Transaction, transfer_id)
    if out_tx is None or out_tx.type != TX_TYPE_TRANSFER_OUT:
        raise NotFound(f"Transfer {transfer_id} not found", details={"transfer_id": transfer_id})

    product_id = out_tx.product_id
    from_location_id = out_tx.from_location_id
    to_location_id = out_tx.to_location_id
    quantity = out_tx.quantity

    _check_can_receive(caller, to_location_id)

    def _op(remaining):
        with unit_of_work(session):
            apply_lock_timeout(session, remaining)
            flipped = session.execute(
                update(_transactions)
                .where(_transactions.c.id == transfer_id)
                .where(_transactions.c.type == TX_TYPE_TRANSFER_OUT)
                .where(_transactions.c.status == TX_STATUS_PENDING)
                .values(status=TX_STATUS_COMPLETED)
            ).rowcount
            if flipped != 1:
                raise InvalidTransition(
                    f"Transfer {transfer_id} is not pending",
                    details={"transfer_id": transfer_id},
                )

            adjust_quantity(session, product_id, to_location_id, quantity)

            in_tx = Transaction(
                type=TX_TYPE_TRANSFER_IN,
                product_id=product_id,
                from_location_id=from_location_id,
                to_location_id=to_location_id,
                quantity=quantity,
                status=TX_STATUS_COMPLETED,
            )
            session.add(in_tx)
            session.flush()

        logger.info("Transfer %s received at location %s", transfer_id, to_location_id)
        return in_tx

    return run_with_retry(session, _op, timeout=timeout)


def list_transfers(session: Session, *, pending_only: bool = False, limit: int = 200) -> list[Transaction]:
    """Transfer rows newest first; pending_only narrows to TRANSFER_OUTs awaiting receipt."""
    q = session.query(Transaction)
    if pending_only:
        q = q.filter(
            Transaction.type == TX_TYPE_TRANSFER_OUT,
            Transaction.status == TX_STATUS_PENDING,
        )
    else:
        q = q.filter(Transaction.type.in_([TX_TYPE_TRANSFER_OUT, TX_TYPE_TRANSFER_IN]))
    return q.order_by(Transaction.created_at.desc(), Transaction.id.desc()).limit(limit).all()
