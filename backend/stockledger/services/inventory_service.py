# Overview: Service-layer operations for inventory; the only code that mutates stock counts.

# backend/stockledger/services/inventory_service.py

from __future__ import annotations

import logging

from sqlalchemy import insert, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..errors import ConcurrencyConflict, InsufficientStock, InvalidInput
from ..models import InventoryRecord, Location, Transaction
from ..models.inventory import TX_STATUS_COMPLETED, TX_TYPE_PURCHASE
from .catalog_service import find_warehouse, get_product
from .concurrency import apply_lock_timeout, run_with_retry, unit_of_work
"""
Inventory Ledger Invariants (authoritative)

Stock model:
- Stock is a stored quantity per (product_id, location_id) in inventory_records.
- Absence of a record means quantity 0.
- A record is created on the first movement into a location with quantity max(0, delta).

Business invariants:
- Quantity may never go negative. A decrement that would do so fails with
  InsufficientStock; it is never clamped.
- Read-modify-write is one conditional UPDATE:
      quantity = quantity + delta WHERE quantity + delta >= 0
  Two concurrent adjusters of the same key serialize on the row; neither can
  act on a stale read.
- The CHECK (quantity >= 0) constraint backs the conditional update.

Transactions:
- adjust_quantity never commits. The caller owns the unit of work so that a
  multi-line checkout or a transfer is all-or-nothing.
"""

logger = logging.getLogger(__name__)

_records = InventoryRecord.__table__

# Conditional update + insert-if-missing can lose to a concurrent insert; retry a few times
_ADJUST_ROUNDS = 3


def _require_int(value, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInput(f"{name} must be an integer", details={name: value})
    return value


def _key(product_id: int, location_id: int):
    return (_records.c.product_id == product_id) & (_records.c.location_id == location_id)


def _read_quantity(session: Session, product_id: int, location_id: int) -> int | None:
    return session.execute(
        select(_records.c.quantity).where(_key(product_id, location_id))
    ).scalar_one_or_none()


def _conditional_increment(session: Session, product_id: int, location_id: int, delta: int) -> bool:
    result = session.execute(
        update(_records)
        .where(_key(product_id, location_id))
        .where(_records.c.quantity + delta >= 0)
        .values(quantity=_records.c.quantity + delta)
    )
    return result.rowcount == 1


def _insert_if_missing(session: Session, product_id: int, location_id: int, quantity: int) -> bool:
    """Create the record; False if a concurrent writer created it first."""
    values = {"product_id": product_id, "location_id": location_id, "quantity": quantity}
    dialect = session.get_bind().dialect.name

    if dialect in ("postgresql", "sqlite"):
        dialect_insert = pg_insert if dialect == "postgresql" else sqlite_insert
        stmt = dialect_insert(_records).values(**values).on_conflict_do_nothing(
            index_elements=["product_id", "location_id"]
        )
        return session.execute(stmt).rowcount == 1

    try:
        session.execute(insert(_records).values(**values))
    except IntegrityError as exc:
        raise ConcurrencyConflict(
            "Inventory record was created concurrently",
            details={"product_id": product_id, "location_id": location_id},
        ) from exc
    return True


def get_quantity(session: Session, product_id: int, location_id: int) -> int:
    """Current on-hand quantity; 0 when the product never reached the location."""
    return int(_read_quantity(session, product_id, location_id) or 0)


def adjust_quantity(session: Session, product_id: int, location_id: int, delta: int) -> int:
    """
    Atomically apply `delta` to the (product, location) stock record.

    Returns:
        int: the new quantity

    Raises:
        InsufficientStock: current + delta would be negative
        ConcurrencyConflict: the record kept changing underneath us

    Does not commit.
    """
    delta = _require_int(delta, "delta")

    for _ in range(_ADJUST_ROUNDS):
        if _conditional_increment(session, product_id, location_id, delta):
            new_quantity = get_quantity(session, product_id, location_id)
            logger.debug(
                "Adjusted stock product=%s location=%s delta=%+d -> %s",
                product_id, location_id, delta, new_quantity,
            )
            return new_quantity

        current = _read_quantity(session, product_id, location_id)
        if current is not None:
            if current + delta >= 0:
                # Stock arrived between the update and the read; try again
                continue
            raise InsufficientStock(product_id, location_id, requested=-delta, available=current)

        if delta < 0:
            raise InsufficientStock(product_id, location_id, requested=-delta, available=0)

        if _insert_if_missing(session, product_id, location_id, max(0, delta)):
            logger.debug(
                "Created stock record product=%s location=%s quantity=%s",
                product_id, location_id, delta,
            )
            return delta

    raise ConcurrencyConflict(
        "Stock record changed repeatedly during adjustment",
        details={"product_id": product_id, "location_id": location_id},
    )


def record_purchase(
    session: Session,
    product_id: int,
    quantity: int,
    *,
    timeout: float | None = None,
) -> Transaction:
    """
    Stock inward: receive purchased units into the warehouse.

    Appends one COMPLETED PURCHASE transaction (from supplier, so no
    from_location) in the same unit of work as the stock increment.
    """
    quantity = _require_int(quantity, "quantity")
    if quantity <= 0:
        raise InvalidInput("Quantity must be positive", details={"quantity": quantity})

    product = get_product(session, product_id)
    warehouse = find_warehouse(session)

    def _op(remaining):
        with unit_of_work(session):
            apply_lock_timeout(session, remaining)
            adjust_quantity(session, product.id, warehouse.id, quantity)
            tx = Transaction(
                type=TX_TYPE_PURCHASE,
                product_id=product.id,
                to_location_id=warehouse.id,
                quantity=quantity,
                status=TX_STATUS_COMPLETED,
            )
            session.add(tx)
            session.flush()
        logger.info("Purchase recorded: product=%s quantity=%s tx=%s", product.id, quantity, tx.id)
        return tx

    return run_with_retry(session, _op, timeout=timeout)


def get_stock_levels(session: Session, product_id: int) -> list[dict]:
    """Quantity of one product at every location, zero-filled."""
    get_product(session, product_id)

    rows = session.execute(
        select(Location.id, Location.name, Location.type, _records.c.quantity)
        .select_from(Location)
        .outerjoin(
            _records,
            (_records.c.location_id == Location.id) & (_records.c.product_id == product_id),
        )
        .order_by(Location.id)
    ).all()

    return [
        {
            "location_id": row.id,
            "location_name": row.name,
            "location_type": row.type,
            "quantity": int(row.quantity or 0),
        }
        for row in rows
    ]
