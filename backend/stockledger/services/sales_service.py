"""
Sales Service - all-or-nothing checkout against the inventory ledger

WHY: A checkout touches one stock record per cart line. Either every line is
decremented and recorded under one invoice, or nothing is.

LIFECYCLE (logged per checkout):
    STARTED -> STOCK_RESERVED -> COMMITTED
    STARTED -> ABORTED                          (stock failure, nothing mutated)
    STOCK_RESERVED -> ROLLED_BACK -> ABORTED    (log write failed, stock restored)

Stock is re-validated by the conditional decrement itself, inside the same
database transaction as the SALE rows, never by a separate prior read.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..errors import InvalidInput, LedgerError, PersistenceFailure
from ..models import Transaction
from ..models.inventory import TX_STATUS_COMPLETED, TX_TYPE_SALE
from .catalog_service import get_location, get_product
from .concurrency import apply_lock_timeout, run_with_retry
from .inventory_service import adjust_quantity
from .pricing_service import BillDiscount, CartLine, CheckoutQuote, Discount, PricedLine, price_cart

logger = logging.getLogger(__name__)

CHECKOUT_STARTED = "STARTED"
CHECKOUT_STOCK_RESERVED = "STOCK_RESERVED"
CHECKOUT_COMMITTED = "COMMITTED"
CHECKOUT_ROLLED_BACK = "ROLLED_BACK"
CHECKOUT_ABORTED = "ABORTED"


@dataclass(frozen=True)
class CheckoutItem:
    product_id: int
    quantity: int
    line_discount: Discount = field(default_factory=Discount)


@dataclass(frozen=True)
class Customer:
    name: str | None = None
    phone: str | None = None

    @classmethod
    def from_dict(cls, data: dict | None) -> "Customer":
        data = data or {}
        name = (data.get("name") or "").strip() or None
        phone = (data.get("phone") or "").strip() or None
        return cls(name=name, phone=phone)


@dataclass
class CheckoutResult:
    invoice_id: str
    location_id: int
    quote: CheckoutQuote
    transaction_ids: list[int]

    @property
    def grand_total(self):
        return self.quote.grand_total

    @property
    def tax_breakdown(self):
        return self.quote.tax_breakdown

    def to_dict(self) -> dict:
        return {
            "invoice_id": self.invoice_id,
            "location_id": self.location_id,
            "grand_total": str(self.grand_total),
            "tax_breakdown": [group.to_dict() for group in self.tax_breakdown],
            "transaction_ids": self.transaction_ids,
            "quote": self.quote.to_dict(),
        }


def parse_checkout_items(payload) -> list[CheckoutItem]:
    """Turn a JSON cart (list of {product_id, quantity, line_discount}) into CheckoutItems."""
    if not isinstance(payload, list) or not payload:
        raise InvalidInput("items must be a non-empty list")

    items = []
    for index, raw in enumerate(payload):
        if not isinstance(raw, dict):
            raise InvalidInput(f"Line {index + 1}: expected an object")
        product_id = raw.get("product_id")
        quantity = raw.get("quantity")
        if isinstance(product_id, bool) or not isinstance(product_id, int):
            raise InvalidInput(f"Line {index + 1}: product_id must be an integer")
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise InvalidInput(f"Line {index + 1}: quantity must be an integer")
        items.append(
            CheckoutItem(
                product_id=product_id,
                quantity=quantity,
                line_discount=Discount.from_dict(raw.get("line_discount"), f"lines[{index}].line_discount"),
            )
        )
    return items


def _build_cart(session: Session, items: list[CheckoutItem]) -> list[CartLine]:
    lines = []
    for item in items:
        product = get_product(session, item.product_id)
        lines.append(
            CartLine(
                product_id=product.id,
                unit_price=product.price,
                quantity=item.quantity,
                gst_rate=product.gst_rate,
                line_discount=item.line_discount,
            )
        )
    return lines


def quote(session: Session, items: list[CheckoutItem], bill_discount: BillDiscount | None = None) -> CheckoutQuote:
    """Price a cart with catalog prices without touching stock."""
    if not items:
        raise InvalidInput("Cart is empty")
    return price_cart(_build_cart(session, items), bill_discount)


def _append_sale_line(
    session: Session,
    line: PricedLine,
    *,
    location_id: int,
    invoice_id: str,
    customer: Customer,
) -> Transaction:
    tx = Transaction(
        type=TX_TYPE_SALE,
        product_id=line.product_id,
        from_location_id=location_id,
        to_location_id=None,
        quantity=line.quantity,
        status=TX_STATUS_COMPLETED,
        sale_price=line.effective_unit_price,
        customer_name=customer.name,
        customer_phone=customer.phone,
        invoice_id=invoice_id,
    )
    session.add(tx)
    session.flush()
    return tx


def checkout(
    session: Session,
    items: list[CheckoutItem],
    bill_discount: BillDiscount | None,
    location_id: int,
    customer: Customer | None = None,
    *,
    timeout: float | None = None,
) -> CheckoutResult:
    """
    Execute a checkout: price the cart, decrement stock per line and append
    one SALE transaction per line under a single invoice_id.

    Returns:
        CheckoutResult: invoice id, grand total, tax breakdown, priced lines

    Raises:
        InvalidInput: malformed cart or discount
        NotFound: unknown location or product
        InsufficientStock: any line short; nothing persisted
        ConcurrencyConflict: could not serialize in time; safe to retry
        PersistenceFailure: log write failed; reserved stock restored
    """
    if not items:
        raise InvalidInput("Cart is empty")

    location_id = get_location(session, location_id).id
    customer = customer or Customer()
    priced = quote(session, items, bill_discount)
    invoice_id = str(uuid.uuid4())

    def _op(remaining):
        logger.info("Checkout %s %s: %s lines at location %s", invoice_id, CHECKOUT_STARTED, len(priced.lines), location_id)
        apply_lock_timeout(session, remaining)

        try:
            for line in priced.lines:
                adjust_quantity(session, line.product_id, location_id, -line.quantity)
        except LedgerError:
            session.rollback()
            logger.info("Checkout %s %s: stock unavailable", invoice_id, CHECKOUT_ABORTED)
            raise

        logger.debug("Checkout %s %s", invoice_id, CHECKOUT_STOCK_RESERVED)

        try:
            rows = [
                _append_sale_line(
                    session,
                    line,
                    location_id=location_id,
                    invoice_id=invoice_id,
                    customer=customer,
                )
                for line in priced.lines
            ]
            transaction_ids = [row.id for row in rows]
            session.commit()
        except (OperationalError, StaleDataError):
            # run_with_retry rolls the reservation back before retrying
            logger.warning("Checkout %s %s: store busy, retrying", invoice_id, CHECKOUT_ROLLED_BACK)
            raise
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error("Checkout %s %s -> %s: %s", invoice_id, CHECKOUT_ROLLED_BACK, CHECKOUT_ABORTED, exc)
            raise PersistenceFailure(
                "Checkout failed while recording the sale; stock has been restored",
                details={"invoice_id": invoice_id},
            ) from exc

        logger.info("Checkout %s %s: grand total %s", invoice_id, CHECKOUT_COMMITTED, priced.grand_total)
        return CheckoutResult(
            invoice_id=invoice_id,
            location_id=location_id,
            quote=priced,
            transaction_ids=transaction_ids,
        )

    return run_with_retry(session, _op, timeout=timeout)
