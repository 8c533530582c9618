# Overview: Rebuilds invoices from persisted SALE transactions for history and reprint.

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from sqlalchemy.orm import Session

from ..models import Transaction
from ..models.inventory import TX_TYPE_SALE
from ..time_utils import to_utc_z
from .pricing_service import to_money

"""
Invoice reconstruction semantics

- An invoice is the set of SALE rows sharing one invoice_id.
- Rows without an invoice_id (legacy data) are single-line invoices keyed "legacy-<id>".
- total_amount = sum(quantity x sale_price). Only the effective price is stored,
  so subtotal and discount breakdown are NOT recoverable: reprints show totals only.
- customer and location are taken from the first row seen for the group.
"""

DEFAULT_LIMIT = 500


@dataclass
class InvoiceLine:
    transaction_id: int
    product_id: int
    product_name: str | None
    sku: str | None
    hsn_code: str | None
    gst_rate: Decimal | None
    quantity: int
    sale_price: Decimal

    @property
    def line_total(self) -> Decimal:
        return self.sale_price * self.quantity

    def to_dict(self) -> dict:
        return {
            "transaction_id": self.transaction_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "sku": self.sku,
            "hsn_code": self.hsn_code,
            "gst_rate": None if self.gst_rate is None else str(self.gst_rate),
            "quantity": self.quantity,
            "sale_price": str(self.sale_price),
            "line_total": str(to_money(self.line_total)),
        }


@dataclass
class Invoice:
    key: str
    invoice_id: str | None
    date: datetime | None
    customer_name: str | None
    customer_phone: str | None
    location_id: int | None
    location_name: str | None
    lines: list[InvoiceLine] = field(default_factory=list)
    total_amount: Decimal = Decimal("0")
    total_quantity: int = 0

    def matches(self, search: str) -> bool:
        q = search.strip().lower()
        if not q:
            return True
        return any(
            value and q in value.lower()
            for value in (self.customer_name, self.customer_phone, self.invoice_id)
        )

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "invoice_id": self.invoice_id,
            "date": to_utc_z(self.date),
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "location_id": self.location_id,
            "location_name": self.location_name,
            "items": [line.to_dict() for line in self.lines],
            "total_amount": str(to_money(self.total_amount)),
            "total_quantity": self.total_quantity,
        }


def group_invoices(transactions: list[Transaction]) -> list[Invoice]:
    """Partition SALE rows into invoices, newest first."""
    groups: dict[str, Invoice] = {}

    for tx in transactions:
        if tx.type != TX_TYPE_SALE:
            continue

        key = tx.invoice_id or f"legacy-{tx.id}"
        invoice = groups.get(key)
        if invoice is None:
            invoice = Invoice(
                key=key,
                invoice_id=tx.invoice_id,
                date=tx.created_at,
                customer_name=tx.customer_name,
                customer_phone=tx.customer_phone,
                location_id=tx.from_location_id,
                location_name=tx.from_location.name if tx.from_location else None,
            )
            groups[key] = invoice

        product = tx.product
        sale_price = tx.sale_price if tx.sale_price is not None else Decimal("0")
        line = InvoiceLine(
            transaction_id=tx.id,
            product_id=tx.product_id,
            product_name=product.name if product else None,
            sku=product.sku if product else None,
            hsn_code=product.hsn_code if product else None,
            gst_rate=product.gst_rate if product else None,
            quantity=tx.quantity,
            sale_price=sale_price,
        )
        invoice.lines.append(line)
        invoice.total_amount += line.line_total
        invoice.total_quantity += tx.quantity

    return sorted(
        groups.values(),
        key=lambda inv: (inv.date or datetime.min, inv.lines[0].transaction_id),
        reverse=True,
    )


def list_invoices(
    session: Session,
    *,
    location_id: int | None = None,
    search: str | None = None,
    limit: int = DEFAULT_LIMIT,
) -> list[Invoice]:
    """
    Latest invoices, optionally narrowed to one selling location and/or a
    case-insensitive search over customer name, phone and invoice id.

    `limit` bounds the SALE rows scanned, not the invoices returned.
    """
    q = session.query(Transaction).filter(Transaction.type == TX_TYPE_SALE)
    if location_id is not None:
        q = q.filter(Transaction.from_location_id == location_id)
    rows = q.order_by(Transaction.created_at.desc(), Transaction.id.desc()).limit(limit).all()

    invoices = group_invoices(rows)
    if search:
        invoices = [inv for inv in invoices if inv.matches(search)]
    return invoices


def get_invoice(session: Session, invoice_id: str) -> Invoice | None:
    rows = (
        session.query(Transaction)
        .filter(Transaction.type == TX_TYPE_SALE, Transaction.invoice_id == invoice_id)
        .order_by(Transaction.id)
        .all()
    )
    invoices = group_invoices(rows)
    return invoices[0] if invoices else None
