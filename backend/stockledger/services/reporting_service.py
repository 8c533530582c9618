# Overview: Read-only dashboard, inventory overview and low-stock reporting over the ledger.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Numeric, case, cast, func, select
from sqlalchemy.orm import Session

from ..models import InventoryRecord, Location, Product, Transaction
from ..models.inventory import TX_STATUS_PENDING, TX_TYPE_SALE, TX_TYPE_TRANSFER_OUT
from ..models.locations import LOCATION_TYPE_WAREHOUSE
from ..time_utils import start_of_day, utcnow
from .catalog_service import find_warehouse
from .pricing_service import to_money

DEFAULT_RECENT_LIMIT = 5


def _warehouse_stock_query(session: Session):
    warehouse = find_warehouse(session)
    stock = func.coalesce(InventoryRecord.quantity, 0)
    query = (
        select(Product, stock.label("warehouse_stock"))
        .outerjoin(
            InventoryRecord,
            (InventoryRecord.product_id == Product.id) & (InventoryRecord.location_id == warehouse.id),
        )
        .order_by(Product.name, Product.id)
    )
    return query, stock


def get_inventory_overview(session: Session) -> list[dict]:
    """Every product with its WAREHOUSE stock, by name; never-stocked products show 0."""
    query, _ = _warehouse_stock_query(session)
    return [
        {**product.to_dict(), "warehouse_stock": int(warehouse_stock)}
        for product, warehouse_stock in session.execute(query).all()
    ]


def get_low_stock_products(session: Session) -> list[dict]:
    """
    Products whose WAREHOUSE stock is at or below min_stock_alert.

    Store stock is ignored: the alert drives re-ordering into the warehouse.
    """
    query, stock = _warehouse_stock_query(session)
    rows = session.execute(query.where(stock <= Product.min_stock_alert)).all()

    return [
        {**product.to_dict(), "warehouse_stock": int(warehouse_stock)}
        for product, warehouse_stock in rows
    ]


def get_location_stock_summary(session: Session) -> list[dict]:
    """
    Units on hand and stock value (quantity x selling price) per location.

    Warehouse first, then stores by id. Locations holding nothing report zeros.
    """
    total_stock = func.coalesce(func.sum(InventoryRecord.quantity), 0)
    total_value = cast(
        func.coalesce(func.sum(InventoryRecord.quantity * Product.price), 0),
        Numeric(14, 2),
    )

    rows = session.execute(
        select(Location, total_stock.label("total_stock"), total_value.label("total_value"))
        .outerjoin(InventoryRecord, InventoryRecord.location_id == Location.id)
        .outerjoin(Product, Product.id == InventoryRecord.product_id)
        .group_by(Location.id)
        .order_by(case((Location.type == LOCATION_TYPE_WAREHOUSE, 0), else_=1), Location.id)
    ).all()

    return [
        {
            **location.to_dict(),
            "total_stock": int(stock),
            "total_value": str(to_money(value)),
        }
        for location, stock, value in rows
    ]


def get_recent_movements(session: Session, limit: int = DEFAULT_RECENT_LIMIT) -> list[dict]:
    """Latest transactions of every type, newest first, with location names."""
    rows = (
        session.query(Transaction)
        .order_by(Transaction.created_at.desc(), Transaction.id.desc())
        .limit(limit)
        .all()
    )
    return [
        {
            **tx.to_dict(),
            "from_location_name": tx.from_location.name if tx.from_location else None,
            "to_location_name": tx.to_location.name if tx.to_location else None,
        }
        for tx in rows
    ]


def get_dashboard_summary(session: Session, now: datetime | None = None) -> dict:
    """Today's sales (UTC day), low-stock count, pending transfers and catalog size."""
    since = start_of_day(now or utcnow())

    sales = session.execute(
        select(
            func.count(Transaction.id),
            func.count(func.distinct(Transaction.invoice_id)),
            cast(func.coalesce(func.sum(Transaction.quantity * Transaction.sale_price), 0), Numeric(14, 4)),
        ).where(
            Transaction.type == TX_TYPE_SALE,
            Transaction.created_at >= since,
        )
    ).one()
    line_count, invoice_count, amount = sales

    pending = session.execute(
        select(func.count(Transaction.id)).where(
            Transaction.type == TX_TYPE_TRANSFER_OUT,
            Transaction.status == TX_STATUS_PENDING,
        )
    ).scalar_one()

    product_count = session.execute(select(func.count(Product.id))).scalar_one()

    return {
        "since": since.isoformat() + "Z",
        "sales_today": str(to_money(amount)),
        "sales_lines_today": int(line_count),
        "invoices_today": int(invoice_count),
        "low_stock_items": len(get_low_stock_products(session)),
        "pending_transfers": int(pending),
        "active_products": int(product_count),
    }
