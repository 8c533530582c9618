"""Low-stock and dashboard summary tests."""

from datetime import timedelta
from decimal import Decimal

from stockledger.services import inventory_service, reporting_service, sales_service, transfer_service
from stockledger.services.pricing_service import DISCOUNT_FIXED, Discount
from stockledger.services.sales_service import CheckoutItem
from stockledger.time_utils import utcnow


def test_low_stock_uses_warehouse_quantity(db_session, football, jersey, warehouse, store_a, put_stock):
    # football alert 5, jersey alert 10
    put_stock(football, warehouse, 5)
    put_stock(jersey, warehouse, 11)
    put_stock(jersey, store_a, 1)

    products = reporting_service.get_low_stock_products(db_session)

    assert [(p["sku"], p["warehouse_stock"]) for p in products] == [("FB-001", 5)]


def test_product_never_stocked_is_low(db_session, football, warehouse):
    [product] = reporting_service.get_low_stock_products(db_session)

    assert product["id"] == football.id
    assert product["warehouse_stock"] == 0


def test_dashboard_summary(db_session, football, warehouse, store_a, put_stock):
    put_stock(football, warehouse, 20)
    put_stock(football, store_a, 5)
    sales_service.checkout(db_session, [CheckoutItem(football.id, 2)], None, store_a.id)
    transfer_service.dispatch_transfer(db_session, football.id, 3, store_a.id)

    summary = reporting_service.get_dashboard_summary(db_session)

    assert summary["sales_today"] == "200.00"
    assert summary["sales_lines_today"] == 1
    assert summary["invoices_today"] == 1
    assert summary["pending_transfers"] == 1
    assert summary["active_products"] == 1
    assert summary["low_stock_items"] == 0


def test_dashboard_ignores_earlier_days(db_session, football, store_a, warehouse, put_stock):
    put_stock(football, store_a, 5)
    sales_service.checkout(db_session, [CheckoutItem(football.id, 1)], None, store_a.id)

    summary = reporting_service.get_dashboard_summary(db_session, now=utcnow() + timedelta(days=2))

    assert summary["sales_today"] == "0.00"
    assert summary["invoices_today"] == 0


def test_inventory_overview_lists_every_product(db_session, football, jersey, warehouse, store_a, put_stock):
    put_stock(football, warehouse, 40)
    put_stock(jersey, store_a, 3)

    overview = reporting_service.get_inventory_overview(db_session)

    # store stock does not count towards warehouse_stock
    assert [(p["sku"], p["warehouse_stock"]) for p in overview] == [("FB-001", 40), ("JR-BLU-M", 0)]


def test_location_stock_summary(db_session, football, jersey, warehouse, store_a, store_b, put_stock):
    put_stock(football, warehouse, 20)
    put_stock(jersey, warehouse, 4)
    put_stock(football, store_a, 5)

    summary = reporting_service.get_location_stock_summary(db_session)

    assert [(s["id"], s["total_stock"], s["total_value"]) for s in summary] == [
        (warehouse.id, 24, "3000.00"),
        (store_a.id, 5, "500.00"),
        (store_b.id, 0, "0.00"),
    ]
    assert summary[0]["type"] == "WAREHOUSE"


def test_recent_movements_newest_first(db_session, football, warehouse, store_a, put_stock):
    inventory_service.record_purchase(db_session, football.id, 10)
    transfer_service.dispatch_transfer(db_session, football.id, 4, store_a.id)
    put_stock(football, store_a, 5)
    sales_service.checkout(db_session, [CheckoutItem(football.id, 1)], None, store_a.id)

    recent = reporting_service.get_recent_movements(db_session, limit=2)

    assert [tx["type"] for tx in recent] == ["SALE", "TRANSFER_OUT"]
    assert recent[1]["from_location_name"] == "Central Godown"
    assert recent[1]["to_location_name"] == "Store A"
    assert recent[0]["to_location_name"] is None


def test_sales_today_keeps_sub_cent_prices_exact(db_session, jersey, store_a, put_stock):
    put_stock(jersey, store_a, 3)
    sales_service.checkout(
        db_session,
        [CheckoutItem(jersey.id, 3, Discount(DISCOUNT_FIXED, Decimal("0.01")))],
        None,
        store_a.id,
    )

    summary = reporting_service.get_dashboard_summary(db_session)

    assert summary["sales_today"] == "749.99"
