"""
Checkout tests.

Verifies:
- A successful checkout decrements every line and records one SALE row per
  line under a shared invoice id
- Short stock on any line persists nothing
- A failure while recording the sale restores every reserved unit
"""

from decimal import Decimal

import pytest
from sqlalchemy.exc import SQLAlchemyError

from stockledger.errors import ConcurrencyConflict, InsufficientStock, InvalidInput, NotFound, PersistenceFailure
from stockledger.models import Transaction
from stockledger.models.inventory import TX_TYPE_SALE
from stockledger.services import sales_service
from stockledger.services.inventory_service import get_quantity
from stockledger.services.pricing_service import DISCOUNT_FIXED, DISCOUNT_PERCENTAGE, BillDiscount, Discount
from stockledger.services.sales_service import CheckoutItem, Customer


def sale_rows(session):
    return session.query(Transaction).filter_by(type=TX_TYPE_SALE).order_by(Transaction.id).all()


class TestCheckout:

    def test_single_line_with_bill_discount(self, db_session, football, store_a, put_stock):
        put_stock(football, store_a, 5)

        result = sales_service.checkout(
            db_session,
            [CheckoutItem(football.id, 2)],
            BillDiscount(DISCOUNT_PERCENTAGE, Decimal("10")),
            store_a.id,
            Customer(name="Ravi", phone="98450 12345"),
        )

        assert result.grand_total == Decimal("180.00")
        [tax] = result.tax_breakdown
        assert tax.taxable == Decimal("152.54")
        assert tax.gst == Decimal("27.46")
        assert get_quantity(db_session, football.id, store_a.id) == 3

        [row] = sale_rows(db_session)
        assert row.invoice_id == result.invoice_id
        assert row.quantity == 2
        assert row.sale_price == Decimal("90")
        assert row.from_location_id == store_a.id
        assert row.to_location_id is None
        assert row.customer_name == "Ravi"
        assert row.customer_phone == "98450 12345"

    def test_lines_share_one_invoice(self, db_session, football, jersey, store_a, put_stock):
        put_stock(football, store_a, 5)
        put_stock(jersey, store_a, 5)

        result = sales_service.checkout(
            db_session,
            [
                CheckoutItem(football.id, 1),
                CheckoutItem(jersey.id, 2, Discount(DISCOUNT_FIXED, Decimal("50"))),
            ],
            None,
            store_a.id,
        )

        rows = sale_rows(db_session)
        assert [row.id for row in rows] == result.transaction_ids
        assert {row.invoice_id for row in rows} == {result.invoice_id}
        assert sum(row.sale_price * row.quantity for row in rows) == result.grand_total
        assert result.grand_total == Decimal("550.00")
        assert get_quantity(db_session, football.id, store_a.id) == 4
        assert get_quantity(db_session, jersey.id, store_a.id) == 3

    def test_same_product_on_two_lines(self, db_session, football, store_a, put_stock):
        put_stock(football, store_a, 3)

        sales_service.checkout(
            db_session,
            [CheckoutItem(football.id, 1), CheckoutItem(football.id, 2)],
            None,
            store_a.id,
        )

        assert get_quantity(db_session, football.id, store_a.id) == 0

    def test_customer_is_optional(self, db_session, football, store_a, put_stock):
        put_stock(football, store_a, 1)

        sales_service.checkout(db_session, [CheckoutItem(football.id, 1)], None, store_a.id)

        [row] = sale_rows(db_session)
        assert row.customer_name is None
        assert row.customer_phone is None


class TestCheckoutAtomicity:

    def test_short_second_line_persists_nothing(self, db_session, football, jersey, store_a, put_stock):
        put_stock(football, store_a, 5)
        put_stock(jersey, store_a, 1)

        with pytest.raises(InsufficientStock) as exc_info:
            sales_service.checkout(
                db_session,
                [CheckoutItem(football.id, 2), CheckoutItem(jersey.id, 3)],
                None,
                store_a.id,
            )

        assert exc_info.value.product_id == jersey.id
        assert get_quantity(db_session, football.id, store_a.id) == 5
        assert get_quantity(db_session, jersey.id, store_a.id) == 1
        assert sale_rows(db_session) == []

    def test_log_write_failure_restores_stock(self, db_session, football, jersey, store_a, put_stock, monkeypatch):
        put_stock(football, store_a, 5)
        put_stock(jersey, store_a, 5)

        real_append = sales_service._append_sale_line
        calls = []

        def failing_append(session, line, **kwargs):
            calls.append(line.product_id)
            if len(calls) == 2:
                raise SQLAlchemyError("disk full")
            return real_append(session, line, **kwargs)

        monkeypatch.setattr(sales_service, "_append_sale_line", failing_append)

        with pytest.raises(PersistenceFailure):
            sales_service.checkout(
                db_session,
                [CheckoutItem(football.id, 2), CheckoutItem(jersey.id, 1)],
                None,
                store_a.id,
            )

        assert get_quantity(db_session, football.id, store_a.id) == 5
        assert get_quantity(db_session, jersey.id, store_a.id) == 5
        assert sale_rows(db_session) == []

    def test_elapsed_timeout_is_a_no_op(self, db_session, football, store_a, put_stock):
        put_stock(football, store_a, 5)

        with pytest.raises(ConcurrencyConflict):
            sales_service.checkout(
                db_session, [CheckoutItem(football.id, 1)], None, store_a.id, timeout=0
            )

        assert get_quantity(db_session, football.id, store_a.id) == 5
        assert sale_rows(db_session) == []


class TestCheckoutValidation:

    def test_empty_cart(self, db_session, store_a):
        with pytest.raises(InvalidInput):
            sales_service.checkout(db_session, [], None, store_a.id)

    def test_zero_quantity_rejected_before_mutation(self, db_session, football, jersey, store_a, put_stock):
        put_stock(football, store_a, 5)

        with pytest.raises(InvalidInput):
            sales_service.checkout(
                db_session,
                [CheckoutItem(football.id, 1), CheckoutItem(jersey.id, 0)],
                None,
                store_a.id,
            )

        assert get_quantity(db_session, football.id, store_a.id) == 5

    def test_negative_bill_discount(self, db_session, football, store_a, put_stock):
        put_stock(football, store_a, 5)

        with pytest.raises(InvalidInput):
            sales_service.checkout(
                db_session,
                [CheckoutItem(football.id, 1)],
                BillDiscount(DISCOUNT_FIXED, Decimal("-1")),
                store_a.id,
            )

    def test_unknown_product(self, db_session, store_a):
        with pytest.raises(NotFound):
            sales_service.checkout(db_session, [CheckoutItem(9999, 1)], None, store_a.id)

    def test_unknown_location(self, db_session, football):
        with pytest.raises(NotFound):
            sales_service.checkout(db_session, [CheckoutItem(football.id, 1)], None, 9999)


class TestParseItems:

    def test_parses_line_discount(self):
        [item] = sales_service.parse_checkout_items([
            {"product_id": 3, "quantity": 2, "line_discount": {"type": "PERCENTAGE", "value": 15}},
        ])

        assert item.product_id == 3
        assert item.line_discount.type == DISCOUNT_PERCENTAGE
        assert item.line_discount.value == Decimal("15")

    @pytest.mark.parametrize("payload", [None, [], {"product_id": 1}, [{"product_id": "1", "quantity": 1}]])
    def test_rejects_malformed(self, payload):
        with pytest.raises(InvalidInput):
            sales_service.parse_checkout_items(payload)

    def test_customer_blank_fields(self):
        customer = Customer.from_dict({"name": "  ", "phone": " 99 "})

        assert customer.name is None
        assert customer.phone == "99"


class TestQuote:

    def test_quote_does_not_touch_stock(self, db_session, football, store_a, put_stock):
        put_stock(football, store_a, 1)

        priced = sales_service.quote(db_session, [CheckoutItem(football.id, 4)])

        assert priced.grand_total == Decimal("400.00")
        assert get_quantity(db_session, football.id, store_a.id) == 1
