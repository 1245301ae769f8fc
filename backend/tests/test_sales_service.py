# Overview: Pytest coverage for the all-or-nothing sale processor.

"""
Sale Processor Tests

Checks the unit-of-work guarantees of process_sale:
1. A committed sale decrements each product by exactly its quantity
2. Exactly one 'out' movement per line, referencing the sale
3. Any shortage or invalid input leaves stock, sales and movements untouched
4. Totals are computed in Decimal with half-up rounding
"""

from decimal import Decimal

import pytest

from conftest import make_product, make_store, make_user
from posledger.errors import ImmutableRecordError
from posledger.extensions import db
from posledger.models import InventoryMovement, Sale, SaleItem
from posledger.models.auth import ROLE_CASHIER
from posledger.services import inventory_service, products_service, sales_service


def _movement_count():
    return db.session.query(InventoryMovement).count()


class TestSuccessfulSale:

    def test_single_line_sale(self, db_session, store_a, cashier_a, product_a):
        """Cart [P1 x3 @ 10.00] against stock 5 -> total 30.00, stock 2.000."""
        result = sales_service.process_sale(
            store_a.id,
            cashier_a.id,
            [{"product_id": product_a.id, "quantity": 3, "unit_price": "10.00"}],
        )

        assert result.ok, result.error
        receipt = result.value
        assert receipt.total == Decimal("30.00")
        assert receipt.to_dict()["total"] == "30.00"
        assert receipt.status == "completed"

        product = db_session.get(type(product_a), product_a.id)
        assert product.stock == Decimal("2.000")

        movements = (
            db_session.query(InventoryMovement)
            .filter_by(product_id=product_a.id, type="out")
            .all()
        )
        assert len(movements) == 1
        assert movements[0].quantity == Decimal("3.000")
        assert movements[0].sale_id == receipt.sale_id
        assert movements[0].reason == f"Sale #{receipt.sale_id}"
        assert movements[0].user_id == cashier_a.id

    def test_multi_line_sale_decrements_each_product(self, db_session, store_a, cashier_a, product_a):
        second = make_product(store_a, cashier_a, "SKU-A2", stock="10", price="2.50")

        result = sales_service.process_sale(
            store_a.id,
            cashier_a.id,
            [
                {"product_id": product_a.id, "quantity": "1"},
                {"product_id": second.id, "quantity": "4"},
            ],
        )

        assert result.ok
        assert result.value.subtotal == Decimal("20.00")
        assert len(result.value.lines) == 2
        assert db_session.get(type(product_a), product_a.id).stock == Decimal("4.000")
        assert db_session.get(type(second), second.id).stock == Decimal("6.000")

        items = sales_service.get_sale_items(store_a.id, result.value.sale_id)
        assert [item.quantity for item in items] == [Decimal("1.000"), Decimal("4.000")]

    def test_default_price_is_selling_price(self, db_session, store_a, cashier_a, product_a):
        result = sales_service.process_sale(
            store_a.id, cashier_a.id, [{"product_id": product_a.id, "quantity": 2}]
        )
        assert result.ok
        assert result.value.lines[0].unit_price == Decimal("10.00")
        assert result.value.total == Decimal("20.00")

    def test_fractional_quantity_rounds_half_up(self, db_session, store_a, cashier_a):
        bulk = make_product(store_a, cashier_a, "BULK-1", stock="10", price="3.35")
        result = sales_service.process_sale(
            store_a.id, cashier_a.id, [{"product_id": bulk.id, "quantity": "1.5"}]
        )
        assert result.ok
        # 1.5 * 3.35 = 5.025 -> 5.03
        assert result.value.total == Decimal("5.03")
        assert db_session.get(type(bulk), bulk.id).stock == Decimal("8.500")

    def test_duplicate_lines_are_merged(self, db_session, store_a, cashier_a, product_a):
        result = sales_service.process_sale(
            store_a.id,
            cashier_a.id,
            [
                {"product_id": product_a.id, "quantity": 2},
                {"product_id": product_a.id, "quantity": 3},
            ],
        )
        assert result.ok
        assert len(result.value.lines) == 1
        assert result.value.lines[0].quantity == Decimal("5.000")
        assert db_session.get(type(product_a), product_a.id).stock == Decimal("0.000")

    def test_store_tax_rate_applied(self, db_session, owner):
        taxed = make_store(owner, "Taxed", tax_rate_bps=1000)
        cashier = make_user("taxed_cashier", ROLE_CASHIER, store_id=taxed.id)
        product = make_product(taxed, cashier, "TAX-1", stock="5", price="10.00")

        result = sales_service.process_sale(
            taxed.id, cashier.id, [{"product_id": product.id, "quantity": 2}], discount="5.00"
        )
        assert result.ok
        receipt = result.value
        assert receipt.subtotal == Decimal("20.00")
        assert receipt.tax == Decimal("2.00")
        assert receipt.discount == Decimal("5.00")
        assert receipt.total == Decimal("17.00")

    def test_explicit_tax_overrides_store_rate(self, db_session, store_a, cashier_a, product_a):
        result = sales_service.process_sale(
            store_a.id, cashier_a.id, [{"product_id": product_a.id, "quantity": 1}], tax="0.75"
        )
        assert result.ok
        assert result.value.total == Decimal("10.75")

    def test_ledger_reconciles_after_sale(self, db_session, store_a, cashier_a, product_a):
        sales_service.process_sale(store_a.id, cashier_a.id, [{"product_id": product_a.id, "quantity": 4}])
        assert inventory_service.ledger_balance(store_a.id, product_a.id) == Decimal("1.000")
        assert inventory_service.check_reconciliation(store_a.id) == []


class TestRejectedSale:

    def test_insufficient_stock_writes_nothing(self, db_session, store_a, cashier_a, product_a):
        scarce = make_product(store_a, cashier_a, "SKU-A2", stock="2")
        movements_before = _movement_count()

        result = sales_service.process_sale(
            store_a.id,
            cashier_a.id,
            [
                {"product_id": product_a.id, "quantity": 3},
                {"product_id": scarce.id, "quantity": 10},
            ],
        )

        assert not result.ok
        assert result.kind == "insufficient_stock"
        assert result.error.details["product_id"] == scarce.id
        assert result.error.details["available"] == "2.000"
        assert result.error.details["requested"] == "10.000"

        assert db_session.get(type(product_a), product_a.id).stock == Decimal("5.000")
        assert db_session.get(type(scarce), scarce.id).stock == Decimal("2.000")
        assert db_session.query(Sale).count() == 0
        assert db_session.query(SaleItem).count() == 0
        assert _movement_count() == movements_before

    def test_merged_demand_over_stock_is_rejected(self, db_session, store_a, cashier_a, product_a):
        result = sales_service.process_sale(
            store_a.id,
            cashier_a.id,
            [
                {"product_id": product_a.id, "quantity": 3},
                {"product_id": product_a.id, "quantity": 3},
            ],
        )
        assert result.kind == "insufficient_stock"
        assert result.error.details["requested"] == "6.000"

    @pytest.mark.parametrize("items", [
        [],
        None,
        [{"product_id": 1, "quantity": 0}],
        [{"product_id": 1, "quantity": "-1"}],
        [{"product_id": 1, "quantity": "abc"}],
        [{"product_id": 1, "quantity": 1.5}],
        [{"product_id": "1", "quantity": 1}],
        [{"product_id": 1, "quantity": 1, "unit_price": "-2.00"}],
    ])
    def test_malformed_cart_is_invalid(self, db_session, store_a, cashier_a, product_a, items):
        result = sales_service.process_sale(store_a.id, cashier_a.id, items)
        assert result.kind == "invalid_request"
        assert db_session.query(Sale).count() == 0

    @pytest.mark.parametrize("customer_id", [{"x": 1}, "7", 1.0, True])
    def test_malformed_customer_id_is_invalid(self, db_session, store_a, cashier_a, product_a, customer_id):
        result = sales_service.process_sale(
            store_a.id, cashier_a.id, [{"product_id": product_a.id, "quantity": 1}], customer_id=customer_id
        )
        assert result.kind == "invalid_request"
        assert result.error.details["field"] == "customer_id"
        assert db_session.query(Sale).count() == 0

    def test_unknown_payment_method(self, db_session, store_a, cashier_a, product_a):
        result = sales_service.process_sale(
            store_a.id, cashier_a.id, [{"product_id": product_a.id, "quantity": 1}], payment_method="barter"
        )
        assert result.kind == "invalid_request"

    def test_unknown_product(self, db_session, store_a, cashier_a, product_a):
        result = sales_service.process_sale(
            store_a.id, cashier_a.id, [{"product_id": 99999, "quantity": 1}]
        )
        assert result.kind == "invalid_request"
        assert result.error.details["product_id"] == 99999

    def test_inactive_product_cannot_be_sold(self, db_session, store_a, cashier_a, product_a):
        assert products_service.deactivate_product(store_a.id, product_a.id).ok

        result = sales_service.process_sale(
            store_a.id, cashier_a.id, [{"product_id": product_a.id, "quantity": 1}]
        )
        assert result.kind == "invalid_request"

    def test_unknown_store_and_cashier(self, db_session, store_a, cashier_a, product_a):
        line = [{"product_id": product_a.id, "quantity": 1}]
        assert sales_service.process_sale(99999, cashier_a.id, line).kind == "invalid_request"
        assert sales_service.process_sale(store_a.id, 99999, line).kind == "invalid_request"

    def test_unknown_customer(self, db_session, store_a, cashier_a, product_a):
        result = sales_service.process_sale(
            store_a.id, cashier_a.id, [{"product_id": product_a.id, "quantity": 1}], customer_id=4242
        )
        assert result.kind == "invalid_request"

    def test_discount_above_subtotal(self, db_session, store_a, cashier_a, product_a):
        result = sales_service.process_sale(
            store_a.id, cashier_a.id, [{"product_id": product_a.id, "quantity": 1}], discount="10.01"
        )
        assert result.kind == "invalid_request"
        assert db_session.get(type(product_a), product_a.id).stock == Decimal("5.000")

    def test_conflicting_prices_for_repeated_product(self, db_session, store_a, cashier_a, product_a):
        result = sales_service.process_sale(
            store_a.id,
            cashier_a.id,
            [
                {"product_id": product_a.id, "quantity": 1, "unit_price": "10.00"},
                {"product_id": product_a.id, "quantity": 1, "unit_price": "9.00"},
            ],
        )
        assert result.kind == "invalid_request"


class TestSaleRecords:

    def test_committed_sale_is_immutable(self, db_session, store_a, cashier_a, product_a):
        receipt = sales_service.process_sale(
            store_a.id, cashier_a.id, [{"product_id": product_a.id, "quantity": 1}]
        ).unwrap()

        sale = sales_service.get_sale(store_a.id, receipt.sale_id)
        sale.total = Decimal("0.00")
        with pytest.raises(ImmutableRecordError):
            db_session.flush()
        db_session.rollback()

    def test_list_sales_filters_by_cashier(self, db_session, store_a, cashier_a, product_a):
        other = make_user("cashier_a2", ROLE_CASHIER, store_id=store_a.id)
        sales_service.process_sale(store_a.id, cashier_a.id, [{"product_id": product_a.id, "quantity": 1}])
        sales_service.process_sale(store_a.id, other.id, [{"product_id": product_a.id, "quantity": 1}])

        assert len(sales_service.list_sales(store_a.id)) == 2
        mine = sales_service.list_sales(store_a.id, cashier_id=other.id)
        assert len(mine) == 1
        assert mine[0].user_id == other.id

    def test_get_sale_items_for_missing_sale(self, db_session, store_a):
        assert sales_service.get_sale_items(store_a.id, 12345) is None
