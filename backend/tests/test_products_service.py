# Overview: Pytest coverage for product master data, catalog lookups and customers.

from decimal import Decimal

from conftest import make_product
from posledger.services import customers_service, products_service


class TestProducts:

    def test_create_product(self, db_session, store_a, cashier_a):
        result = products_service.create_product(
            store_a.id,
            {
                "sku": "COF-250",
                "barcode": "8991234567890",
                "name": "Coffee 250g",
                "purchase_price": "18000",
                "selling_price": "25000.00",
                "stock": "12",
            },
            cashier_a.id,
        )
        assert result.ok, result.error
        product = result.value
        assert product.stock == Decimal("12.000")
        assert product.min_stock_level == Decimal("5.000")
        assert product.to_dict()["selling_price"] == "25000.00"

        assert products_service.get_product_by_sku(store_a.id, "COF-250").id == product.id
        assert products_service.get_product_by_barcode(store_a.id, "8991234567890").id == product.id

    def test_missing_required_fields(self, db_session, store_a, cashier_a):
        result = products_service.create_product(store_a.id, {"sku": "X-1"}, cashier_a.id)
        assert result.kind == "invalid_request"

    def test_negative_price_rejected(self, db_session, store_a, cashier_a):
        result = products_service.create_product(
            store_a.id,
            {"sku": "NEG-1", "name": "Neg", "purchase_price": "1.00", "selling_price": "-1.00"},
            cashier_a.id,
        )
        assert result.kind == "invalid_request"

    def test_duplicate_sku_in_same_store(self, db_session, store_a, cashier_a, product_a):
        result = products_service.create_product(
            store_a.id,
            {"sku": product_a.sku, "name": "Dup", "purchase_price": "1.00", "selling_price": "2.00"},
            cashier_a.id,
        )
        assert result.kind == "invalid_request"
        assert result.error.details["field"] == "sku"

    def test_same_sku_allowed_in_other_store(self, db_session, store_a, product_a, store_b, cashier_b):
        other = make_product(store_b, cashier_b, product_a.sku)
        assert other.store_id == store_b.id

    def test_unknown_category_rejected(self, db_session, store_a, cashier_a):
        result = products_service.create_product(
            store_a.id,
            {"sku": "CAT-1", "name": "Cat", "purchase_price": "1.00", "selling_price": "2.00", "category_id": 999},
            cashier_a.id,
        )
        assert result.kind == "invalid_request"

    def test_create_with_category_and_supplier(self, db_session, store_a, cashier_a):
        category = products_service.create_category(store_a.id, {"name": "Beverages"}).unwrap()
        supplier = products_service.create_supplier(store_a.id, {"name": "PT Sumber Air"}).unwrap()
        product = make_product(store_a, cashier_a, "TEA-1", category_id=category.id, supplier_id=supplier.id)
        assert product.category_id == category.id
        assert product.supplier_id == supplier.id
        assert [c.name for c in products_service.list_categories(store_a.id)] == ["Beverages"]
        assert [s.name for s in products_service.list_suppliers(store_a.id)] == ["PT Sumber Air"]

    def test_duplicate_category_name(self, db_session, store_a):
        assert products_service.create_category(store_a.id, {"name": "Snacks"}).ok
        assert products_service.create_category(store_a.id, {"name": "Snacks"}).kind == "invalid_request"

    def test_update_product(self, db_session, store_a, product_a):
        result = products_service.update_product(store_a.id, product_a.id, {"selling_price": "12.50", "name": "Renamed"})
        assert result.ok
        assert result.value.selling_price == Decimal("12.50")
        assert result.value.name == "Renamed"

    def test_stock_is_not_patchable(self, db_session, store_a, product_a):
        result = products_service.update_product(store_a.id, product_a.id, {"stock": "100"})
        assert result.kind == "invalid_request"
        assert products_service.get_product(store_a.id, product_a.id).stock == Decimal("5.000")

    def test_update_unknown_product(self, db_session, store_a):
        assert products_service.update_product(store_a.id, 99999, {"name": "x"}).kind == "not_found"

    def test_deactivate_hides_from_default_listing(self, db_session, store_a, product_a):
        assert products_service.deactivate_product(store_a.id, product_a.id).ok
        assert products_service.list_products(store_a.id) == []
        assert [p.id for p in products_service.list_products(store_a.id, include_inactive=True)] == [product_a.id]

    def test_unknown_store(self, db_session, cashier_a):
        result = products_service.create_product(
            99999, {"sku": "S", "name": "S", "purchase_price": "1", "selling_price": "1"}, cashier_a.id
        )
        assert result.kind == "not_found"


class TestCustomers:

    def test_create_and_search(self, db_session, store_a):
        created = customers_service.create_customer(
            store_a.id, {"first_name": "Siti", "last_name": "Rahma", "phone": "0812000111"}
        )
        assert created.ok
        customers_service.create_customer(store_a.id, {"first_name": "Budi", "last_name": "Santoso"})

        assert len(customers_service.list_customers(store_a.id)) == 2
        found = customers_service.list_customers(store_a.id, search="rahma")
        assert [c.id for c in found] == [created.value.id]

    def test_update_customer(self, db_session, store_a):
        customer = customers_service.create_customer(store_a.id, {"first_name": "A", "last_name": "B"}).unwrap()
        result = customers_service.update_customer(store_a.id, customer.id, {"loyalty_points": 40})
        assert result.ok
        assert result.value.loyalty_points == 40

    def test_negative_loyalty_points(self, db_session, store_a):
        result = customers_service.create_customer(
            store_a.id, {"first_name": "A", "last_name": "B", "loyalty_points": -1}
        )
        assert result.kind == "invalid_request"
