# Overview: Pytest coverage for read-only aggregates (daily stats, low stock, receivables).

from datetime import date, timedelta

from conftest import make_product
from posledger.services import cashflow_service, customers_service, products_service, reporting_service, sales_service
from posledger.time_utils import local_today


def _sell(store, cashier, product, quantity):
    return sales_service.process_sale(
        store.id, cashier.id, [{"product_id": product.id, "quantity": quantity}]
    ).unwrap()


class TestDailyStats:

    def test_empty_day(self, db_session, store_a):
        stats = reporting_service.daily_stats(store_a.id).unwrap()
        assert stats["total_sales"] == "0.00"
        assert stats["sales_count"] == 0
        assert stats["net_flow"] == "0.00"

    def test_sales_and_entries(self, db_session, store_a, cashier_a, product_a):
        _sell(store_a, cashier_a, product_a, 2)
        _sell(store_a, cashier_a, product_a, 1)
        cashflow_service.create_entry(
            store_a.id,
            {"type": "income", "amount": "5.00", "description": "Service fee", "category": "Pendapatan Jasa/Komisi"},
            cashier_a.id,
        ).unwrap()
        cashflow_service.create_entry(
            store_a.id,
            {"type": "expense", "amount": "12.50", "description": "Electricity", "category": "Biaya operasional"},
            cashier_a.id,
        ).unwrap()

        stats = reporting_service.daily_stats(store_a.id).unwrap()
        assert stats["total_sales"] == "30.00"
        assert stats["sales_count"] == 2
        assert stats["total_income"] == "35.00"
        assert stats["total_expenses"] == "12.50"
        assert stats["net_flow"] == "22.50"
        assert stats["date"] == local_today(store_a.timezone).isoformat()

    def test_repeated_reads_are_identical(self, db_session, store_a, cashier_a, product_a):
        _sell(store_a, cashier_a, product_a, 1)
        first = reporting_service.daily_stats(store_a.id).unwrap()
        second = reporting_service.daily_stats(store_a.id).unwrap()
        assert first == second

    def test_other_day_is_empty(self, db_session, store_a, cashier_a, product_a):
        _sell(store_a, cashier_a, product_a, 1)
        yesterday = local_today(store_a.timezone) - timedelta(days=1)
        stats = reporting_service.daily_stats(store_a.id, yesterday).unwrap()
        assert stats["sales_count"] == 0

    def test_unknown_store(self, db_session):
        assert reporting_service.daily_stats(99999).kind == "not_found"


class TestLowStock:

    def test_at_or_below_threshold(self, db_session, store_a, cashier_a, product_a):
        # product_a: stock 5, default threshold 5
        make_product(store_a, cashier_a, "FULL-1", stock="20")
        make_product(store_a, cashier_a, "LOW-1", stock="1", name="Aaa low")

        names = [p.name for p in reporting_service.low_stock(store_a.id).unwrap()]
        assert names == ["Aaa low", product_a.name]

    def test_inactive_products_excluded(self, db_session, store_a, product_a):
        products_service.deactivate_product(store_a.id, product_a.id)
        assert reporting_service.low_stock(store_a.id).unwrap() == []


class TestAccountsReceivable:

    def test_grouped_by_customer(self, db_session, store_a, cashier_a):
        siti = customers_service.create_customer(store_a.id, {"first_name": "Siti", "last_name": "Rahma"}).unwrap()
        budi = customers_service.create_customer(store_a.id, {"first_name": "Budi", "last_name": "Santoso"}).unwrap()

        def entry(amount, customer=None, status="unpaid"):
            payload = {
                "type": "income",
                "amount": amount,
                "description": "Credit sale",
                "category": "Penjualan",
                "payment_status": status,
            }
            if customer is not None:
                payload["customer_id"] = customer.id
            cashflow_service.create_entry(store_a.id, payload, cashier_a.id).unwrap()

        entry("50.00", siti)
        entry("25.00", siti)
        entry("100.00", budi)
        entry("999.00", budi, status="paid")
        entry("10.00")

        rows = reporting_service.accounts_receivable(store_a.id).unwrap()
        assert [r["customer_id"] for r in rows] == [budi.id, siti.id]
        assert rows[0]["total_unpaid"] == "100.00"
        assert rows[1]["total_unpaid"] == "75.00"
        assert rows[1]["customer_name"] == "Siti Rahma"
        assert len(rows[1]["entries"]) == 2


class TestDashboardAndSummary:

    def test_dashboard(self, db_session, store_a, cashier_a, product_a):
        _sell(store_a, cashier_a, product_a, 1)
        customers_service.create_customer(store_a.id, {"first_name": "A", "last_name": "B"})

        stats = reporting_service.dashboard_stats(store_a.id).unwrap()
        assert stats["today_sales"] == "10.00"
        assert stats["orders_today"] == 1
        assert stats["total_products"] == 1
        assert stats["low_stock_count"] == 1
        assert stats["total_customers"] == 1

    def test_sales_summary_is_contiguous(self, db_session, store_a, cashier_a, product_a):
        _sell(store_a, cashier_a, product_a, 2)
        today = local_today(store_a.timezone)

        summary = reporting_service.sales_summary(store_a.id, today - timedelta(days=2), today).unwrap()
        assert [d["date"] for d in summary["days"]] == [
            (today - timedelta(days=2)).isoformat(),
            (today - timedelta(days=1)).isoformat(),
            today.isoformat(),
        ]
        assert summary["days"][-1]["revenue"] == "20.00"
        assert summary["sales_count"] == 1
        assert summary["total_sales"] == "20.00"

    def test_sales_summary_rejects_bad_ranges(self, db_session, store_a):
        assert reporting_service.sales_summary(store_a.id, date(2026, 3, 2), date(2026, 3, 1)).kind == "invalid_request"
        assert reporting_service.sales_summary(store_a.id, date(2025, 1, 1), date(2026, 3, 1)).kind == "invalid_request"
