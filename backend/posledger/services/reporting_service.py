# Overview: Read-only aggregates over sales, products and cash-flow entries.

from __future__ import annotations

from datetime import date, timedelta, timezone
from decimal import Decimal

from sqlalchemy import func

from ..errors import InvalidRequest, returns_result
from ..models import CashFlowEntry, Customer, Product, Sale
from ..models.cashflow import CASHFLOW_EXPENSE, CASHFLOW_INCOME, PAYMENT_UNPAID
from ..quantities import ZERO_MONEY, fmt_money, normalize_money
from ..time_utils import local_day_window, local_today, store_zone
from .tenant_service import require_store, scoped_query

# Longest range sales_summary will bucket in one call
MAX_SUMMARY_DAYS = 366


def _sum_money(query) -> Decimal:
    return normalize_money(query.scalar())


def _low_stock_query(store_id: int):
    return scoped_query(Product, store_id).filter(
        Product.is_active.is_(True),
        Product.stock <= Product.min_stock_level,
    )


@returns_result
def daily_stats(store_id: int, day: date | None = None) -> dict:
    """
    Revenue and cash flow for one store-local calendar day (default: today).

    total_income is sales revenue plus manual income entries; net_flow is
    total_income minus expenses.
    """
    store = require_store(store_id)
    day = day or local_today(store.timezone)
    start, end = local_day_window(day, store.timezone)

    sales = scoped_query(Sale, store_id).filter(Sale.sale_date >= start, Sale.sale_date < end)
    total_sales = _sum_money(sales.with_entities(func.coalesce(func.sum(Sale.total), 0)))
    sales_count = sales.count()

    entries = scoped_query(CashFlowEntry, store_id).filter(
        CashFlowEntry.date >= start,
        CashFlowEntry.date < end,
    )
    income = _sum_money(
        entries.filter(CashFlowEntry.type == CASHFLOW_INCOME)
        .with_entities(func.coalesce(func.sum(CashFlowEntry.amount), 0))
    )
    expenses = _sum_money(
        entries.filter(CashFlowEntry.type == CASHFLOW_EXPENSE)
        .with_entities(func.coalesce(func.sum(CashFlowEntry.amount), 0))
    )

    total_income = total_sales + income
    return {
        "store_id": store_id,
        "date": day.isoformat(),
        "total_sales": fmt_money(total_sales),
        "sales_count": sales_count,
        "total_income": fmt_money(total_income),
        "total_expenses": fmt_money(expenses),
        "net_flow": fmt_money(total_income - expenses),
    }


@returns_result
def low_stock(store_id: int) -> list[Product]:
    """Active products at or below their reorder threshold, by name."""
    require_store(store_id)
    return _low_stock_query(store_id).order_by(Product.name.asc(), Product.id.asc()).all()


@returns_result
def accounts_receivable(store_id: int) -> list[dict]:
    """
    Unpaid entries grouped by customer, largest balance first.

    Entries without a customer are not receivables and are left out.
    """
    require_store(store_id)
    rows = (
        scoped_query(CashFlowEntry, store_id)
        .join(Customer, Customer.id == CashFlowEntry.customer_id)
        .filter(CashFlowEntry.payment_status == PAYMENT_UNPAID)
        .order_by(CashFlowEntry.date.desc(), CashFlowEntry.id.desc())
        .all()
    )

    groups: dict[int, dict] = {}
    for entry in rows:
        group = groups.get(entry.customer_id)
        if group is None:
            group = groups[entry.customer_id] = {
                "customer_id": entry.customer_id,
                "customer_name": entry.customer.full_name,
                "total": ZERO_MONEY,
                "entries": [],
            }
        group["total"] += normalize_money(entry.amount)
        group["entries"].append(entry.to_dict())

    ordered = sorted(groups.values(), key=lambda g: (-g["total"], g["customer_id"]))
    return [
        {
            "customer_id": g["customer_id"],
            "customer_name": g["customer_name"],
            "total_unpaid": fmt_money(g["total"]),
            "entries": g["entries"],
        }
        for g in ordered
    ]


@returns_result
def dashboard_stats(store_id: int) -> dict:
    store = require_store(store_id)
    start, end = local_day_window(local_today(store.timezone), store.timezone)

    today = scoped_query(Sale, store_id).filter(Sale.sale_date >= start, Sale.sale_date < end)
    return {
        "store_id": store_id,
        "today_sales": fmt_money(_sum_money(today.with_entities(func.coalesce(func.sum(Sale.total), 0)))),
        "orders_today": today.count(),
        "total_products": scoped_query(Product, store_id).filter(Product.is_active.is_(True)).count(),
        "low_stock_count": _low_stock_query(store_id).count(),
        "total_customers": scoped_query(Customer, store_id).count(),
    }


@returns_result
def sales_summary(store_id: int, start: date, end: date) -> dict:
    """
    Sales count and revenue per store-local day, start and end inclusive.

    Days without sales are reported with zeros so the series is contiguous.
    """
    store = require_store(store_id)
    if end < start:
        raise InvalidRequest("end must not be before start")
    if (end - start).days >= MAX_SUMMARY_DAYS:
        raise InvalidRequest(f"range cannot exceed {MAX_SUMMARY_DAYS} days")

    window_start, _ = local_day_window(start, store.timezone)
    _, window_end = local_day_window(end, store.timezone)
    zone = store_zone(store.timezone)

    buckets = {}
    cursor = start
    while cursor <= end:
        buckets[cursor] = {"count": 0, "revenue": ZERO_MONEY}
        cursor += timedelta(days=1)

    rows = (
        scoped_query(Sale, store_id)
        .with_entities(Sale.sale_date, Sale.total)
        .filter(Sale.sale_date >= window_start, Sale.sale_date < window_end)
        .all()
    )
    for sale_date, total in rows:
        # Stored values are UTC; bucket on the store's calendar
        if sale_date.tzinfo is None:
            sale_date = sale_date.replace(tzinfo=timezone.utc)
        local_day = sale_date.astimezone(zone).date()
        bucket = buckets.get(local_day)
        if bucket is None:
            continue
        bucket["count"] += 1
        bucket["revenue"] += normalize_money(total)

    return {
        "store_id": store_id,
        "start": start.isoformat(),
        "end": end.isoformat(),
        "total_sales": fmt_money(sum((b["revenue"] for b in buckets.values()), ZERO_MONEY)),
        "sales_count": sum(b["count"] for b in buckets.values()),
        "days": [
            {"date": day.isoformat(), "sales_count": b["count"], "revenue": fmt_money(b["revenue"])}
            for day, b in buckets.items()
        ],
    }
