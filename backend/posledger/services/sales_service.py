"""
Sales Service - all-or-nothing sale processing

WHY: A sale is one unit of work. The header, its items, the stock decrements
and the 'out' movements are written in a single transaction, and the
availability check runs on product rows locked inside that transaction, so
two cashiers selling the last unit cannot both succeed.

Flow:
1. Validate the cart before touching the database for writes
2. Merge duplicate product lines
3. BEGIN IMMEDIATE (SQLite) / lock rows FOR UPDATE (PostgreSQL), ascending id
4. Re-check stock on the locked rows, write everything, commit
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from flask import current_app

from ..errors import InsufficientStock, InvalidRequest, returns_result
from ..extensions import db
from ..models import Customer, Sale, SaleItem
from ..models.inventory import MOVEMENT_OUT
from ..models.sales import PAYMENT_METHODS, SALE_STATUS_COMPLETED
from ..quantities import (
    DecimalFieldError,
    ZERO_MONEY,
    apply_rate_bps,
    fmt_money,
    fmt_quantity,
    line_total,
    normalize_money,
    normalize_quantity,
    to_money,
    to_quantity,
)
from ..time_utils import to_utc_z, utcnow
from .concurrency import begin_write_transaction, run_with_retry
from .inventory_service import apply_movement, lock_products
from .tenant_service import get_scoped, get_user, require_store, scoped_query


@dataclass(frozen=True)
class LineItem:
    product_id: int
    quantity: Decimal
    unit_price: Decimal | None = None


@dataclass(frozen=True)
class ReceiptLine:
    sale_item_id: int
    product_id: int
    product_name: str
    quantity: Decimal
    unit_price: Decimal
    total: Decimal
    movement_id: int

    def to_dict(self) -> dict:
        return {
            "sale_item_id": self.sale_item_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": fmt_quantity(self.quantity),
            "unit_price": fmt_money(self.unit_price),
            "total": fmt_money(self.total),
            "movement_id": self.movement_id,
        }


@dataclass(frozen=True)
class SaleReceipt:
    """Committed sale, detached from the session so it outlives the request."""
    sale_id: int
    store_id: int
    cashier_id: int
    customer_id: int | None
    subtotal: Decimal
    tax: Decimal
    discount: Decimal
    total: Decimal
    payment_method: str
    status: str
    sale_date: datetime
    lines: tuple[ReceiptLine, ...]

    def to_dict(self) -> dict:
        return {
            "id": self.sale_id,
            "store_id": self.store_id,
            "user_id": self.cashier_id,
            "customer_id": self.customer_id,
            "subtotal": fmt_money(self.subtotal),
            "tax": fmt_money(self.tax),
            "discount": fmt_money(self.discount),
            "total": fmt_money(self.total),
            "payment_method": self.payment_method,
            "status": self.status,
            "sale_date": to_utc_z(self.sale_date),
            "items": [line.to_dict() for line in self.lines],
        }


def _parse_line(raw, index: int) -> LineItem:
    if isinstance(raw, LineItem):
        raw = {"product_id": raw.product_id, "quantity": raw.quantity, "unit_price": raw.unit_price}
    if not isinstance(raw, dict):
        raise InvalidRequest("Line item must be an object", details={"line": index})

    product_id = raw.get("product_id")
    if isinstance(product_id, bool) or not isinstance(product_id, int):
        raise InvalidRequest("product_id must be an integer", details={"line": index})

    try:
        qty = to_quantity(raw.get("quantity"), "quantity")
    except DecimalFieldError as exc:
        raise InvalidRequest(str(exc), details={"line": index, "field": exc.field})
    if qty <= 0:
        raise InvalidRequest("quantity must be greater than zero", details={"line": index})

    unit_price = raw.get("unit_price")
    if unit_price is not None:
        try:
            unit_price = to_money(unit_price, "unit_price")
        except DecimalFieldError as exc:
            raise InvalidRequest(str(exc), details={"line": index, "field": exc.field})
        if unit_price < 0:
            raise InvalidRequest("unit_price must be >= 0", details={"line": index})

    return LineItem(product_id=product_id, quantity=qty, unit_price=unit_price)


def _merge_lines(lines: list[LineItem]) -> list[LineItem]:
    """Sum quantities of repeated products, keeping first-seen order."""
    merged: dict[int, LineItem] = {}
    for line in lines:
        seen = merged.get(line.product_id)
        if seen is None:
            merged[line.product_id] = line
            continue
        if seen.unit_price != line.unit_price:
            raise InvalidRequest(
                "Repeated product lines must carry the same unit_price",
                details={"product_id": line.product_id},
            )
        merged[line.product_id] = LineItem(line.product_id, seen.quantity + line.quantity, seen.unit_price)
    return list(merged.values())


def _optional_money(value, field: str) -> Decimal | None:
    if value is None:
        return None
    try:
        amount = to_money(value, field)
    except DecimalFieldError as exc:
        raise InvalidRequest(str(exc), details={"field": exc.field})
    if amount < 0:
        raise InvalidRequest(f"{field} must be >= 0", details={"field": field})
    return amount


@returns_result
def process_sale(
    store_id: int,
    cashier_id: int,
    line_items,
    *,
    payment_method: str = "cash",
    customer_id: int | None = None,
    discount=0,
    tax=None,
) -> SaleReceipt:
    """
    Validate a cart and record it as one completed sale.

    Returns Result[SaleReceipt]. On InvalidRequest, InsufficientStock or Busy
    nothing has been written.
    """
    if payment_method not in PAYMENT_METHODS:
        raise InvalidRequest(
            f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}",
            details={"field": "payment_method"},
        )
    if not isinstance(line_items, (list, tuple)) or not line_items:
        raise InvalidRequest("Cart is empty")
    for field, value in (("cashier_id", cashier_id), ("customer_id", customer_id)):
        if value is not None and (isinstance(value, bool) or not isinstance(value, int)):
            raise InvalidRequest(f"{field} must be an integer", details={"field": field})

    lines = _merge_lines([_parse_line(raw, i) for i, raw in enumerate(line_items)])
    discount_amount = _optional_money(discount, "discount") or ZERO_MONEY
    tax_override = _optional_money(tax, "tax")

    require_store(store_id, error=InvalidRequest)
    if get_user(cashier_id) is None:
        raise InvalidRequest("Unknown cashier", details={"cashier_id": cashier_id})
    if customer_id is not None and get_scoped(Customer, store_id, customer_id) is None:
        raise InvalidRequest("Unknown customer", details={"customer_id": customer_id})

    def _op():
        begin_write_transaction()
        store = require_store(store_id, error=InvalidRequest)
        locked = lock_products(store_id, [line.product_id for line in lines])

        for line in lines:
            product = locked.get(line.product_id)
            if product is None or not product.is_active:
                raise InvalidRequest("Unknown product", details={"product_id": line.product_id})

        shortages = []
        for line in lines:
            product = locked[line.product_id]
            available = normalize_quantity(product.stock)
            if line.quantity > available:
                shortages.append({
                    "product_id": product.id,
                    "product_name": product.name,
                    "available": str(available),
                    "requested": str(line.quantity),
                })
        if shortages:
            first = shortages[0]
            raise InsufficientStock(
                f"Insufficient stock for {first['product_name']}",
                details={**first, "items": shortages},
            )

        priced = []
        for line in lines:
            product = locked[line.product_id]
            unit_price = line.unit_price if line.unit_price is not None else normalize_money(product.selling_price)
            priced.append((product, line.quantity, unit_price, line_total(line.quantity, unit_price)))

        subtotal = sum((row[3] for row in priced), ZERO_MONEY)
        if discount_amount > subtotal:
            raise InvalidRequest("discount cannot exceed subtotal", details={"field": "discount"})
        tax_amount = tax_override if tax_override is not None else apply_rate_bps(subtotal, store.tax_rate_bps or 0)
        total = subtotal - discount_amount + tax_amount

        sale = Sale(
            store_id=store_id,
            user_id=cashier_id,
            customer_id=customer_id,
            subtotal=subtotal,
            tax=tax_amount,
            discount=discount_amount,
            total=total,
            payment_method=payment_method,
            status=SALE_STATUS_COMPLETED,
            sale_date=utcnow(),
        )
        db.session.add(sale)
        db.session.flush()

        receipt_lines = []
        for product, qty, unit_price, amount in priced:
            item = SaleItem(
                sale_id=sale.id,
                product_id=product.id,
                quantity=qty,
                unit_price=unit_price,
                total=amount,
            )
            db.session.add(item)
            movement = apply_movement(
                product,
                movement_type=MOVEMENT_OUT,
                quantity=qty,
                reason=f"Sale #{sale.id}",
                user_id=cashier_id,
                sale_id=sale.id,
            )
            receipt_lines.append(ReceiptLine(
                sale_item_id=item.id,
                product_id=product.id,
                product_name=product.name,
                quantity=qty,
                unit_price=unit_price,
                total=amount,
                movement_id=movement.id,
            ))

        receipt = SaleReceipt(
            sale_id=sale.id,
            store_id=store_id,
            cashier_id=cashier_id,
            customer_id=customer_id,
            subtotal=subtotal,
            tax=tax_amount,
            discount=discount_amount,
            total=total,
            payment_method=payment_method,
            status=SALE_STATUS_COMPLETED,
            sale_date=sale.sale_date,
            lines=tuple(receipt_lines),
        )
        db.session.commit()
        return receipt

    receipt = run_with_retry(_op)
    current_app.logger.info(
        "Sale %s committed: store=%s lines=%s total=%s",
        receipt.sale_id, store_id, len(receipt.lines), fmt_money(receipt.total),
    )
    return receipt


def get_sale(store_id: int, sale_id: int) -> Sale | None:
    return get_scoped(Sale, store_id, sale_id)


def get_sale_items(store_id: int, sale_id: int) -> list[SaleItem] | None:
    """Items of a sale; None when the sale is absent or owned by another store."""
    sale = get_sale(store_id, sale_id)
    if sale is None:
        return None
    return db.session.query(SaleItem).filter(SaleItem.sale_id == sale.id).order_by(SaleItem.id.asc()).all()


def list_sales(
    store_id: int,
    start: datetime | None = None,
    end: datetime | None = None,
    cashier_id: int | None = None,
) -> list[Sale]:
    """Sales newest first; start is inclusive, end exclusive."""
    query = scoped_query(Sale, store_id)
    if start is not None:
        query = query.filter(Sale.sale_date >= start)
    if end is not None:
        query = query.filter(Sale.sale_date < end)
    if cashier_id is not None:
        query = query.filter(Sale.user_id == cashier_id)
    return query.order_by(Sale.sale_date.desc(), Sale.id.desc()).all()
