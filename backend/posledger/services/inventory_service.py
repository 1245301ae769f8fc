# Overview: Service-layer operations for inventory; encapsulates the stock ledger and its invariants.

# backend/posledger/services/inventory_service.py

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import func

from ..errors import InsufficientStock, InvalidRequest, NotFound, returns_result
from ..extensions import db
from ..models import InventoryMovement, Product
from ..models.inventory import MOVEMENT_IN, MOVEMENT_OUT
from ..quantities import DecimalFieldError, ZERO_QUANTITY, normalize_quantity, to_quantity
from ..time_utils import utcnow
from .concurrency import begin_write_transaction, lock_for_update, run_with_retry
from .tenant_service import get_scoped, get_user, require_store, scoped_query
"""
Inventory Ledger Invariants (authoritative)

Stock model:
- Product.stock is the current level, stored as Numeric(10, 3).
- Every change to Product.stock is written together with exactly one
  InventoryMovement in the same DB transaction (apply_movement is the only
  code path that assigns Product.stock after creation).
- Reconciliation: stock == SUM(+quantity for 'in', -quantity for 'out').
  Opening stock is recorded as an 'in' movement when the product is created.

Business invariants:
- Stock may never go negative (service check + DB check constraint).
- Movements are append-only (ORM listeners refuse update/delete).
- Check-and-change of stock happens on a locked row inside a write
  transaction, never on a snapshot read earlier.
"""


def apply_movement(
    product: Product,
    *,
    movement_type: str,
    quantity: Decimal,
    reason: str,
    user_id: int,
    sale_id: int | None = None,
) -> InventoryMovement:
    """
    Append a movement and update the product's stock total.

    Core logic without locking, retry or commit. The caller must hold the
    product row lock (lock_for_update inside begin_write_transaction).
    """
    if movement_type not in (MOVEMENT_IN, MOVEMENT_OUT):
        raise InvalidRequest("Unknown movement type", details={"type": movement_type})
    if quantity <= 0:
        raise InvalidRequest("Movement quantity must be greater than zero")

    current = normalize_quantity(product.stock)
    if movement_type == MOVEMENT_OUT:
        new_stock = current - quantity
        if new_stock < 0:
            raise InsufficientStock(
                f"Insufficient stock for {product.name}",
                details={
                    "product_id": product.id,
                    "product_name": product.name,
                    "available": str(current),
                    "requested": str(quantity),
                },
            )
    else:
        new_stock = current + quantity

    movement = InventoryMovement(
        store_id=product.store_id,
        product_id=product.id,
        type=movement_type,
        quantity=quantity,
        sale_id=sale_id,
        reason=reason,
        user_id=user_id,
        movement_date=utcnow(),
    )
    db.session.add(movement)
    product.stock = normalize_quantity(new_stock)
    db.session.flush()
    return movement


def lock_products(store_id: int, product_ids) -> dict[int, Product]:
    """
    Lock a set of product rows of one store, in ascending id order.

    A fixed lock order keeps two carts that share products from deadlocking.
    Products outside the store are simply absent from the result.
    """
    locked: dict[int, Product] = {}
    for product_id in sorted(set(product_ids)):
        product = lock_for_update(
            scoped_query(Product, store_id).filter(Product.id == product_id)
        ).first()
        if product is not None:
            locked[product_id] = product
    return locked


def _parse_quantity(value) -> Decimal:
    try:
        return to_quantity(value, "quantity")
    except DecimalFieldError as exc:
        raise InvalidRequest(str(exc), details={"field": exc.field})


def _post_adjustment(store_id: int, product_id: int, qty: Decimal, reason: str, actor_id: int):
    if not reason or not str(reason).strip():
        raise InvalidRequest("reason is required")
    if get_user(actor_id) is None:
        raise InvalidRequest("Unknown actor", details={"actor_id": actor_id})

    def _op():
        begin_write_transaction()
        require_store(store_id)
        product = lock_products(store_id, [product_id]).get(product_id)
        if product is None:
            raise NotFound("Product not found", details={"product_id": product_id})
        if not product.is_active:
            raise InvalidRequest("Product is inactive", details={"product_id": product_id})

        movement = apply_movement(
            product,
            movement_type=MOVEMENT_IN if qty > 0 else MOVEMENT_OUT,
            quantity=abs(qty),
            reason=str(reason).strip(),
            user_id=actor_id,
        )
        db.session.commit()
        return movement

    return run_with_retry(_op)


@returns_result
def adjust_stock(
    store_id: int,
    product_id: int,
    signed_quantity,
    reason: str,
    actor_id: int,
) -> InventoryMovement:
    """
    Manual stock correction.

    Positive quantities record an 'in' movement, negative an 'out'. Goes
    through the same locked append-then-update path as the sale processor, so
    the reconciliation invariant holds for every entry point.
    """
    qty = _parse_quantity(signed_quantity)
    if qty == 0:
        raise InvalidRequest("Adjustment quantity cannot be zero")
    return _post_adjustment(store_id, product_id, qty, reason, actor_id)


@returns_result
def restock(
    store_id: int,
    product_id: int,
    quantity,
    actor_id: int,
    reason: str = "Restock",
) -> InventoryMovement:
    """Receive goods into stock; rejects non-positive quantities."""
    qty = _parse_quantity(quantity)
    if qty <= 0:
        raise InvalidRequest("Restock quantity must be greater than zero")
    return _post_adjustment(store_id, product_id, qty, reason, actor_id)


def list_movements(store_id: int, product_id: int) -> list[InventoryMovement] | None:
    """
    Movement history for one product, newest first.

    Returns None when the product does not exist in this store.
    """
    if get_scoped(Product, store_id, product_id) is None:
        return None
    return (
        scoped_query(InventoryMovement, store_id)
        .filter(InventoryMovement.product_id == product_id)
        .order_by(InventoryMovement.movement_date.desc(), InventoryMovement.id.desc())
        .all()
    )


def ledger_balance(store_id: int, product_id: int) -> Decimal:
    """Signed sum of a product's movements."""
    rows = (
        db.session.query(InventoryMovement.type, func.sum(InventoryMovement.quantity))
        .filter(
            InventoryMovement.store_id == store_id,
            InventoryMovement.product_id == product_id,
        )
        .group_by(InventoryMovement.type)
        .all()
    )
    balance = ZERO_QUANTITY
    for movement_type, total in rows:
        total = normalize_quantity(total)
        balance += total if movement_type == MOVEMENT_IN else -total
    return balance


def check_reconciliation(store_id: int | None = None) -> list[dict]:
    """
    Compare every product's stock with its movement history.

    Returns one row per product whose stock field disagrees with the signed
    movement sum. An empty list means the ledger reconciles.
    """
    query = db.session.query(
        InventoryMovement.product_id,
        InventoryMovement.type,
        func.sum(InventoryMovement.quantity),
    )
    if store_id is not None:
        query = query.filter(InventoryMovement.store_id == store_id)
    balances: dict[int, Decimal] = {}
    for product_id, movement_type, total in query.group_by(
        InventoryMovement.product_id, InventoryMovement.type
    ).all():
        total = normalize_quantity(total)
        signed = total if movement_type == MOVEMENT_IN else -total
        balances[product_id] = balances.get(product_id, ZERO_QUANTITY) + signed

    products = db.session.query(Product)
    if store_id is not None:
        products = products.filter(Product.store_id == store_id)

    mismatches = []
    for product in products.order_by(Product.id.asc()).all():
        stock = normalize_quantity(product.stock)
        ledger = balances.get(product.id, ZERO_QUANTITY)
        if stock != ledger:
            mismatches.append({
                "store_id": product.store_id,
                "product_id": product.id,
                "sku": product.sku,
                "stock": str(stock),
                "ledger": str(ledger),
                "difference": str(stock - ledger),
            })
    return mismatches
