# backend/posledger/services/products_service.py
"""
Products Service with Multi-Tenant Support

MULTI-TENANT: All product operations are store-scoped.
- Lookups by id, SKU or barcode return None for rows of another store
- create_product validates the store and the referenced category/supplier
- update_product never touches stock; stock changes go through the ledger

Opening stock given at creation is written as an 'in' movement in the same
transaction, so products created here reconcile from their first row.
"""
from __future__ import annotations

from ..errors import InvalidRequest, NotFound, returns_result
from ..extensions import db
from ..models import Category, InventoryMovement, Product, Supplier
from ..models.inventory import MOVEMENT_IN
from ..quantities import ZERO_QUANTITY
from ..time_utils import utcnow
from ..validation import ModelValidationPolicy, ValidationError, validate_payload
from .tenant_service import get_scoped, get_user, require_store, scoped_query

OPENING_STOCK_REASON = "Opening stock"

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "sku", "barcode", "name", "description", "brand",
        "category_id", "supplier_id",
        "purchase_price", "selling_price",
        "stock", "min_stock_level", "is_active",
    },
    required_on_create={"sku", "name", "purchase_price", "selling_price"},
    non_negative={"purchase_price", "selling_price", "stock", "min_stock_level"},
)

# stock is set once at creation (as opening stock); afterwards only the ledger moves it
PRODUCT_MUTABLE_FIELDS = PRODUCT_POLICY.writable_fields - {"stock"}

CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description"},
    required_on_create={"name"},
)

SUPPLIER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "contact_person", "email", "phone", "address"},
    required_on_create={"name"},
)


def get_product(store_id: int, product_id: int) -> Product | None:
    return get_scoped(Product, store_id, product_id)


def get_product_by_sku(store_id: int, sku: str) -> Product | None:
    return scoped_query(Product, store_id).filter(Product.sku == sku).first()


def get_product_by_barcode(store_id: int, barcode: str) -> Product | None:
    if not barcode:
        return None
    return scoped_query(Product, store_id).filter(Product.barcode == barcode).first()


def list_products(store_id: int, *, include_inactive: bool = False) -> list[Product]:
    query = scoped_query(Product, store_id)
    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))
    return query.order_by(Product.name.asc(), Product.id.asc()).all()


def _check_references(store_id: int, patch: dict) -> None:
    if patch.get("category_id") is not None and get_scoped(Category, store_id, patch["category_id"]) is None:
        raise ValidationError("Unknown category", "category_id")
    if patch.get("supplier_id") is not None and get_scoped(Supplier, store_id, patch["supplier_id"]) is None:
        raise ValidationError("Unknown supplier", "supplier_id")


def _check_identifiers(store_id: int, patch: dict, product_id: int | None = None) -> None:
    # SKU and barcode are unique per store
    for field in ("sku", "barcode"):
        value = patch.get(field)
        if value is None:
            continue
        query = scoped_query(Product, store_id).filter(getattr(Product, field) == value)
        if product_id is not None:
            query = query.filter(Product.id != product_id)
        if query.first() is not None:
            raise ValidationError(f"{field} already exists for this store.", field)


@returns_result
def create_product(store_id: int, payload: dict, actor_id: int) -> Product:
    """
    Create a product; a non-zero opening stock is recorded as an 'in' movement.

    Returns Result[Product]. InvalidRequest for bad payloads, unknown
    references or duplicate SKU/barcode; NotFound for an unknown store.
    """
    require_store(store_id)
    if get_user(actor_id) is None:
        raise InvalidRequest("Unknown actor", details={"actor_id": actor_id})

    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    _check_references(store_id, patch)
    _check_identifiers(store_id, patch)

    opening = patch.pop("stock", None) or ZERO_QUANTITY
    try:
        product = Product(store_id=store_id, stock=opening, **patch)
        db.session.add(product)
        db.session.flush()

        if opening > 0:
            db.session.add(InventoryMovement(
                store_id=store_id,
                product_id=product.id,
                type=MOVEMENT_IN,
                quantity=opening,
                reason=OPENING_STOCK_REASON,
                user_id=actor_id,
                movement_date=utcnow(),
            ))
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return product


@returns_result
def update_product(store_id: int, product_id: int, payload: dict) -> Product:
    product = get_product(store_id, product_id)
    if product is None:
        raise NotFound("Product not found", details={"product_id": product_id})

    if isinstance(payload, dict) and "stock" in payload:
        raise ValidationError("stock cannot be patched; use an inventory adjustment", "stock")

    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
    _check_references(store_id, patch)
    _check_identifiers(store_id, patch, product_id=product.id)

    for key, value in patch.items():
        if key in PRODUCT_MUTABLE_FIELDS:
            setattr(product, key, value)
    db.session.commit()
    return product


@returns_result
def deactivate_product(store_id: int, product_id: int) -> Product:
    """Soft-delete only: preserve ids and historical sale references."""
    product = get_product(store_id, product_id)
    if product is None:
        raise NotFound("Product not found", details={"product_id": product_id})
    if product.is_active:
        product.is_active = False
        db.session.commit()
    return product


def list_categories(store_id: int) -> list[Category]:
    return scoped_query(Category, store_id).order_by(Category.name.asc()).all()


@returns_result
def create_category(store_id: int, payload: dict) -> Category:
    require_store(store_id)
    patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=False)
    if scoped_query(Category, store_id).filter(Category.name == patch["name"]).first() is not None:
        raise ValidationError("Category already exists for this store.", "name")
    category = Category(store_id=store_id, **patch)
    db.session.add(category)
    db.session.commit()
    return category


def list_suppliers(store_id: int) -> list[Supplier]:
    return scoped_query(Supplier, store_id).order_by(Supplier.name.asc()).all()


@returns_result
def create_supplier(store_id: int, payload: dict) -> Supplier:
    require_store(store_id)
    patch = validate_payload(model=Supplier, payload=payload, policy=SUPPLIER_POLICY, partial=False)
    supplier = Supplier(store_id=store_id, **patch)
    db.session.add(supplier)
    db.session.commit()
    return supplier
