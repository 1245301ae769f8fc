from __future__ import annotations

from sqlalchemy import event, inspect

from ..extensions import db
from ..errors import ImmutableRecordError
from ..quantities import fmt_money, fmt_quantity
from posledger.time_utils import to_utc_z

MOVEMENT_IN = "in"
MOVEMENT_OUT = "out"
MOVEMENT_TYPES = (MOVEMENT_IN, MOVEMENT_OUT)


class Category(db.Model):
    __tablename__ = "categories"
    __table_args__ = (
        db.UniqueConstraint("store_id", "name", name="uq_categories_store_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "name": self.name,
            "description": self.description,
        }


class Product(db.Model):
    """
    Product master data with the current stock level.

    MULTI-TENANT: Products are scoped to stores via store_id.
    SKUs and barcodes are unique within a store, not globally.

    STOCK:
    - stock is a fixed-precision decimal (weight-based goods sell fractional units)
    - stock may never go negative (DB check constraint, service-level check)
    - stock only changes together with an InventoryMovement in the same
      transaction, so stock == SUM(signed movement quantity) at all times
    - products referenced by sales are deactivated, never deleted
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("store_id", "sku", name="uq_products_store_sku"),
        db.UniqueConstraint("store_id", "barcode", name="uq_products_store_barcode"),
        db.CheckConstraint("stock >= 0", name="ck_products_stock_nonnegative"),
        db.Index("ix_products_store_name", "store_id", "name"),
        db.Index("ix_products_store_active", "store_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    sku = db.Column(db.String(64), nullable=False)
    barcode = db.Column(db.String(64), nullable=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    brand = db.Column(db.String(120), nullable=True)

    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True)

    purchase_price = db.Column(db.Numeric(10, 2), nullable=False)
    selling_price = db.Column(db.Numeric(10, 2), nullable=False)

    stock = db.Column(db.Numeric(10, 3), nullable=False, default=0)
    min_stock_level = db.Column(db.Numeric(10, 3), nullable=False, default=5)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    store = db.relationship("Store", backref=db.backref("products", lazy=True))
    category = db.relationship("Category")
    supplier = db.relationship("Supplier")
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r} store_id={self.store_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "sku": self.sku,
            "barcode": self.barcode,
            "name": self.name,
            "description": self.description,
            "brand": self.brand,
            "category_id": self.category_id,
            "supplier_id": self.supplier_id,
            "purchase_price": fmt_money(self.purchase_price),
            "selling_price": fmt_money(self.selling_price),
            "stock": fmt_quantity(self.stock),
            "min_stock_level": fmt_quantity(self.min_stock_level),
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class InventoryMovement(db.Model):
    """
    Append-only stock ledger.

    quantity is always a positive magnitude; type carries the direction.
    Rows are never updated or deleted. Corrections are new counter-movements.
    """
    __tablename__ = "inventory_movements"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_movements_quantity_positive"),
        db.CheckConstraint("type IN ('in', 'out')", name="ck_movements_type"),
        db.Index("ix_movements_store_product_date", "store_id", "product_id", "movement_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    type = db.Column(db.String(8), nullable=False)
    quantity = db.Column(db.Numeric(10, 3), nullable=False)

    # Set for movements written by the sale processor
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)

    reason = db.Column(db.String(255), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    movement_date = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        index=True,
    )

    product = db.relationship("Product", backref=db.backref("movements", lazy=True))

    @property
    def signed_quantity(self):
        return self.quantity if self.type == MOVEMENT_IN else -self.quantity

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "product_id": self.product_id,
            "type": self.type,
            "quantity": fmt_quantity(self.quantity),
            "signed_quantity": fmt_quantity(self.signed_quantity),
            "sale_id": self.sale_id,
            "reason": self.reason,
            "user_id": self.user_id,
            "movement_date": to_utc_z(self.movement_date),
        }


def _has_column_changes(target) -> bool:
    state = inspect(target)
    for attr in state.mapper.column_attrs:
        if state.attrs[attr.key].history.has_changes():
            return True
    return False


@event.listens_for(InventoryMovement, "before_update")
def _forbid_movement_update(mapper, connection, target):
    if _has_column_changes(target):
        raise ImmutableRecordError(f"Inventory movement {target.id} is append-only")


@event.listens_for(InventoryMovement, "before_delete")
def _forbid_movement_delete(mapper, connection, target):
    raise ImmutableRecordError(f"Inventory movement {target.id} is append-only")
