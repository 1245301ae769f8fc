from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from ..errors import ImmutableRecordError
from ..quantities import fmt_money, fmt_quantity
from .inventory import _has_column_changes
from posledger.time_utils import to_utc_z

SALE_STATUS_COMPLETED = "completed"

PAYMENT_METHODS = ("cash", "card", "digital")


class Sale(db.Model):
    """
    Completed sale header.

    Written exactly once by sales_service.process_sale together with its items,
    stock decrements and movements. Never edited afterwards.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_store_date", "store_id", "sale_date"),
        db.Index("ix_sales_store_user", "store_id", "user_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    # Cashier who rang up the sale
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    subtotal = db.Column(db.Numeric(10, 2), nullable=False)
    tax = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    discount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(10, 2), nullable=False)

    payment_method = db.Column(db.String(16), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=SALE_STATUS_COMPLETED, index=True)

    sale_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    store = db.relationship("Store", backref=db.backref("sales", lazy=True))
    items = db.relationship(
        "SaleItem",
        back_populates="sale",
        cascade="all, delete-orphan",
        order_by="SaleItem.id",
        lazy=True,
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "user_id": self.user_id,
            "customer_id": self.customer_id,
            "subtotal": fmt_money(self.subtotal),
            "tax": fmt_money(self.tax),
            "discount": fmt_money(self.discount),
            "total": fmt_money(self.total),
            "payment_method": self.payment_method,
            "status": self.status,
            "sale_date": to_utc_z(self.sale_date),
        }


class SaleItem(db.Model):
    """Individual line items on a sale; owned by the sale."""
    __tablename__ = "sale_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Numeric(10, 3), nullable=False)
    unit_price = db.Column(db.Numeric(10, 2), nullable=False)  # Snapshot at time of sale
    total = db.Column(db.Numeric(10, 2), nullable=False)

    sale = db.relationship("Sale", back_populates="items")
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "quantity": fmt_quantity(self.quantity),
            "unit_price": fmt_money(self.unit_price),
            "total": fmt_money(self.total),
        }


@event.listens_for(Sale, "before_update")
def _forbid_sale_update(mapper, connection, target):
    if _has_column_changes(target):
        raise ImmutableRecordError(f"Sale {target.id} is immutable once committed")


@event.listens_for(SaleItem, "before_update")
def _forbid_sale_item_update(mapper, connection, target):
    if _has_column_changes(target):
        raise ImmutableRecordError(f"Sale item {target.id} is immutable once committed")
