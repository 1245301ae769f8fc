from __future__ import annotations

from ..extensions import db
from ..quantities import fmt_money, fmt_quantity
from posledger.time_utils import to_utc_z

CASHFLOW_INCOME = "income"
CASHFLOW_EXPENSE = "expense"
CASHFLOW_TYPES = (CASHFLOW_INCOME, CASHFLOW_EXPENSE)

PAYMENT_PAID = "paid"
PAYMENT_UNPAID = "unpaid"
PAYMENT_STATUSES = (PAYMENT_PAID, PAYMENT_UNPAID)


class CashFlowCategory(db.Model):
    __tablename__ = "cash_flow_categories"
    __table_args__ = (
        db.Index("ix_cashflow_categories_store_type", "store_id", "type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    type = db.Column(db.String(16), nullable=False)
    description = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "name": self.name,
            "type": self.type,
            "description": self.description,
            "is_active": self.is_active,
        }


class CashFlowEntry(db.Model):
    """
    Manual income/expense bookkeeping alongside POS sales.

    Independent of sales; the daily aggregate adds sales revenue and income
    entries together. Unpaid entries linked to a customer form the store's
    accounts receivable.
    """
    __tablename__ = "cash_flow_entries"
    __table_args__ = (
        db.CheckConstraint("amount >= 0", name="ck_cashflow_amount_nonnegative"),
        db.Index("ix_cashflow_store_date", "store_id", "date"),
        db.Index("ix_cashflow_store_status", "store_id", "payment_status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    type = db.Column(db.String(16), nullable=False)
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    description = db.Column(db.Text, nullable=False)
    category = db.Column(db.String(120), nullable=False)
    category_id = db.Column(db.Integer, db.ForeignKey("cash_flow_categories.id"), nullable=True)

    # Product linkage (e.g., stock purchases)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True)
    quantity = db.Column(db.Numeric(10, 3), nullable=True)
    cost_price = db.Column(db.Numeric(10, 2), nullable=True)

    payment_status = db.Column(db.String(16), nullable=False, default=PAYMENT_PAID)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    notes = db.Column(db.Text, nullable=True)
    is_manual_entry = db.Column(db.Boolean, nullable=False, default=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    customer = db.relationship("Customer")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "type": self.type,
            "amount": fmt_money(self.amount),
            "description": self.description,
            "category": self.category,
            "category_id": self.category_id,
            "product_id": self.product_id,
            "quantity": fmt_quantity(self.quantity),
            "cost_price": fmt_money(self.cost_price),
            "payment_status": self.payment_status,
            "customer_id": self.customer_id,
            "notes": self.notes,
            "is_manual_entry": self.is_manual_entry,
            "sale_id": self.sale_id,
            "user_id": self.user_id,
            "date": to_utc_z(self.date),
        }
