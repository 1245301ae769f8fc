from __future__ import annotations

from ..extensions import db
from ..quantities import fmt_money
from posledger.time_utils import to_utc_z

SUBSCRIPTION_ACTIVE = "active"
SUBSCRIPTION_PENDING = "pending"
SUBSCRIPTION_EXPIRED = "expired"
SUBSCRIPTION_CANCELLED = "cancelled"

# Statuses that count as "the owner's current subscription" for quota purposes
LIVE_SUBSCRIPTION_STATUSES = (SUBSCRIPTION_ACTIVE, SUBSCRIPTION_PENDING)

PAYMENT_PENDING = "pending"
PAYMENT_COMPLETED = "completed"
PAYMENT_FAILED = "failed"
PAYMENT_REFUNDED = "refunded"
SUBSCRIPTION_PAYMENT_STATUSES = (PAYMENT_PENDING, PAYMENT_COMPLETED, PAYMENT_FAILED, PAYMENT_REFUNDED)

PLAN_INTERVALS = ("monthly", "yearly")


class SubscriptionPlan(db.Model):
    __tablename__ = "subscription_plans"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, unique=True)
    description = db.Column(db.Text, nullable=True)
    price = db.Column(db.Numeric(10, 2), nullable=False)
    currency = db.Column(db.String(8), nullable=False, default="IDR")
    interval = db.Column(db.String(16), nullable=False, default="monthly")

    # Quota limits consulted by quota_service
    max_stores = db.Column(db.Integer, nullable=False, default=1)
    max_users = db.Column(db.Integer, nullable=False, default=5)

    features = db.Column(db.JSON, nullable=False, default=list)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "price": fmt_money(self.price),
            "currency": self.currency,
            "interval": self.interval,
            "max_stores": self.max_stores,
            "max_users": self.max_users,
            "features": list(self.features or []),
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class UserSubscription(db.Model):
    """
    Links an owner to a plan.

    At most one active-or-pending subscription per owner; subscription_service
    checks this under a lock on the owner row, and PostgreSQL/SQLite also get a
    partial unique index.
    """
    __tablename__ = "user_subscriptions"
    __table_args__ = (
        db.CheckConstraint("end_date > start_date", name="ck_subscriptions_date_range"),
        db.Index(
            "uq_subscriptions_one_live_per_user",
            "user_id",
            unique=True,
            postgresql_where=db.text("status IN ('active', 'pending')"),
            sqlite_where=db.text("status IN ('active', 'pending')"),
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    plan_id = db.Column(db.Integer, db.ForeignKey("subscription_plans.id"), nullable=False)

    status = db.Column(db.String(16), nullable=False, default=SUBSCRIPTION_PENDING, index=True)
    start_date = db.Column(db.DateTime(timezone=True), nullable=False)
    end_date = db.Column(db.DateTime(timezone=True), nullable=False)
    auto_renew = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    plan = db.relationship("SubscriptionPlan")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "plan_id": self.plan_id,
            "status": self.status,
            "start_date": to_utc_z(self.start_date),
            "end_date": to_utc_z(self.end_date),
            "auto_renew": self.auto_renew,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class SubscriptionPayment(db.Model):
    """
    Billing record for a subscription.

    The payment gateway is opaque here: only its reference id is kept.
    """
    __tablename__ = "subscription_payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    subscription_id = db.Column(db.Integer, db.ForeignKey("user_subscriptions.id"), nullable=False, index=True)
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    currency = db.Column(db.String(8), nullable=False, default="IDR")
    status = db.Column(db.String(16), nullable=False, default=PAYMENT_PENDING)
    payment_method = db.Column(db.String(64), nullable=True)
    external_payment_id = db.Column(db.String(255), nullable=True, index=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    subscription = db.relationship("UserSubscription", backref=db.backref("payments", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "subscription_id": self.subscription_id,
            "amount": fmt_money(self.amount),
            "currency": self.currency,
            "status": self.status,
            "payment_method": self.payment_method,
            "external_payment_id": self.external_payment_id,
            "paid_at": to_utc_z(self.paid_at),
            "created_at": to_utc_z(self.created_at),
        }
