# Overview: Subscription plans, owner subscriptions and their payment records.

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

from flask import current_app

from ..errors import InvalidRequest, NotFound, returns_result
from ..extensions import db
from ..models import SubscriptionPayment, SubscriptionPlan, UserSubscription
from ..models.auth import ROLE_ADMINISTRATOR, ROLE_OWNER
from ..models.subscriptions import (
    LIVE_SUBSCRIPTION_STATUSES,
    PAYMENT_COMPLETED,
    PLAN_INTERVALS,
    SUBSCRIPTION_ACTIVE,
    SUBSCRIPTION_CANCELLED,
    SUBSCRIPTION_PAYMENT_STATUSES,
    SUBSCRIPTION_PENDING,
)
from ..time_utils import utcnow
from ..validation import ModelValidationPolicy, ValidationError, require_choice, validate_payload
from .concurrency import begin_write_transaction, lock_for_update, run_with_retry
from .quota_service import get_live_subscription
from .store_service import lock_owner

INTERVAL_DAYS = {"monthly": 30, "yearly": 365}

DEFAULT_PLANS = [
    {
        "name": "Basic Plan",
        "description": "Perfect for small businesses starting out",
        "price": Decimal("150000.00"),
        "max_stores": 1,
        "max_users": 5,
        "features": [
            "1 Store Location",
            "Up to 5 Users",
            "Basic POS Features",
            "Inventory Management",
            "Sales Reports",
            "Customer Management",
        ],
    },
    {
        "name": "Pro Plan",
        "description": "For growing businesses with multiple locations",
        "price": Decimal("350000.00"),
        "max_stores": 3,
        "max_users": 15,
        "features": [
            "Up to 3 Store Locations",
            "Up to 15 Users",
            "Advanced POS Features",
            "Multi-store Inventory",
            "Advanced Reports",
            "Customer Loyalty Program",
            "Cash Flow Management",
            "Priority Support",
        ],
    },
    {
        "name": "Enterprise Plan",
        "description": "For large businesses with complex needs",
        "price": Decimal("750000.00"),
        "max_stores": 999,
        "max_users": 999,
        "features": [
            "Unlimited Store Locations",
            "Unlimited Users",
            "Full POS Suite",
            "Advanced Analytics",
            "Custom Integrations",
            "API Access",
            "Dedicated Support",
            "Custom Training",
        ],
    },
]

PLAN_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description", "price", "currency", "interval", "max_stores", "max_users", "features", "is_active"},
    required_on_create={"name", "price"},
    non_negative={"price", "max_stores", "max_users"},
)

PAYMENT_POLICY = ModelValidationPolicy(
    writable_fields={"amount", "currency", "status", "payment_method", "external_payment_id"},
    required_on_create={"amount"},
    non_negative={"amount"},
)


def list_plans(*, include_inactive: bool = False) -> list[SubscriptionPlan]:
    query = db.session.query(SubscriptionPlan)
    if not include_inactive:
        query = query.filter(SubscriptionPlan.is_active.is_(True))
    return query.order_by(SubscriptionPlan.price.asc(), SubscriptionPlan.id.asc()).all()


@returns_result
def create_plan(payload: dict) -> SubscriptionPlan:
    patch = validate_payload(model=SubscriptionPlan, payload=payload, policy=PLAN_POLICY, partial=False)
    if "interval" in patch:
        require_choice(patch["interval"], PLAN_INTERVALS, "interval")
    if "features" in patch and not isinstance(patch["features"], list):
        raise ValidationError("features must be a list", "features")
    if db.session.query(SubscriptionPlan).filter(SubscriptionPlan.name == patch["name"]).first() is not None:
        raise ValidationError("Plan name already exists", "name")
    patch.setdefault("currency", current_app.config.get("DEFAULT_CURRENCY", "IDR"))

    plan = SubscriptionPlan(**patch)
    db.session.add(plan)
    db.session.commit()
    return plan


def seed_default_plans() -> list[SubscriptionPlan]:
    """Insert the standard plans that are missing; existing names are left alone."""
    created = []
    currency = current_app.config.get("DEFAULT_CURRENCY", "IDR")
    for defaults in DEFAULT_PLANS:
        if db.session.query(SubscriptionPlan).filter(SubscriptionPlan.name == defaults["name"]).first() is not None:
            continue
        plan = SubscriptionPlan(currency=currency, interval="monthly", **defaults)
        db.session.add(plan)
        created.append(plan)
    db.session.commit()
    return created


@returns_result
def subscribe(owner_id: int, plan_id: int, *, auto_renew: bool = True) -> UserSubscription:
    """
    Start a pending subscription for an owner.

    Only one active-or-pending subscription per owner; it becomes active when a
    completed payment is recorded (or through activate_subscription).
    """
    def _op():
        begin_write_transaction()
        owner = lock_owner(owner_id)
        if owner.role not in (ROLE_OWNER, ROLE_ADMINISTRATOR):
            raise InvalidRequest("Only owners can subscribe", details={"owner_id": owner_id})

        plan = db.session.get(SubscriptionPlan, plan_id)
        if plan is None or not plan.is_active:
            raise InvalidRequest("Unknown plan", details={"plan_id": plan_id})

        if get_live_subscription(owner_id) is not None:
            raise InvalidRequest("Owner already has an active or pending subscription", details={"owner_id": owner_id})

        start = utcnow()
        subscription = UserSubscription(
            user_id=owner_id,
            plan_id=plan.id,
            status=SUBSCRIPTION_PENDING,
            start_date=start,
            end_date=start + timedelta(days=INTERVAL_DAYS.get(plan.interval, 30)),
            auto_renew=auto_renew,
        )
        db.session.add(subscription)
        db.session.commit()
        return subscription

    return run_with_retry(_op)


def _locked_subscription(subscription_id: int) -> UserSubscription:
    subscription = lock_for_update(
        db.session.query(UserSubscription).filter(UserSubscription.id == subscription_id)
    ).first()
    if subscription is None:
        raise NotFound("Subscription not found", details={"subscription_id": subscription_id})
    return subscription


@returns_result
def activate_subscription(subscription_id: int) -> UserSubscription:
    def _op():
        begin_write_transaction()
        subscription = _locked_subscription(subscription_id)
        if subscription.status not in LIVE_SUBSCRIPTION_STATUSES:
            raise InvalidRequest(f"Cannot activate a {subscription.status} subscription")
        subscription.status = SUBSCRIPTION_ACTIVE
        db.session.commit()
        return subscription

    return run_with_retry(_op)


@returns_result
def cancel_subscription(subscription_id: int) -> UserSubscription:
    def _op():
        begin_write_transaction()
        subscription = _locked_subscription(subscription_id)
        if subscription.status not in LIVE_SUBSCRIPTION_STATUSES:
            raise InvalidRequest(f"Cannot cancel a {subscription.status} subscription")
        subscription.status = SUBSCRIPTION_CANCELLED
        subscription.auto_renew = False
        db.session.commit()
        return subscription

    return run_with_retry(_op)


@returns_result
def record_payment(subscription_id: int, payload: dict) -> SubscriptionPayment:
    """
    Record a gateway payment against a subscription.

    A 'completed' payment stamps paid_at and activates a pending subscription.
    """
    patch = validate_payload(model=SubscriptionPayment, payload=payload, policy=PAYMENT_POLICY, partial=False)
    if "status" in patch:
        require_choice(patch["status"], SUBSCRIPTION_PAYMENT_STATUSES, "status")

    def _op():
        begin_write_transaction()
        subscription = _locked_subscription(subscription_id)
        payment = SubscriptionPayment(subscription_id=subscription.id, **patch)
        if payment.currency is None:
            payment.currency = subscription.plan.currency
        if payment.status == PAYMENT_COMPLETED:
            payment.paid_at = utcnow()
            if subscription.status == SUBSCRIPTION_PENDING:
                subscription.status = SUBSCRIPTION_ACTIVE
        db.session.add(payment)
        db.session.commit()
        return payment

    return run_with_retry(_op)
