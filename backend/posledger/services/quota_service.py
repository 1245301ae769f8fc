"""
Quota Gate: subscription-based limits on store and user creation

An owner's live subscription (status 'active' or 'pending') names a plan, and
the plan caps how many active stores the owner may run and how many active
users may be assigned to those stores.

The checks here are read-only. store_service and user_service re-run them
inside their creation transaction, after locking the owner row, so two
concurrent creations cannot both pass against the same remaining slot.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..extensions import db
from ..models import Store, SubscriptionPlan, User, UserSubscription
from ..models.subscriptions import LIVE_SUBSCRIPTION_STATUSES
from .tenant_service import get_owner_store_ids


@dataclass(frozen=True)
class QuotaDecision:
    allowed: bool
    current_count: int
    max_allowed: int
    reason: str | None = None

    def to_dict(self) -> dict:
        return {
            "allowed": self.allowed,
            "current_count": self.current_count,
            "max_allowed": self.max_allowed,
            "reason": self.reason,
        }


def get_live_subscription(owner_id: int) -> UserSubscription | None:
    return (
        db.session.query(UserSubscription)
        .filter(
            UserSubscription.user_id == owner_id,
            UserSubscription.status.in_(LIVE_SUBSCRIPTION_STATUSES),
        )
        .order_by(UserSubscription.id.desc())
        .first()
    )


def owner_store_count(owner_id: int) -> int:
    return (
        db.session.query(Store)
        .filter(Store.owner_id == owner_id, Store.is_active.is_(True))
        .count()
    )


def owner_user_count(owner_id: int) -> int:
    store_ids = get_owner_store_ids(owner_id)
    if not store_ids:
        return 0
    return (
        db.session.query(User)
        .filter(User.store_id.in_(store_ids), User.is_active.is_(True))
        .count()
    )


def _decide(owner_id: int, current_count: int, limit_attr: str, noun: str, action: str) -> QuotaDecision:
    subscription = get_live_subscription(owner_id)
    if subscription is None:
        return QuotaDecision(
            allowed=False,
            current_count=current_count,
            max_allowed=0,
            reason=f"No active subscription found. Please subscribe to a plan to {action}.",
        )

    plan = db.session.get(SubscriptionPlan, subscription.plan_id)
    if plan is None or not plan.is_active:
        return QuotaDecision(
            allowed=False,
            current_count=current_count,
            max_allowed=0,
            reason="Invalid subscription plan. Please contact support.",
        )

    max_allowed = getattr(plan, limit_attr)
    if current_count < max_allowed:
        return QuotaDecision(allowed=True, current_count=current_count, max_allowed=max_allowed)
    return QuotaDecision(
        allowed=False,
        current_count=current_count,
        max_allowed=max_allowed,
        reason=(
            f"{noun.capitalize()} limit reached. Your {plan.name} allows {max_allowed} {noun}s. "
            f"Upgrade to {action.replace(' ', ' more ', 1)}."
        ),
    )


def can_create_store(owner_id: int) -> QuotaDecision:
    return _decide(owner_id, owner_store_count(owner_id), "max_stores", "store", "create stores")


def can_create_user(owner_id: int) -> QuotaDecision:
    return _decide(owner_id, owner_user_count(owner_id), "max_users", "user", "add users")
