from __future__ import annotations

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..errors import InvalidRequest, NotFound, QuotaExceeded, returns_result
from ..extensions import db
from ..models import Store, User
from ..models.auth import ROLE_ADMINISTRATOR, ROLE_OWNER
from ..validation import ModelValidationPolicy, ValidationError, validate_payload
from .cashflow_service import create_default_categories
from .concurrency import begin_write_transaction, lock_for_update, run_with_retry
from .quota_service import can_create_store

STORE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "address", "phone", "email", "description", "timezone", "tax_rate_bps", "is_active"},
    required_on_create={"name"},
    non_negative={"tax_rate_bps"},
)


def _check_store_rules(patch: dict) -> None:
    if patch.get("tax_rate_bps") is not None and patch["tax_rate_bps"] > 10000:
        raise ValidationError("tax_rate_bps cannot exceed 10000", "tax_rate_bps")
    if patch.get("timezone") is not None:
        try:
            ZoneInfo(patch["timezone"])
        except (ZoneInfoNotFoundError, ValueError):
            raise ValidationError("Unknown timezone", "timezone")


def lock_owner(owner_id: int) -> User:
    """
    Lock the owner row for the rest of the transaction.

    Every quota-gated insert for one owner serializes on this lock, so the
    count the gate sees cannot change before the insert commits.
    """
    owner = lock_for_update(db.session.query(User).filter(User.id == owner_id)).first()
    if owner is None or not owner.is_active:
        raise InvalidRequest("Unknown owner", details={"owner_id": owner_id})
    return owner


@returns_result
def create_store(owner_id: int, payload: dict, *, bypass_quota: bool = False) -> Store:
    """
    Create a store for an owner, enforcing the plan's store limit.

    bypass_quota is for administrator-initiated creation. The store gets the
    default cash-flow categories in the same transaction.
    """
    patch = validate_payload(model=Store, payload=payload, policy=STORE_POLICY, partial=False)
    _check_store_rules(patch)

    def _op():
        begin_write_transaction()
        owner = lock_owner(owner_id)
        if owner.role not in (ROLE_OWNER, ROLE_ADMINISTRATOR):
            raise InvalidRequest("Stores can only be owned by an owner or administrator", details={"owner_id": owner_id})

        if not bypass_quota:
            decision = can_create_store(owner_id)
            if not decision.allowed:
                raise QuotaExceeded(decision.reason, details=decision.to_dict())

        store = Store(owner_id=owner_id, **patch)
        db.session.add(store)
        db.session.flush()
        create_default_categories(store.id)
        db.session.commit()
        return store

    return run_with_retry(_op)


@returns_result
def update_store(store_id: int, payload: dict) -> Store:
    if isinstance(payload, dict) and payload.get("is_active") is True:
        # Reactivation would bypass the store quota
        raise ValidationError("Stores cannot be reactivated through an update", "is_active")
    patch = validate_payload(model=Store, payload=payload, policy=STORE_POLICY, partial=True)
    _check_store_rules(patch)

    def _op():
        store = lock_for_update(db.session.query(Store).filter_by(id=store_id)).first()
        if store is None:
            raise NotFound("Store not found", details={"store_id": store_id})
        for key, value in patch.items():
            setattr(store, key, value)
        db.session.commit()
        return store

    return run_with_retry(_op)


def list_stores(owner_id: int | None = None, *, include_inactive: bool = False) -> list[Store]:
    query = db.session.query(Store)
    if owner_id is not None:
        query = query.filter(Store.owner_id == owner_id)
    if not include_inactive:
        query = query.filter(Store.is_active.is_(True))
    return query.order_by(Store.id.asc()).all()
