"""
User Service: quota-gated staff accounts

Passwords are hashed with bcrypt (cost factor 12) and never stored or
returned in clear. Users assigned to a store count against the store owner's
plan; the owner row is locked while the gate is re-checked so concurrent
creations cannot overshoot the limit.
"""

from __future__ import annotations

import bcrypt

from ..errors import InvalidRequest, QuotaExceeded, returns_result
from ..extensions import db
from ..models import User
from ..models.auth import ROLES
from ..validation import ModelValidationPolicy, ValidationError, require_choice, validate_payload
from .concurrency import begin_write_transaction, run_with_retry
from .quota_service import can_create_user
from .store_service import lock_owner
from .tenant_service import get_store

MIN_PASSWORD_LENGTH = 8

USER_POLICY = ModelValidationPolicy(
    writable_fields={"username", "email", "first_name", "last_name", "role"},
    required_on_create={"username", "email", "first_name", "last_name"},
)


def hash_password(password: str) -> str:
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters", "password")
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Not a bcrypt hash
        return False


@returns_result
def create_user(payload: dict, password: str, *, store_id: int | None = None, bypass_quota: bool = False) -> User:
    """
    Create a user, optionally assigned to a store.

    A store assignment counts against the store owner's max_users; the check
    and the insert share one transaction under the owner row lock. Without a
    store only an administrator caller (bypass_quota) may create the user.
    """
    patch = validate_payload(model=User, payload=payload, policy=USER_POLICY, partial=False)
    if "role" in patch:
        require_choice(patch["role"], ROLES, "role")
    password_hash = hash_password(password)

    def _op():
        begin_write_transaction()

        if db.session.query(User).filter(User.username == patch["username"]).first() is not None:
            raise ValidationError("Username already exists", "username")
        if db.session.query(User).filter(User.email == patch["email"]).first() is not None:
            raise ValidationError("Email already exists", "email")

        if store_id is None:
            # Unassigned users are outside every owner's plan count
            if not bypass_quota:
                raise QuotaExceeded("Only administrators can create users without store assignment")
        else:
            store = get_store(store_id)
            if store is None:
                raise InvalidRequest("Unknown store", details={"store_id": store_id})
            if not bypass_quota:
                lock_owner(store.owner_id)
                decision = can_create_user(store.owner_id)
                if not decision.allowed:
                    raise QuotaExceeded(decision.reason, details=decision.to_dict())

        user = User(store_id=store_id, password_hash=password_hash, **patch)
        db.session.add(user)
        db.session.commit()
        return user

    return run_with_retry(_op)
