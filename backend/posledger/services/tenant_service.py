"""
Multi-Tenant Service: Store Scoping Helpers

WHY: Centralize tenant scoping for reuse across services and routes.
The store is the unit of isolation: every query touching store-owned rows
filters on store_id, and a row that exists in another store is reported
exactly like a row that does not exist at all.

SECURITY INVARIANTS:
1. Reads of store-owned models always go through scoped_query/get_scoped
2. Cross-store ids resolve to None (lookups) or NotFound (operations)
3. Never return a "forbidden" for another tenant's row; that leaks existence

USAGE:
    from posledger.services.tenant_service import require_store, get_scoped

    store = require_store(store_id)
    product = get_scoped(Product, store_id, product_id)
"""

from __future__ import annotations

from ..errors import NotFound
from ..extensions import db
from ..models import Store, User


def get_store(store_id: int | None, *, active_only: bool = True) -> Store | None:
    if store_id is None:
        return None
    query = db.session.query(Store).filter_by(id=store_id)
    if active_only:
        query = query.filter(Store.is_active.is_(True))
    return query.first()


def require_store(store_id: int | None, *, active_only: bool = True, error=NotFound) -> Store:
    """
    Resolve a store or raise.

    error lets callers pick the taxonomy entry: operations addressed *at* a
    store raise NotFound, while a cart naming an unknown store is an
    InvalidRequest.
    """
    store = get_store(store_id, active_only=active_only)
    if store is None:
        raise error("Store not found", details={"store_id": store_id})
    return store


def scoped_query(model, store_id: int):
    """
    Create a base query scoped to one store.

    Usage:
        products = scoped_query(Product, store_id).filter_by(is_active=True).all()
    """
    return db.session.query(model).filter(model.store_id == store_id)


def get_scoped(model, store_id: int, entity_id: int | None):
    """Fetch a store-owned row by id; None when absent or owned by another store."""
    if entity_id is None:
        return None
    return scoped_query(model, store_id).filter(model.id == entity_id).first()


def require_scoped(model, store_id: int, entity_id: int | None, label: str, *, error=NotFound):
    entity = get_scoped(model, store_id, entity_id)
    if entity is None:
        raise error(f"{label} not found", details={f"{label.lower()}_id": entity_id})
    return entity


def get_user(user_id: int | None, *, active_only: bool = True) -> User | None:
    if user_id is None:
        return None
    query = db.session.query(User).filter_by(id=user_id)
    if active_only:
        query = query.filter(User.is_active.is_(True))
    return query.first()


def get_owner_store_ids(owner_id: int, *, active_only: bool = True) -> set[int]:
    """Set of store ids owned by a user."""
    query = db.session.query(Store.id).filter(Store.owner_id == owner_id)
    if active_only:
        query = query.filter(Store.is_active.is_(True))
    return {row.id for row in query.all()}
