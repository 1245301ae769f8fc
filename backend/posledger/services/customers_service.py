# Overview: Store-scoped customer records referenced by sales and receivables.

from __future__ import annotations

from ..errors import NotFound, returns_result
from ..extensions import db
from ..models import Customer
from ..validation import ModelValidationPolicy, validate_payload
from .tenant_service import get_scoped, require_store, scoped_query

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"first_name", "last_name", "email", "phone", "address", "loyalty_points"},
    required_on_create={"first_name", "last_name"},
    non_negative={"loyalty_points"},
)


def get_customer(store_id: int, customer_id: int) -> Customer | None:
    return get_scoped(Customer, store_id, customer_id)


def list_customers(store_id: int, search: str | None = None) -> list[Customer]:
    query = scoped_query(Customer, store_id)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(
            db.or_(
                Customer.first_name.ilike(pattern),
                Customer.last_name.ilike(pattern),
                Customer.email.ilike(pattern),
                Customer.phone.ilike(pattern),
            )
        )
    return query.order_by(Customer.last_name.asc(), Customer.first_name.asc(), Customer.id.asc()).all()


@returns_result
def create_customer(store_id: int, payload: dict) -> Customer:
    require_store(store_id)
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
    customer = Customer(store_id=store_id, **patch)
    db.session.add(customer)
    db.session.commit()
    return customer


@returns_result
def update_customer(store_id: int, customer_id: int, payload: dict) -> Customer:
    customer = get_customer(store_id, customer_id)
    if customer is None:
        raise NotFound("Customer not found", details={"customer_id": customer_id})
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
    for key, value in patch.items():
        setattr(customer, key, value)
    db.session.commit()
    return customer
