# Overview: Flask API routes for store-scoped customers.

from flask import Blueprint, jsonify, request

from ..decorators import json_errors, not_found, require_store_id, result_response
from ..services import customers_service

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_store_id
@json_errors
def list_customers_route(store_id: int):
    customers = customers_service.list_customers(store_id, search=request.args.get("search"))
    return jsonify({"items": [c.to_dict() for c in customers], "count": len(customers)}), 200


@customers_bp.post("")
@require_store_id
@json_errors
def create_customer_route(store_id: int):
    data = request.get_json(silent=True) or {}
    fields = {k: v for k, v in data.items() if k != "store_id"}
    return result_response(customers_service.create_customer(store_id, fields), status=201)


@customers_bp.get("/<int:customer_id>")
@require_store_id
@json_errors
def get_customer_route(store_id: int, customer_id: int):
    customer = customers_service.get_customer(store_id, customer_id)
    if customer is None:
        return not_found("Customer not found", {"customer_id": customer_id})
    return jsonify(customer.to_dict()), 200


@customers_bp.patch("/<int:customer_id>")
@require_store_id
@json_errors
def update_customer_route(store_id: int, customer_id: int):
    data = request.get_json(silent=True) or {}
    fields = {k: v for k, v in data.items() if k != "store_id"}
    return result_response(customers_service.update_customer(store_id, customer_id, fields))
