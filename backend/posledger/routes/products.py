# Overview: Flask API routes for product master data; parses input and returns JSON responses.

# backend/posledger/routes/products.py
from flask import Blueprint, jsonify, request

from ..decorators import get_int_arg, json_errors, not_found, require_store_id, result_response
from ..services import products_service, reporting_service

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _product_fields(data: dict) -> dict:
    return {k: v for k, v in data.items() if k not in ("store_id", "actor_id")}


@products_bp.get("")
@require_store_id
@json_errors
def list_products_route(store_id: int):
    include_inactive = request.args.get("include_inactive", "").lower() in ("1", "true", "yes")
    products = products_service.list_products(store_id, include_inactive=include_inactive)
    return jsonify({"items": [p.to_dict() for p in products], "count": len(products)}), 200


@products_bp.post("")
@require_store_id
@json_errors
def create_product_route(store_id: int):
    """
    Create a product.

    Body: store_id, actor_id, product fields. A non-zero "stock" is recorded
    as the opening stock movement.
    """
    data = request.get_json(silent=True) or {}
    actor_id, error = get_int_arg("actor_id", data)
    if error is not None:
        return error
    result = products_service.create_product(store_id, _product_fields(data), actor_id)
    return result_response(result, status=201)


@products_bp.get("/low-stock")
@require_store_id
@json_errors
def low_stock_route(store_id: int):
    return result_response(
        reporting_service.low_stock(store_id),
        serialize=lambda products: {"items": [p.to_dict() for p in products], "count": len(products)},
    )


@products_bp.get("/<int:product_id>")
@require_store_id
@json_errors
def get_product_route(store_id: int, product_id: int):
    product = products_service.get_product(store_id, product_id)
    if product is None:
        return not_found("Product not found", {"product_id": product_id})
    return jsonify(product.to_dict()), 200


@products_bp.patch("/<int:product_id>")
@require_store_id
@json_errors
def update_product_route(store_id: int, product_id: int):
    data = request.get_json(silent=True) or {}
    return result_response(products_service.update_product(store_id, product_id, _product_fields(data)))


@products_bp.post("/<int:product_id>/deactivate")
@require_store_id
@json_errors
def deactivate_product_route(store_id: int, product_id: int):
    return result_response(products_service.deactivate_product(store_id, product_id))
