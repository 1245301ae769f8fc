# Overview: Flask API routes for stock adjustments and movement history.

# backend/posledger/routes/inventory.py
from flask import Blueprint, jsonify, request

from ..decorators import get_int_arg, json_errors, not_found, require_store_id, result_response
from ..services import inventory_service

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.post("/adjust")
@require_store_id
@json_errors
def adjust_route(store_id: int):
    """
    Manual stock adjustment.

    Body: store_id, product_id, quantity (signed decimal string), reason, actor_id.
    """
    data = request.get_json(silent=True) or {}
    product_id, error = get_int_arg("product_id", data)
    if error is not None:
        return error
    actor_id, error = get_int_arg("actor_id", data)
    if error is not None:
        return error

    result = inventory_service.adjust_stock(
        store_id,
        product_id,
        data.get("quantity"),
        data.get("reason"),
        actor_id,
    )
    return result_response(result, status=201)


@inventory_bp.get("/movements/<int:product_id>")
@require_store_id
@json_errors
def movements_route(store_id: int, product_id: int):
    movements = inventory_service.list_movements(store_id, product_id)
    if movements is None:
        return not_found("Product not found", {"product_id": product_id})
    return jsonify({
        "product_id": product_id,
        "items": [m.to_dict() for m in movements],
        "count": len(movements),
    }), 200
