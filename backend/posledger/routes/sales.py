# Overview: Flask API routes for sales; parses input and returns JSON responses.

# backend/posledger/routes/sales.py
from flask import Blueprint, jsonify, request

from ..decorators import get_int_arg, json_errors, not_found, parse_range_args, require_store_id, result_response
from ..services import sales_service

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
@require_store_id
@json_errors
def process_sale_route(store_id: int):
    """
    Ring up a sale.

    Body: store_id, cashier_id, items [{product_id, quantity, unit_price?}],
    payment_method?, customer_id?, discount?, tax?
    """
    data = request.get_json(silent=True) or {}
    cashier_id, error = get_int_arg("cashier_id", data)
    if error is not None:
        return error

    result = sales_service.process_sale(
        store_id,
        cashier_id,
        data.get("items"),
        payment_method=data.get("payment_method", "cash"),
        customer_id=data.get("customer_id"),
        discount=data.get("discount", "0"),
        tax=data.get("tax"),
    )
    return result_response(result, status=201)


@sales_bp.get("")
@require_store_id
@json_errors
def list_sales_route(store_id: int):
    start, end, error = parse_range_args()
    if error is not None:
        return error
    cashier_id = None
    if request.args.get("cashier_id"):
        cashier_id, error = get_int_arg("cashier_id")
        if error is not None:
            return error

    sales = sales_service.list_sales(store_id, start=start, end=end, cashier_id=cashier_id)
    return jsonify({"items": [s.to_dict() for s in sales], "count": len(sales)}), 200


@sales_bp.get("/<int:sale_id>")
@require_store_id
@json_errors
def get_sale_route(store_id: int, sale_id: int):
    sale = sales_service.get_sale(store_id, sale_id)
    if sale is None:
        return not_found("Sale not found", {"sale_id": sale_id})
    items = sales_service.get_sale_items(store_id, sale_id)
    return jsonify({
        "sale": sale.to_dict(),
        "items": [item.to_dict() for item in items],
    }), 200
