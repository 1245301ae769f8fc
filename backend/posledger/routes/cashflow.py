# Overview: Flask API routes for manual cash-flow entries and categories.

from flask import Blueprint, jsonify, request

from ..decorators import bad_request, get_int_arg, json_errors, parse_range_args, require_store_id, result_response
from ..models.cashflow import CASHFLOW_TYPES
from ..services import cashflow_service

cashflow_bp = Blueprint("cashflow", __name__, url_prefix="/api/cashflow")


@cashflow_bp.get("/entries")
@require_store_id
@json_errors
def list_entries_route(store_id: int):
    start, end, error = parse_range_args()
    if error is not None:
        return error
    if request.args.get("status") == "unpaid":
        entries = cashflow_service.list_unpaid_entries(store_id)
    else:
        entries = cashflow_service.list_entries(store_id, start=start, end=end)
    return jsonify({"items": [e.to_dict() for e in entries], "count": len(entries)}), 200


@cashflow_bp.post("/entries")
@require_store_id
@json_errors
def create_entry_route(store_id: int):
    data = request.get_json(silent=True) or {}
    actor_id, error = get_int_arg("actor_id", data)
    if error is not None:
        return error
    fields = {k: v for k, v in data.items() if k not in ("store_id", "actor_id")}
    return result_response(cashflow_service.create_entry(store_id, fields, actor_id), status=201)


@cashflow_bp.get("/categories")
@require_store_id
@json_errors
def list_categories_route(store_id: int):
    category_type = request.args.get("type")
    if category_type is not None and category_type not in CASHFLOW_TYPES:
        return bad_request(f"type must be one of: {', '.join(CASHFLOW_TYPES)}", "type")
    categories = cashflow_service.list_categories(store_id, type=category_type)
    return jsonify({"items": [c.to_dict() for c in categories], "count": len(categories)}), 200
