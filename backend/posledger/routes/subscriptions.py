# Overview: Flask API routes for subscription plans, subscriptions and payments.

from flask import Blueprint, jsonify, request

from ..decorators import get_int_arg, json_errors, result_response
from ..services import subscription_service

subscriptions_bp = Blueprint("subscriptions", __name__, url_prefix="/api/subscriptions")


@subscriptions_bp.get("/plans")
@json_errors
def list_plans_route():
    plans = subscription_service.list_plans()
    return jsonify({"items": [p.to_dict() for p in plans], "count": len(plans)}), 200


@subscriptions_bp.post("/plans")
@json_errors
def create_plan_route():
    data = request.get_json(silent=True) or {}
    return result_response(subscription_service.create_plan(data), status=201)


@subscriptions_bp.post("")
@json_errors
def subscribe_route():
    data = request.get_json(silent=True) or {}
    owner_id, error = get_int_arg("owner_id", data)
    if error is not None:
        return error
    plan_id, error = get_int_arg("plan_id", data)
    if error is not None:
        return error
    result = subscription_service.subscribe(owner_id, plan_id, auto_renew=bool(data.get("auto_renew", True)))
    return result_response(result, status=201)


@subscriptions_bp.post("/<int:subscription_id>/cancel")
@json_errors
def cancel_route(subscription_id: int):
    return result_response(subscription_service.cancel_subscription(subscription_id))


@subscriptions_bp.post("/<int:subscription_id>/payments")
@json_errors
def record_payment_route(subscription_id: int):
    """A completed payment activates a pending subscription."""
    data = request.get_json(silent=True) or {}
    return result_response(subscription_service.record_payment(subscription_id, data), status=201)
