# Overview: Flask API routes for store creation and quota lookups.

from flask import Blueprint, jsonify, request

from ..decorators import get_int_arg, json_errors, result_response
from ..models.auth import ROLE_ADMINISTRATOR
from ..services import quota_service, store_service
from ..services.tenant_service import get_user

stores_bp = Blueprint("stores", __name__, url_prefix="/api/stores")
quota_bp = Blueprint("quota", __name__, url_prefix="/api/quota")


def is_administrator(actor_id) -> bool:
    if actor_id is None:
        return False
    actor = get_user(actor_id)
    return actor is not None and actor.role == ROLE_ADMINISTRATOR


@stores_bp.get("")
@json_errors
def list_stores_route():
    owner_id = None
    if request.args.get("owner_id"):
        owner_id, error = get_int_arg("owner_id")
        if error is not None:
            return error
    stores = store_service.list_stores(owner_id)
    return jsonify({"items": [s.to_dict() for s in stores], "count": len(stores)}), 200


@stores_bp.post("")
@json_errors
def create_store_route():
    """
    Create a store for owner_id.

    Subject to the owner's plan limit unless actor_id is an administrator.
    """
    data = request.get_json(silent=True) or {}
    owner_id, error = get_int_arg("owner_id", data)
    if error is not None:
        return error
    bypass = is_administrator(data.get("actor_id"))
    fields = {k: v for k, v in data.items() if k not in ("owner_id", "actor_id")}
    return result_response(store_service.create_store(owner_id, fields, bypass_quota=bypass), status=201)


@quota_bp.get("/stores")
@json_errors
def store_quota_route():
    owner_id, error = get_int_arg("owner_id")
    if error is not None:
        return error
    return jsonify(quota_service.can_create_store(owner_id).to_dict()), 200


@quota_bp.get("/users")
@json_errors
def user_quota_route():
    owner_id, error = get_int_arg("owner_id")
    if error is not None:
        return error
    return jsonify(quota_service.can_create_user(owner_id).to_dict()), 200
