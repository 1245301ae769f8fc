# Overview: Flask API route for quota-gated user creation.

from flask import Blueprint, request

from ..decorators import get_int_arg, json_errors, result_response
from ..services import user_service
from .stores import is_administrator

users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.post("")
@json_errors
def create_user_route():
    """
    Create a user.

    Body: username, email, first_name, last_name, password, role?, store_id?,
    actor_id? (an administrator actor bypasses the plan limit).
    """
    data = request.get_json(silent=True) or {}
    store_id = None
    if data.get("store_id") is not None:
        store_id, error = get_int_arg("store_id", data)
        if error is not None:
            return error

    fields = {k: v for k, v in data.items() if k not in ("store_id", "actor_id", "password")}
    result = user_service.create_user(
        fields,
        data.get("password"),
        store_id=store_id,
        bypass_quota=is_administrator(data.get("actor_id")),
    )
    return result_response(result, status=201)
