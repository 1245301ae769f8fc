# Overview: Request helpers for API routes: store scoping and Result-to-JSON responses.

from functools import wraps

from flask import current_app, jsonify, request

from .errors import PosError, Result
from .extensions import db
from .time_utils import parse_iso_date, parse_iso_datetime

# Error kind -> HTTP status
STATUS_BY_KIND = {
    "invalid_request": 400,
    "not_found": 404,
    "quota_exceeded": 403,
    "insufficient_stock": 409,
    "busy": 503,
}

RETRY_AFTER_SECONDS = "1"


def error_response(error: PosError):
    body = {"error": error.message, "kind": error.kind, "details": error.details}
    response = jsonify(body)
    response.status_code = STATUS_BY_KIND.get(error.kind, 400)
    if error.retryable:
        response.headers["Retry-After"] = RETRY_AFTER_SECONDS
    return response


def result_response(result: Result, serialize=None, status: int = 200):
    """
    Translate a service Result into a JSON response.

    serialize maps the value to a JSON-ready object; defaults to value.to_dict().
    """
    if not result.ok:
        return error_response(result.error)
    value = result.value
    if serialize is not None:
        payload = serialize(value)
    elif hasattr(value, "to_dict"):
        payload = value.to_dict()
    else:
        payload = value
    return jsonify(payload), status


def bad_request(message: str, field: str | None = None):
    return jsonify({
        "error": message,
        "kind": "invalid_request",
        "details": {"field": field} if field else {},
    }), 400


def not_found(message: str, details: dict | None = None):
    return jsonify({"error": message, "kind": "not_found", "details": details or {}}), 404


def get_int_arg(name: str, source: dict | None = None):
    """
    Read an integer from the JSON body (source) or the query string.

    Returns (value, None) or (None, error_response).
    """
    raw = source.get(name) if source is not None else request.args.get(name)
    if raw is None or raw == "":
        return None, bad_request(f"{name} required", name)
    if isinstance(raw, bool):
        return None, bad_request(f"{name} must be an integer", name)
    try:
        return int(raw), None
    except (TypeError, ValueError):
        return None, bad_request(f"{name} must be an integer", name)


def parse_range_args():
    """Optional ?start=&end= ISO datetimes; returns (start, end, error_response)."""
    try:
        start = parse_iso_datetime(request.args.get("start"))
        end = parse_iso_datetime(request.args.get("end"))
    except ValueError:
        return None, None, bad_request("start/end must be ISO-8601 datetimes")
    return start, end, None


def parse_date_arg(name: str):
    try:
        return parse_iso_date(request.args.get(name)), None
    except ValueError:
        return None, bad_request(f"{name} must be an ISO-8601 date", name)


def require_store_id(f):
    """
    Resolve store_id from the query string (GET) or JSON body and pass it on.

    Every store-owned endpoint is addressed at exactly one store.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        body = request.get_json(silent=True) if request.method in ("POST", "PUT", "PATCH") else None
        source = body if isinstance(body, dict) and "store_id" in body else None
        store_id, error = get_int_arg("store_id", source)
        if error is not None:
            return error
        return f(store_id, *args, **kwargs)

    return decorated_function


def json_errors(f):
    """Log unexpected failures and answer 500 instead of leaking a traceback."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except PosError as e:
            return error_response(e)
        except Exception:
            db.session.rollback()
            current_app.logger.exception("Unhandled error in %s", request.path)
            return jsonify({"error": "Internal server error"}), 500

    return decorated_function
