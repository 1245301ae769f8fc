# Overview: Payload validation against model columns and per-entity write policies.

"""
Payload validation for create/update services.

Each service declares a ModelValidationPolicy for its model. validate_payload
checks a JSON object against the policy and the model's column metadata and
returns a clean patch dict ready to be applied to the row. Every failure is a
ValidationError naming the offending field in details["field"].
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, DateTime, Integer, Numeric, String, Text

from .errors import InvalidRequest
from .quantities import DecimalFieldError, to_money, to_quantity
from .time_utils import parse_iso_datetime


class ValidationError(InvalidRequest):
    def __init__(self, message: str, field: str | None = None):
        super().__init__(message, details={"field": field} if field else None)


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    What a caller may write to one model.

    writable_fields is the allow-list; anything else in the payload is
    rejected rather than ignored. non_negative lists numeric columns that
    must stay >= 0.
    """
    writable_fields: set[str]
    required_on_create: set[str] = frozenset()
    non_negative: set[str] = frozenset()


def _as_int(key: str, value: Any) -> int:
    # bool is an int subclass; "1.0" and "1e3" are not integers either
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be an integer", key)
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    raise ValidationError(f"{key} must be an integer", key)


def _as_decimal(key: str, value: Any, scale: int | None):
    try:
        if scale == 3:
            return to_quantity(value, key)
        return to_money(value, key)
    except DecimalFieldError as exc:
        raise ValidationError(str(exc), exc.field)


def _as_bool(key: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise ValidationError(f"{key} must be true or false", key)
    return value


def _as_datetime(key: str, value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            parsed = parse_iso_datetime(value)
        except ValueError:
            parsed = None
        if parsed is not None:
            return parsed
    raise ValidationError(f"{key} must be an ISO-8601 datetime", key)


def _coerce(col, value: Any):
    coltype = col.type
    if isinstance(coltype, Boolean):
        return _as_bool(col.key, value)
    if isinstance(coltype, Integer):
        return _as_int(col.key, value)
    if isinstance(coltype, Numeric):
        return _as_decimal(col.key, value, coltype.scale)
    if isinstance(coltype, DateTime):
        return _as_datetime(col.key, value)
    if isinstance(coltype, (String, Text)):
        text = str(value).strip()
        if not text and not col.nullable:
            raise ValidationError(f"{col.key} is required", col.key)
        length = getattr(coltype, "length", None)
        if length and len(text) > length:
            raise ValidationError(f"{col.key} is longer than {length} characters", col.key)
        return text
    return value


def validate_payload(*, model, payload: dict, policy: ModelValidationPolicy, partial: bool) -> dict:
    """
    Validate payload for model and return the cleaned patch.

    partial=False is a create: every required_on_create field must be present.
    partial=True is an update: only the keys given are checked.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")

    columns = {c.key: c for c in model.__mapper__.columns}
    for key in payload:
        if key not in policy.writable_fields or key not in columns:
            raise ValidationError(f"{key} cannot be set", key)

    if not partial:
        missing = sorted(set(policy.required_on_create) - set(payload))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}", missing[0])

    patch = {}
    for key, raw in payload.items():
        col = columns[key]
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{key} cannot be null", key)
            patch[key] = None
            continue
        value = _coerce(col, raw)
        if key in policy.non_negative and value < 0:
            raise ValidationError(f"{key} must be >= 0", key)
        patch[key] = value
    return patch


def require_choice(value: Any, choices, field: str) -> str:
    if value not in choices:
        raise ValidationError(f"{field} must be one of: {', '.join(choices)}", field)
    return value
