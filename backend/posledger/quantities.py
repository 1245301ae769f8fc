# Overview: Fixed-precision decimal coercion for money and stock quantities.

"""
Money and quantity handling.

Money columns are Numeric(10, 2); quantity columns are Numeric(10, 3).
Values enter as int, str or Decimal and are quantized half-up. Floats are
rejected outright so binary rounding never reaches a stock total.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

MONEY_PLACES = Decimal("0.01")
QUANTITY_PLACES = Decimal("0.001")

# Numeric(10, 2) / Numeric(10, 3) ceilings
MAX_MONEY = Decimal("99999999.99")
MAX_QUANTITY = Decimal("9999999.999")

ZERO_MONEY = Decimal("0.00")
ZERO_QUANTITY = Decimal("0.000")


class DecimalFieldError(ValueError):
    """Raised when a value cannot be coerced to a fixed-precision decimal."""

    def __init__(self, field: str, message: str):
        super().__init__(f"{field} {message}")
        self.field = field


def _to_decimal(field: str, value: Any) -> Decimal:
    if value is None:
        raise DecimalFieldError(field, "is required")
    if isinstance(value, bool):
        raise DecimalFieldError(field, "must be a number")
    if isinstance(value, float):
        raise DecimalFieldError(field, "must be given as a string or integer, not a float")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise DecimalFieldError(field, "must be a number")
        if "e" in stripped.lower():
            raise DecimalFieldError(field, "must be a plain number (scientific notation not allowed)")
        try:
            result = Decimal(stripped)
        except InvalidOperation:
            raise DecimalFieldError(field, "must be a number")
    else:
        raise DecimalFieldError(field, "must be a number")

    if not result.is_finite():
        raise DecimalFieldError(field, "must be a finite number")
    return result


def to_money(value: Any, field: str = "amount") -> Decimal:
    amount = _to_decimal(field, value).quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)
    if abs(amount) > MAX_MONEY:
        raise DecimalFieldError(field, "is out of range")
    return amount


def to_quantity(value: Any, field: str = "quantity") -> Decimal:
    qty = _to_decimal(field, value).quantize(QUANTITY_PLACES, rounding=ROUND_HALF_UP)
    if abs(qty) > MAX_QUANTITY:
        raise DecimalFieldError(field, "is out of range")
    return qty


def normalize_money(value: Decimal | None) -> Decimal:
    """Normalize a stored money value (None -> 0.00)."""
    if value is None:
        return ZERO_MONEY
    return Decimal(value).quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)


def normalize_quantity(value: Decimal | None) -> Decimal:
    if value is None:
        return ZERO_QUANTITY
    return Decimal(value).quantize(QUANTITY_PLACES, rounding=ROUND_HALF_UP)


def fmt_money(value: Decimal | None) -> str | None:
    return None if value is None else str(normalize_money(value))


def fmt_quantity(value: Decimal | None) -> str | None:
    return None if value is None else str(normalize_quantity(value))


def line_total(qty: Decimal, unit_price: Decimal) -> Decimal:
    return (qty * unit_price).quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)


def apply_rate_bps(amount: Decimal, rate_bps: int) -> Decimal:
    """Apply a basis-point rate (825 = 8.25%) to an amount, rounded to cents."""
    return (amount * Decimal(rate_bps) / Decimal(10000)).quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)
