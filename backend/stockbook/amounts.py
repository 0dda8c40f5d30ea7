# Overview: Decimal helpers for quantities and money stored as JSON numbers.

"""
Quantities and money are Decimal inside the services and plain JSON numbers
on disk. Money is rounded to cents (half-up) once, at the point a total is
recorded. Quantities are never rounded.
"""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Any

CENT = Decimal("0.01")
ZERO = Decimal("0")


def to_decimal(value: Any) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise TypeError("booleans are not amounts")
    # str() first so 0.1 stays 0.1 instead of the binary float expansion
    return Decimal(str(value))


def round_money(value: Any) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_json_number(value: Decimal) -> int | float:
    """Integral decimals become ints, everything else a float."""
    if value == value.to_integral_value():
        return int(value)
    return float(value)


def json_default(obj: Any):
    """json.dumps default= hook for Decimal values."""
    if isinstance(obj, Decimal):
        return to_json_number(obj)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")
