from __future__ import annotations

import math
import re
from decimal import Decimal
from typing import Any


# Maximum price: $9,999,999.99 (999,999,999 cents)
MAX_PRICE_CENTS = 999_999_999

# Sanity ceiling for a single line
MAX_LINE_QUANTITY = 1_000_000

_INT_RE = re.compile(r"-?\d+")


class ValidationError(ValueError):
    """400-level input problem."""


class NotAnInteger(ValueError):
    """Raised by coerce_int; callers translate it into their own error kind."""


def coerce_int(value: Any, field: str) -> int:
    """
    Strict integer coercion.

    Accepts ints, integral floats/Decimals and plain digit strings. Rejects
    bools, NaN/infinity, fractions, scientific notation and anything else.
    """
    if value is None:
        raise NotAnInteger(f"{field} is required")

    # bool is a subclass of int
    if isinstance(value, bool):
        raise NotAnInteger(f"{field} must be an integer")

    if isinstance(value, int):
        return value

    if isinstance(value, float):
        if not math.isfinite(value):
            raise NotAnInteger(f"{field} must be a finite number")
        if not value.is_integer():
            raise NotAnInteger(f"{field} must be a whole number")
        return int(value)

    if isinstance(value, Decimal):
        if not value.is_finite():
            raise NotAnInteger(f"{field} must be a finite number")
        if value != value.to_integral_value():
            raise NotAnInteger(f"{field} must be a whole number")
        return int(value)

    if isinstance(value, str):
        stripped = value.strip()
        if not _INT_RE.fullmatch(stripped):
            raise NotAnInteger(f"{field} must be a plain integer")
        return int(stripped)

    raise NotAnInteger(f"{field} must be an integer")


def require_fields(payload: dict, fields: set[str]) -> None:
    missing = sorted(f for f in fields if payload.get(f) in (None, ""))
    if missing:
        raise ValidationError(f"Missing required field(s): {', '.join(missing)}")


def optional_int(payload: dict, field: str) -> int | None:
    value = payload.get(field)
    if value in (None, ""):
        return None
    try:
        return coerce_int(value, field)
    except NotAnInteger as e:
        raise ValidationError(str(e)) from e
