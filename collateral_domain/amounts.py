"""Decimal helpers for the string-typed amounts stored in records."""
from __future__ import annotations

from decimal import ROUND_CEILING, ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

__all__ = ["CENT", "ceil_units", "format_amount", "parse_decimal", "to_cents"]

CENT = Decimal("0.01")


def parse_decimal(value: Union[str, int, float, Decimal, None], *, field: str = "value") -> Decimal:
    """Parse *value* into a finite Decimal or raise ``ValueError`` naming *field*."""
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        # str() keeps the short repr of floats decoded from JSON
        result = Decimal(str(value))
    elif isinstance(value, str) and value.strip():
        try:
            result = Decimal(value.strip())
        except InvalidOperation as exc:
            raise ValueError(f"{field}: not a decimal: {value!r}") from exc
    else:
        raise ValueError(f"{field}: missing decimal value")

    if not result.is_finite():
        raise ValueError(f"{field}: not a finite decimal: {value!r}")
    return result


def to_cents(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def format_amount(value: Decimal) -> str:
    """Render *value* with two decimal places, the stored string format."""
    return f"{to_cents(value):.2f}"


def ceil_units(value: Decimal) -> Decimal:
    """Round a quantity up to the next whole unit."""
    return value.to_integral_value(rounding=ROUND_CEILING)
