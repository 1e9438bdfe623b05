"""Validation helpers to keep numeric fields finite and well-shaped."""

from decimal import Decimal, InvalidOperation
from typing import Any, Optional


def finite_decimal(value: Any) -> Optional[Decimal]:
    """Return a finite Decimal, or None when the value is missing or unusable.

    Floats go through ``str`` so 0.1 stays 0.1 instead of its binary expansion.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        if isinstance(value, Decimal):
            dval = value
        elif isinstance(value, float):
            dval = Decimal(repr(value))
        else:
            dval = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not dval.is_finite():
        return None
    return dval


# Upper bound for user-entered holding numbers; keeps products of amount,
# price and market price well inside the decimal context.
MAX_HOLDING_NUMBER = Decimal("1e18")


def within_holding_range(value: Decimal) -> bool:
    return 0 <= value <= MAX_HOLDING_NUMBER
