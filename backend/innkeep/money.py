# Overview: Integer minor-unit money helpers.

"""
All balances are integer cents. Floats only appear at the edges: parsing an
operator-entered amount and formatting a value for display.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from .errors import InvalidAmount

# Maximum amount: 9,999,999.99 (999,999,999 cents)
MAX_AMOUNT_CENTS = 999_999_999


def require_cents(value, field: str, *, allow_zero: bool = True, error=InvalidAmount) -> int:
    """Validate an integer cents argument (bools and floats rejected)."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise error(f"{field} must be an integer number of cents", details={"field": field, "value": value})
    if value < 0 or (value == 0 and not allow_zero):
        bound = ">= 0" if allow_zero else "> 0"
        raise error(f"{field} must be {bound}", details={"field": field, "value": value})
    if value > MAX_AMOUNT_CENTS:
        raise error(f"{field} cannot exceed {MAX_AMOUNT_CENTS}", details={"field": field, "value": value})
    return value


def to_cents(amount) -> int:
    """Convert a decimal amount ("12.50", 12.5, Decimal) to cents."""
    try:
        dec = Decimal(str(amount).strip())
    except (InvalidOperation, ValueError):
        raise InvalidAmount(f"Invalid amount: {amount}", details={"value": amount})
    if not dec.is_finite():
        raise InvalidAmount(f"Invalid amount: {amount}", details={"value": amount})
    return int((dec * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_cents(cents: int | None) -> str:
    """Presentation-only rendering with two decimals."""
    if cents is None:
        return "-"
    sign = "-" if cents < 0 else ""
    whole, frac = divmod(abs(cents), 100)
    return f"{sign}{whole:,}.{frac:02d}"
