# Overview: Conversion between request currency amounts and stored integer cents.

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from .errors import ValidationError


# Maximum single amount: 9,999,999.99 (999,999,999 cents)
MAX_AMOUNT_CENTS = 999_999_999

CENT = Decimal("0.01")


def to_decimal(value, field: str) -> Decimal:
    """Coerce a JSON number or numeric string to Decimal, rejecting booleans and junk."""
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a number", details={"field": field})
    if isinstance(value, float):
        # str() keeps the shortest repr, so 0.1 stays 0.1 instead of its binary expansion
        value = str(value)
    try:
        dec = Decimal(value) if not isinstance(value, Decimal) else value
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"{field} must be a number", details={"field": field})
    if not dec.is_finite():
        raise ValidationError(f"{field} must be a finite number", details={"field": field})
    return dec


def to_cents(value, field: str) -> int:
    """Convert a currency amount (e.g. 12.345) to integer cents, rounding half-up."""
    dec = to_decimal(value, field)
    # Bound before quantize; a huge exponent overflows the decimal context
    if abs(dec) > Decimal(MAX_AMOUNT_CENTS) / 100:
        raise ValidationError(
            f"{field} cannot exceed {MAX_AMOUNT_CENTS / 100:,.2f}",
            details={"field": field},
        )
    return int((dec.quantize(CENT, rounding=ROUND_HALF_UP) * 100).to_integral_value())


def format_cents(cents: int | None) -> str | None:
    if cents is None:
        return None
    sign = "-" if cents < 0 else ""
    whole, frac = divmod(abs(int(cents)), 100)
    return f"{sign}{whole}.{frac:02d}"


def percent_of(amount_cents: int, percent: Decimal) -> int:
    """percent/100 * amount, rounded half-up to a whole cent."""
    raw = Decimal(amount_cents) * Decimal(percent) / Decimal(100)
    return int(raw.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
