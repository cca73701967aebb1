"""Money helpers: all ledger amounts are Decimal, rounded to cents."""

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

# Largest discrepancy still considered balanced
BALANCE_TOLERANCE = Decimal("0.01")


def to_decimal(value) -> Decimal:
    """Convert int/str/float/Decimal/None to Decimal (None -> 0)."""
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def round_money(value) -> Decimal:
    """Round to 2 decimal places, half-up."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def is_positive(value) -> bool:
    """True when the amount is at least one cent."""
    return round_money(value) > ZERO


def within_tolerance(a, b, tolerance: Decimal = BALANCE_TOLERANCE) -> bool:
    return abs(to_decimal(a) - to_decimal(b)) <= tolerance
