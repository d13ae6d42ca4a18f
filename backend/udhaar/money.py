# Overview: Fixed-point money helpers; all amounts are integer minor units (paise/cents).

"""
Money / Ledger Primitives

WHY: Invoice totals are summed across many line items and then settled over
several partial payments. Floats drift; integers do not. Every amount inside
the system is an int number of minor units, and decimal text only appears at
the boundary (parsing operator input, printing receipts).

RULES:
- Persisted amounts are never negative (subtract() clamps at zero)
- A due of one minor unit (0.01) or less counts as settled (is_zero)
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from .validation import ValidationError


MINOR_UNITS = 100

# 0.01 currency units expressed in minor units
SETTLED_EPSILON = 1

PAYMENT_STATUS_PAID = "paid"
PAYMENT_STATUS_PARTIAL = "partial"


def to_minor(value) -> int:
    """
    Convert a major-unit amount ("12.50", 12.5, Decimal) to minor units.

    Floats are routed through str() so 0.1 becomes exactly 10, not 9.
    Rounds half-up to the nearest minor unit.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError("amount is required")
    if isinstance(value, float):
        value = str(value)
    try:
        amount = Decimal(str(value).strip()) if isinstance(value, str) else Decimal(value)
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid amount: {value!r}")
    if not amount.is_finite():
        raise ValidationError(f"Invalid amount: {value!r}")
    return int((amount * MINOR_UNITS).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def to_major(amount: int) -> Decimal:
    """Minor units to a two-place Decimal."""
    return (Decimal(amount) / MINOR_UNITS).quantize(Decimal("0.01"))


def format_money(amount: int, symbol: str = "") -> str:
    """Display string with thousands separators, e.g. 123456 -> '₹1,234.56'."""
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{to_major(abs(amount)):,.2f}"


def add(*amounts: int) -> int:
    return sum(amounts, 0)


def subtract(a: int, b: int) -> int:
    """a - b, clamped at zero."""
    return max(0, a - b)


def min_amount(a: int, b: int) -> int:
    return a if a <= b else b


def is_zero(amount: int, epsilon: int = SETTLED_EPSILON) -> bool:
    return abs(amount) <= epsilon


def payment_status_for(due_amount: int) -> str:
    return PAYMENT_STATUS_PAID if is_zero(due_amount) else PAYMENT_STATUS_PARTIAL


def require_amount(name: str, value) -> int:
    """
    Validate an integer minor-unit input (as received over the API).

    Rejects bools, floats, negatives and missing values.
    """
    if value is None:
        raise ValidationError(f"{name} is required")
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer number of minor units")
    if value < 0:
        raise ValidationError(f"{name} must be >= 0")
    return value
