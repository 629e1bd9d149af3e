"""
Rounding Helpers

Percentages are rounded half away from zero (2.5 -> 3), not with Python's
banker's rounding.
"""

from decimal import ROUND_HALF_UP, Decimal


def round_half_up(value: float) -> int:
    """Round a number to the nearest integer, halves rounding up."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def percent(part: float, whole: float) -> int:
    """Return part/whole as a rounded percentage, or 0 when whole is 0."""
    if whole <= 0:
        return 0
    return round_half_up(part / whole * 100)
