"""
Deterministic point rounding.

Points are rounded half-up (2.5 -> 3), not with Python's banker's rounding,
so that per-pick totals match the published point tables. Floats are routed
through their shortest repr to keep 0.1-style multipliers exact.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Union

Number = Union[int, float, Decimal]


def to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_half_up(value: Number) -> int:
    """Round to the nearest integer, ties away from zero."""
    return int(to_decimal(value).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def scale_points(points: int, multiplier: Number) -> int:
    """round_half_up(points * multiplier) computed in Decimal."""
    return round_half_up(to_decimal(points) * to_decimal(multiplier))
