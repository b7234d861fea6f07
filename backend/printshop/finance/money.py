"""Currency rounding helpers (2 decimal places, half-up)."""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Union

Number = Union[int, float, Decimal, str]

CENT = Decimal("0.01")


def to_decimal(value: Number) -> Decimal:
    # str() first so 0.1 becomes Decimal("0.1"), not its binary expansion
    return value if isinstance(value, Decimal) else Decimal(str(value))


def round2(value: Number) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def money(value: Number) -> float:
    """Round to cents and hand back a float for storage."""
    return float(round2(value))
