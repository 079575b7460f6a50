"""Numeric helpers shared by the calculators.

Every calculator input passes through ``to_number`` and ``clamp`` so that no
well-typed value (None, NaN, negative, above max) can make a recomputation
raise.
"""

from __future__ import annotations

import math
from typing import Any


def to_number(value: Any) -> float:
    """Coerce a raw mark to a finite float; anything unusable becomes 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number


def clamp(value: Any, lower: float, upper: float) -> float:
    number = to_number(value)
    if upper < lower:
        upper = lower
    return min(max(number, lower), upper)


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive marks (2.5 → 3, not 2)."""
    # Absorb float noise such as 22.499999999999996 before flooring
    return int(math.floor(round(value, 9) + 0.5))
