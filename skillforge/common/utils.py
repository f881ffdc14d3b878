"""
Numeric helpers shared by the calculators.
"""

import math
from typing import Iterable, Union

Number = Union[int, float]


def round_half_up(value: float) -> int:
    """
    Round to the nearest integer, with halves rounding towards +infinity.

    Python's built-in ``round`` uses banker's rounding (``round(2.5) == 2``),
    which would make point totals drift from the published tables.
    """
    return int(math.floor(value + 0.5))


def clamp(value: Number, lower: Number, upper: Number) -> Number:
    """Clamp ``value`` into ``[lower, upper]``."""
    return max(lower, min(value, upper))


def mean(values: Iterable[Number]) -> float:
    """Arithmetic mean; 0.0 for an empty iterable."""
    values = list(values)
    if not values:
        return 0.0
    return sum(values) / len(values)
