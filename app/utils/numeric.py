"""Small numeric helpers shared by the scoring services."""

from __future__ import annotations

import math


def round_half_up(value: float, digits: int = 0) -> float:
    """Round ``value`` to ``digits`` decimals with halves rounded upwards.

    Python's built-in ``round`` uses banker's rounding (``round(12.5) == 12``),
    which would shift percentages such as 1/8 = 12.5% down to 12.  Scores
    and percentages in this project always round .5 towards +infinity.
    """
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def population_variance(values: list[float]) -> float:
    """Mean squared deviation from the mean; 0.0 for an empty list."""
    if not values:
        return 0.0
    mean = sum(values) / len(values)
    return sum((v - mean) ** 2 for v in values) / len(values)
