"""Rounding shared by every point calculation."""

import math


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves towards positive infinity.

    Stored point totals were produced with this rule (12.5 -> 13, -2.5 -> -2),
    which differs from Python's round-half-to-even.
    """
    return math.floor(value + 0.5)
