"""Ranking multipliers applied to base points and loss penalties."""

import math

from ttscore.logging import get_logger
from ttscore.scoring.models import RankingFormula

log = get_logger(__name__)

# Upset thresholds for the bracket formula: (minimum gap, exclusive) -> multiplier
_BRACKET_UPSET = ((50, 2.0), (25, 1.5), (10, 1.25))
_BRACKET_EXPECTED = ((50, 0.5), (25, 0.7), (10, 0.85))


def linear_multiplier(ranking_difference: int, is_upset: bool) -> float:
    """1% more per ranking position on upsets, 0.5% less otherwise (floor 0.5)."""
    if is_upset:
        return 1 + ranking_difference * 0.01
    return max(0.5, 1 - ranking_difference * 0.005)


def exponential_multiplier(ranking_difference: int, is_upset: bool) -> float:
    """Rewards large upsets much more than small ones (floor 0.3)."""
    if is_upset:
        return 1 + math.pow(ranking_difference / 100, 1.5)
    return max(0.3, 1 - math.pow(ranking_difference / 200, 1.2))


def bracket_multiplier(ranking_difference: int, is_upset: bool) -> float:
    """Stepped multiplier by ranking gap."""
    steps, fallback = (_BRACKET_UPSET, 1.1) if is_upset else (_BRACKET_EXPECTED, 0.95)
    for threshold, multiplier in steps:
        if ranking_difference > threshold:
            return multiplier
    return fallback


_FORMULAS = {
    RankingFormula.LINEAR.value: linear_multiplier,
    RankingFormula.EXPONENTIAL.value: exponential_multiplier,
    RankingFormula.BRACKET.value: bracket_multiplier,
}


def ranking_multiplier(formula: str, ranking_difference: int, is_upset: bool) -> float:
    """Multiplier for a ranking gap under the named formula.

    A gap of zero is always 1, whatever the formula. Unknown formula names are
    neutral (1) rather than an error.

    Args:
        formula: One of "linear", "exponential", "bracket"
        ranking_difference: Absolute gap between the two rankings
        is_upset: True when the weaker-ranked athlete won

    Returns:
        Multiplier to apply to a point value
    """
    if ranking_difference == 0:
        return 1.0

    if isinstance(formula, RankingFormula):
        formula = formula.value

    calculate = _FORMULAS.get(formula)
    if calculate is None:
        log.warning("Unknown ranking formula, multiplier disabled", formula=formula)
        return 1.0

    return calculate(ranking_difference, is_upset)
