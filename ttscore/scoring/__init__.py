"""Scoring engine for table-tennis matches and final placements."""

from ttscore.scoring.display import explain_scoring_system
from ttscore.scoring.engine import ScoringEngine, calculate_match_points
from ttscore.scoring.formula import FormulaError, FormulaEvaluator
from ttscore.scoring.models import (
    PlacementFormula,
    PlacementResult,
    RankingFormula,
    ScoringConfiguration,
    ScoringContext,
    ScoringResult,
)

__all__ = [
    "ScoringEngine",
    "calculate_match_points",
    "explain_scoring_system",
    "FormulaError",
    "FormulaEvaluator",
    "PlacementFormula",
    "PlacementResult",
    "RankingFormula",
    "ScoringConfiguration",
    "ScoringContext",
    "ScoringResult",
]
