"""Scoring engine turning match outcomes and placements into point deltas."""

from __future__ import annotations

import math
from typing import Any, NamedTuple

from structlog.contextvars import bound_contextvars

from ttscore.logging import get_logger
from ttscore.models import MatchRecord, TournamentRecord
from ttscore.scoring.display import explain_scoring_system
from ttscore.scoring.formula import FormulaError, FormulaEvaluator, get_formula_evaluator
from ttscore.scoring.models import (
    PlacementFormula,
    PlacementResult,
    ScoringConfiguration,
    ScoringContext,
    ScoringResult,
)
from ttscore.scoring.multipliers import ranking_multiplier
from ttscore.scoring.rounding import round_half_up

log = get_logger(__name__)

SCORING_DISABLED = "Scoring system not enabled"
PLACEMENT_DISABLED = "Placement points not enabled"
NO_SCORING_SYSTEM = "Tournament has no scoring system configured"


class _Step(NamedTuple):
    """Outcome of one calculation step: new running value and lines to record."""
    value: float
    lines: tuple[str, ...] = ()


def _fmt(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.2f}".rstrip("0").rstrip(".")


class ScoringEngine:
    """Calculates match and placement points for one tournament.

    The engine only holds the tournament's read-only configuration, so a
    single instance can be shared across threads and requests. Calculations
    never raise: a broken custom formula is reported in the explanation and
    unknown formula names are treated as neutral.
    """

    def __init__(
        self,
        config: ScoringConfiguration | dict[str, Any] | None = None,
        formula_evaluator: FormulaEvaluator | None = None,
    ):
        """Initialize the engine.

        Args:
            config: Scoring configuration, or the raw JSON blob stored on the
                tournament (missing or invalid fields take their defaults)
            formula_evaluator: Evaluator for custom formulas (shared one if None)
        """
        if isinstance(config, ScoringConfiguration):
            self.config = config
        else:
            self.config = ScoringConfiguration.from_blob(config)
        self.formula_evaluator = formula_evaluator or get_formula_evaluator()

    # ------------------------------------------------------------------
    # Match points
    # ------------------------------------------------------------------

    def calculate_points(
        self,
        match: MatchRecord | str | None,
        winner_ranking: int,
        loser_ranking: int,
    ) -> ScoringResult:
        """Calculate the points won and lost in one match.

        Args:
            match: The match (or just its score text); only used for display
            winner_ranking: Ranking of the winner, 1 being the best
            loser_ranking: Ranking of the loser, 1 being the best

        Returns:
            ScoringResult with a clamped winner total, a signed loser delta
            and the ordered explanation of every adjustment
        """
        config = self.config
        if not config.enabled:
            return ScoringResult(explanation=(SCORING_DISABLED,))

        set_score = match.score if isinstance(match, MatchRecord) else match
        context = ScoringContext.build(
            winner_ranking=winner_ranking,
            loser_ranking=loser_ranking,
            base_points=config.base_points,
            set_score=set_score or "",
        )

        explanation: tuple[str, ...] = (
            "=== WINNER ===",
            f"Base points: {context.base_points}",
        )

        winner = self._apply_ranking_multiplier(context, context.base_points)
        explanation += winner.lines

        bonus = self._apply_upset_bonus(context, winner.value)
        bonus_points = int(bonus.value - winner.value)
        explanation += bonus.lines

        loser = self._loser_penalty(context)
        explanation += loser.lines

        custom = self._apply_custom_formula(context, bonus.value)
        explanation += custom.lines

        winner_points = max(0, round_half_up(custom.value))
        loser_points = round_half_up(loser.value)

        log.debug(
            "Match points calculated",
            winner_ranking=winner_ranking,
            loser_ranking=loser_ranking,
            is_upset=context.is_upset,
            winner_points=winner_points,
            loser_points=loser_points,
        )

        return ScoringResult(
            winner_points=winner_points,
            loser_points=loser_points,
            bonus_points=bonus_points,
            penalty_points=abs(min(0, loser_points)),
            total_points=winner_points,
            explanation=explanation,
        )

    def _multiplier(self, context: ScoringContext) -> float:
        return ranking_multiplier(
            self.config.ranking_formula, context.ranking_difference, context.is_upset
        )

    def _apply_ranking_multiplier(self, context: ScoringContext, points: float) -> _Step:
        if not self.config.use_ranking_multiplier:
            return _Step(points)

        multiplier = self._multiplier(context)
        if multiplier == 1:
            return _Step(points)

        new_points = round_half_up(points * multiplier)
        return _Step(
            new_points,
            (f"Ranking multiplier ({multiplier:.2f}): {_fmt(points)} -> {new_points}",),
        )

    def _apply_upset_bonus(self, context: ScoringContext, points: float) -> _Step:
        bonus = self.config.bonus_for_upset
        if not context.is_upset or bonus <= 0:
            return _Step(points)

        return _Step(
            points + bonus,
            (f"Upset bonus: +{bonus} (beat opponent ranked #{context.loser_ranking})",),
        )

    def _loser_penalty(self, context: ScoringContext) -> _Step:
        """Signed points delta for the loser, 0 when penalties are off."""
        config = self.config
        if not config.lose_penalty_enabled:
            return _Step(0)

        penalty = -config.lose_penalty_points
        lines = ("", "=== LOSER ===", f"Base penalty: -{config.lose_penalty_points}")

        if config.use_lose_penalty_multiplier:
            multiplier = self._multiplier(context.inverted())
            if multiplier != 1:
                scaled = round_half_up(penalty * multiplier)
                lines += (f"Penalty multiplier ({multiplier:.2f}): {penalty} -> {scaled}",)
                penalty = scaled

        if not context.is_upset and config.penalty_for_loss > 0:
            penalty -= config.penalty_for_loss
            lines += (f"Extra loss penalty (favourite won): -{config.penalty_for_loss}",)

        return _Step(penalty, lines)

    def _apply_custom_formula(self, context: ScoringContext, points: float) -> _Step:
        if not self.config.has_custom_formula:
            return _Step(points)

        try:
            result = self.formula_evaluator.evaluate(self.config.custom_formula, context, points)
        except FormulaError as exc:
            log.warning(
                "Custom formula failed, keeping previous points",
                formula=self.config.custom_formula,
                error=str(exc),
            )
            return _Step(points, (f"Custom formula error: {exc}",))

        if result == points:
            return _Step(points)
        return _Step(result, (f"Custom formula: {_fmt(points)} -> {_fmt(result)}",))

    # ------------------------------------------------------------------
    # Placement points
    # ------------------------------------------------------------------

    def calculate_placement_points(
        self,
        athlete_id: str,
        placement: int,
        total_participants: int,
        tournament_format: str = "single_elimination",
    ) -> PlacementResult:
        """Calculate the points for an athlete's final placement.

        Args:
            athlete_id: Athlete receiving the points
            placement: Final standing, 1 being the champion
            total_participants: Number of athletes in the category
            tournament_format: Format of the tournament (recorded, not used)

        Returns:
            PlacementResult with non-negative points and an explanation
        """
        config = self.config
        if not config.enabled or not config.placement_points_enabled:
            return PlacementResult(
                athlete_id=athlete_id,
                placement=placement,
                explanation=(PLACEMENT_DISABLED,),
            )

        header = f"Placement: #{placement} ({total_participants} participants)"
        if placement < 1 or total_participants < 1:
            return PlacementResult(
                athlete_id=athlete_id,
                placement=placement,
                explanation=(header, "Invalid placement or participant count: 0 points"),
            )

        formula = config.placement_points_formula
        if formula == PlacementFormula.DYNAMIC:
            points = self._dynamic_placement_points(placement, total_participants)
            line = f"Dynamic formula: {points} points"
        elif formula == PlacementFormula.FIXED:
            points = self._fixed_placement_points(placement)
            line = f"Fixed formula: {points} points"
        elif formula == PlacementFormula.PERCENTAGE:
            percentage = (total_participants - placement + 1) / total_participants
            points = round_half_up(config.champion_points * percentage)
            line = f"Percentage formula ({percentage * 100:.1f}%): {points} points"
        else:
            log.warning("Unknown placement formula, no points awarded", formula=formula)
            points = 0
            line = f"Unknown placement formula {formula!r}: 0 points"

        points = max(0, points)
        log.debug(
            "Placement points calculated",
            athlete_id=athlete_id,
            placement=placement,
            total_participants=total_participants,
            tournament_format=tournament_format,
            placement_points=points,
        )

        return PlacementResult(
            athlete_id=athlete_id,
            placement=placement,
            placement_points=points,
            explanation=(header, line),
        )

    def _dynamic_placement_points(self, placement: int, total_participants: int) -> int:
        """Tier points scaled by the size of the draw (log2(n) / 4).

        Table tennis has no third-place match, so both losing semifinalists
        share the same tier.
        """
        config = self.config
        scale = math.log2(total_participants) / 4

        if placement == 1:
            base = config.champion_points
        elif placement == 2:
            base = config.runner_up_points
        elif placement <= 4:
            base = config.semifinalist_points
        elif placement <= 8:
            base = config.quarterfinalist_points
        elif placement <= 16:
            base = 8
        elif placement <= 32:
            base = 5
        else:
            relative_position = (total_participants - placement + 1) / total_participants
            base = 3 * relative_position

        return round_half_up(base * scale)

    def _fixed_placement_points(self, placement: int) -> int:
        config = self.config
        if placement == 1:
            return config.champion_points
        if placement == 2:
            return config.runner_up_points
        if placement <= 4:
            return config.semifinalist_points
        if placement <= 8:
            return config.quarterfinalist_points
        return max(0, 5 - placement // 4)

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    @staticmethod
    def explain_scoring_system(config: ScoringConfiguration | dict[str, Any] | None) -> list[str]:
        """Describe the active rules of a configuration for admins."""
        return explain_scoring_system(config)


def calculate_match_points(
    match: MatchRecord,
    tournament: TournamentRecord,
    winner_ranking: int,
    loser_ranking: int,
) -> ScoringResult:
    """Score a match with the rules stored on its tournament."""
    if tournament.scoring_system is None:
        return ScoringResult(explanation=(NO_SCORING_SYSTEM,))

    with bound_contextvars(tournament_id=tournament.id, match_id=match.id):
        engine = ScoringEngine(tournament.scoring_system)
        return engine.calculate_points(match, winner_ranking, loser_ranking)
