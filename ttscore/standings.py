"""Season standings updated from scoring engine results.

The engine returns deltas. This module applies them to athletes' running
totals, clamping each total at 0 so a loss penalty can never push an athlete
into negative points, and orders the ranking table.
"""

from collections.abc import Iterable

from pydantic import BaseModel, ConfigDict

from ttscore.logging import get_logger
from ttscore.scoring.models import PlacementResult, ScoringResult

log = get_logger(__name__)


class AthleteStanding(BaseModel):
    """An athlete's accumulated season record."""
    model_config = ConfigDict(frozen=True)

    athlete_id: str
    name: str
    points: int = 0
    wins: int = 0
    losses: int = 0


def apply_match_result(
    winner: AthleteStanding,
    loser: AthleteStanding,
    result: ScoringResult,
) -> tuple[AthleteStanding, AthleteStanding]:
    """Apply one match's deltas to both athletes.

    Args:
        winner: Standing of the winner before the match
        loser: Standing of the loser before the match
        result: Engine output for the match

    Returns:
        Updated (winner, loser) standings
    """
    loser_total = loser.points + result.loser_points
    if loser_total < 0:
        log.debug(
            "Loser total clamped at zero",
            athlete_id=loser.athlete_id,
            points=loser.points,
            delta=result.loser_points,
        )

    return (
        winner.model_copy(update={
            "points": winner.points + result.winner_points,
            "wins": winner.wins + 1,
        }),
        loser.model_copy(update={
            "points": max(0, loser_total),
            "losses": loser.losses + 1,
        }),
    )


def apply_placement_result(standing: AthleteStanding, result: PlacementResult) -> AthleteStanding:
    """Add final placement points to an athlete's standing."""
    if standing.athlete_id != result.athlete_id:
        raise ValueError(
            f"Placement result for {result.athlete_id!r} applied to {standing.athlete_id!r}"
        )
    return standing.model_copy(update={"points": standing.points + result.placement_points})


def rank_standings(standings: Iterable[AthleteStanding]) -> list[tuple[int, AthleteStanding]]:
    """Order standings for the ranking table.

    Sorted by points, then wins, then fewest losses, then name. Athletes
    level on points, wins and losses share a rank (1, 2, 2, 4).
    """
    ordered = sorted(standings, key=lambda s: (-s.points, -s.wins, s.losses, s.name))

    ranked: list[tuple[int, AthleteStanding]] = []
    previous_key = None
    rank = 0
    for position, standing in enumerate(ordered, 1):
        key = (standing.points, standing.wins, standing.losses)
        if key != previous_key:
            rank = position
            previous_key = key
        ranked.append((rank, standing))

    return ranked
