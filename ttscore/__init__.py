"""ttscore: ranking points for table-tennis tournaments."""

from ttscore.models import MatchRecord, MatchStatus, TournamentRecord
from ttscore.scoring import (
    PlacementResult,
    ScoringConfiguration,
    ScoringEngine,
    ScoringResult,
    calculate_match_points,
    explain_scoring_system,
)
from ttscore.standings import (
    AthleteStanding,
    apply_match_result,
    apply_placement_result,
    rank_standings,
)

__all__ = [
    "AthleteStanding",
    "MatchRecord",
    "MatchStatus",
    "PlacementResult",
    "ScoringConfiguration",
    "ScoringEngine",
    "ScoringResult",
    "TournamentRecord",
    "apply_match_result",
    "apply_placement_result",
    "calculate_match_points",
    "explain_scoring_system",
    "rank_standings",
]
