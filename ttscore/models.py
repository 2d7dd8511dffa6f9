"""Records supplied by the tournament system to the scoring engine."""

from enum import Enum
from typing import Any

from pydantic import BaseModel


class MatchStatus(str, Enum):
    """Lifecycle state of a match."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    WALKOVER = "walkover"  # one athlete did not show up


class MatchRecord(BaseModel):
    """A match as stored by the tournament system.

    Only ``score`` is read by the scoring engine, and only for display. Who won
    and the rankings of both athletes are resolved by the caller.
    """
    id: str
    score: str | None = None  # e.g. "3-1" or "11-9, 8-11, 11-7, 11-5"
    status: MatchStatus = MatchStatus.PENDING


class TournamentRecord(BaseModel):
    """A tournament with its scoring rules stored as a loosely-typed JSON blob."""
    id: str
    name: str
    scoring_system: dict[str, Any] | None = None
