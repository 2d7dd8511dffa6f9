"""Data models for the scoring engine."""

from __future__ import annotations

import json
from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from ttscore.logging import get_logger

log = get_logger(__name__)

# Point values beyond this cannot be scaled as floats without overflowing.
MAX_POINTS = 1_000_000_000

Points = Annotated[int, Field(ge=-MAX_POINTS, le=MAX_POINTS)]


class RankingFormula(str, Enum):
    """Curves mapping a ranking gap to a points multiplier."""
    LINEAR = "linear"
    EXPONENTIAL = "exponential"
    BRACKET = "bracket"


class PlacementFormula(str, Enum):
    """Ways of turning a final placement into points."""
    DYNAMIC = "dynamic"
    FIXED = "fixed"
    PERCENTAGE = "percentage"


class ScoringConfiguration(BaseModel):
    """Scoring rules of a single tournament.

    Every default lives here, so consumers always see a fully populated
    configuration. Field names follow Python conventions; the camelCase keys
    used by the stored JSON blob are accepted as aliases.

    ``ranking_formula`` and ``placement_points_formula`` are plain strings:
    unknown values are kept and the engine treats them as neutral.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    enabled: bool = False
    base_points: Points = 10

    # Winner adjustments
    use_ranking_multiplier: bool = False
    ranking_formula: str = RankingFormula.LINEAR.value
    bonus_for_upset: Points = 0

    # Loser penalties
    lose_penalty_enabled: bool = False
    lose_penalty_points: Points = 3
    use_lose_penalty_multiplier: bool = False
    penalty_for_loss: Points = 0

    custom_formula: str | None = None

    # Final placement
    placement_points_enabled: bool = False
    placement_points_formula: str = PlacementFormula.DYNAMIC.value
    champion_points: Points = 50
    runner_up_points: Points = 30
    semifinalist_points: Points = 20
    quarterfinalist_points: Points = 10

    @field_validator("ranking_formula", "placement_points_formula", mode="before")
    @classmethod
    def _formula_name(cls, value: Any) -> Any:
        if isinstance(value, Enum):
            return value.value
        return value

    @property
    def has_custom_formula(self) -> bool:
        return bool(self.custom_formula and self.custom_formula.strip())

    @classmethod
    def from_blob(cls, blob: dict[str, Any] | str | None) -> ScoringConfiguration:
        """Build a configuration from the JSON blob stored on a tournament.

        Fields that fail validation fall back to their defaults instead of
        rejecting the whole configuration. Never raises.
        """
        if blob is None:
            return cls()

        if isinstance(blob, str):
            try:
                blob = json.loads(blob)
            except json.JSONDecodeError as exc:
                log.warning("Scoring configuration is not valid JSON", error=str(exc))
                return cls()

        if not isinstance(blob, dict):
            log.warning("Scoring configuration is not an object", blob_type=type(blob).__name__)
            return cls()

        data = dict(blob)
        while True:
            try:
                return cls.model_validate(data)
            except ValidationError as exc:
                invalid = cls._keys_for_errors(exc, data)
                if not invalid:
                    log.warning("Scoring configuration rejected, using defaults", error=str(exc))
                    return cls()
                log.warning(
                    "Discarding invalid scoring configuration fields",
                    fields=sorted(invalid),
                )
                for key in invalid:
                    data.pop(key, None)

    @classmethod
    def _keys_for_errors(cls, exc: ValidationError, data: dict[str, Any]) -> set[str]:
        """Map validation errors back to the keys present in ``data``."""
        keys: set[str] = set()
        for error in exc.errors():
            if not error["loc"]:
                continue
            loc = str(error["loc"][0])
            for name, field in cls.model_fields.items():
                if loc in (name, field.alias):
                    keys.update(k for k in (name, field.alias) if k in data)
        return keys


class ScoringContext(BaseModel):
    """Per-call view of a match used by multipliers and custom formulas."""
    model_config = ConfigDict(frozen=True)

    winner_ranking: int
    loser_ranking: int
    base_points: int
    set_score: str = ""
    is_upset: bool
    ranking_difference: int

    @classmethod
    def build(
        cls,
        winner_ranking: int,
        loser_ranking: int,
        base_points: int,
        set_score: str = "",
    ) -> ScoringContext:
        # A larger ranking number is a weaker player.
        return cls(
            winner_ranking=winner_ranking,
            loser_ranking=loser_ranking,
            base_points=base_points,
            set_score=set_score,
            is_upset=winner_ranking > loser_ranking,
            ranking_difference=abs(winner_ranking - loser_ranking),
        )

    def inverted(self) -> ScoringContext:
        """Context seen from the loser's side, used to scale the loss penalty.

        Rankings swap roles. ``is_upset`` is true when the loser was ranked
        better than the winner, so the "upset" branch of a multiplier formula
        makes the penalty larger and the favourite branch makes it smaller.
        """
        return self.model_copy(update={
            "winner_ranking": self.loser_ranking,
            "loser_ranking": self.winner_ranking,
            "is_upset": self.loser_ranking < self.winner_ranking,
        })


class ScoringResult(BaseModel):
    """Point deltas produced for one match.

    ``loser_points`` is a signed delta and is not clamped; callers clamp the
    athlete's cumulative total.
    """
    model_config = ConfigDict(frozen=True)

    winner_points: int = 0
    loser_points: int = 0
    bonus_points: int = 0
    penalty_points: int = 0
    total_points: int = 0
    explanation: tuple[str, ...] = ()


class PlacementResult(BaseModel):
    """Points awarded for a final tournament placement."""
    model_config = ConfigDict(frozen=True)

    athlete_id: str
    placement: int
    placement_points: int = 0
    explanation: tuple[str, ...] = ()
