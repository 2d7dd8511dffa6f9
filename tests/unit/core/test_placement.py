"""Unit tests for final placement points."""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from ttscore.scoring.engine import PLACEMENT_DISABLED, ScoringEngine
from ttscore.scoring.models import ScoringConfiguration

pytestmark = pytest.mark.unit


def make_engine(formula: str = "dynamic", **overrides) -> ScoringEngine:
    return ScoringEngine(ScoringConfiguration(
        enabled=True,
        placement_points_enabled=True,
        placement_points_formula=formula,
        **overrides,
    ))


class TestDisabled:

    def test_scoring_disabled(self):
        engine = ScoringEngine(ScoringConfiguration(enabled=False, placement_points_enabled=True))

        result = engine.calculate_placement_points("a1", 1, 16)

        assert result.placement_points == 0
        assert result.athlete_id == "a1"
        assert result.placement == 1
        assert result.explanation == (PLACEMENT_DISABLED,)

    def test_placement_points_disabled(self):
        engine = ScoringEngine(ScoringConfiguration(enabled=True, placement_points_enabled=False))
        assert engine.calculate_placement_points("a1", 1, 16).explanation == (PLACEMENT_DISABLED,)


class TestFixed:
    """Tests for the fixed tier table."""

    @pytest.mark.parametrize(
        "placement,expected",
        [(1, 50), (2, 30), (3, 20), (4, 20), (5, 10), (8, 10), (9, 3), (12, 2), (16, 1), (20, 0), (100, 0)],
    )
    def test_tiers(self, placement, expected):
        result = make_engine("fixed").calculate_placement_points("a1", placement, 128)

        assert result.placement_points == expected
        assert result.explanation[-1] == f"Fixed formula: {expected} points"

    def test_custom_tier_points(self):
        engine = make_engine("fixed", champion_points=100, quarterfinalist_points=15)

        assert engine.calculate_placement_points("a1", 1, 8).placement_points == 100
        assert engine.calculate_placement_points("a1", 6, 8).placement_points == 15


class TestDynamic:
    """Tests for draw-size scaled points (log2(n) / 4)."""

    @pytest.mark.parametrize(
        "placement,expected",
        [(1, 50), (2, 30), (3, 20), (4, 20), (5, 10), (8, 10), (9, 8), (16, 8)],
    )
    def test_sixteen_participants_is_unscaled(self, placement, expected):
        assert make_engine().calculate_placement_points("a1", placement, 16).placement_points == expected

    @pytest.mark.parametrize(
        "placement,expected",
        [(1, 63), (2, 38), (3, 25), (5, 13), (9, 10), (16, 10), (17, 6), (32, 6)],
    )
    def test_thirty_two_participants(self, placement, expected):
        """Scale 1.25, with halves rounded up (62.5 -> 63)."""
        assert make_engine().calculate_placement_points("a1", placement, 32).placement_points == expected

    def test_deep_placements_use_relative_position(self):
        engine = make_engine()

        # 3 * 25/64 * 1.5 = 1.76
        assert engine.calculate_placement_points("a1", 40, 64).placement_points == 2
        assert engine.calculate_placement_points("a1", 64, 64).placement_points == 0

    def test_single_participant_scores_nothing(self):
        result = make_engine().calculate_placement_points("a1", 1, 1)

        assert result.placement_points == 0
        assert result.explanation == ("Placement: #1 (1 participants)", "Dynamic formula: 0 points")

    def test_larger_draws_are_worth_more(self):
        engine = make_engine()
        small = engine.calculate_placement_points("a1", 1, 8).placement_points
        large = engine.calculate_placement_points("a1", 1, 128).placement_points
        assert small < large


class TestPercentage:
    """Tests for points proportional to the share of athletes beaten."""

    @pytest.mark.parametrize(
        "placement,expected,share",
        [(1, 50, "100.0%"), (4, 35, "70.0%"), (10, 5, "10.0%")],
    )
    def test_share_of_champion_points(self, placement, expected, share):
        result = make_engine("percentage").calculate_placement_points("a1", placement, 10)

        assert result.placement_points == expected
        assert result.explanation[-1] == f"Percentage formula ({share}): {expected} points"

    def test_placement_beyond_participants_floored(self):
        assert make_engine("percentage").calculate_placement_points("a1", 15, 10).placement_points == 0


class TestEdgeCases:

    def test_header_line(self):
        result = make_engine().calculate_placement_points("a7", 3, 24)
        assert result.explanation[0] == "Placement: #3 (24 participants)"

    def test_unknown_formula_awards_nothing(self):
        result = make_engine("elo").calculate_placement_points("a1", 1, 16)

        assert result.placement_points == 0
        assert result.explanation[-1] == "Unknown placement formula 'elo': 0 points"

    @pytest.mark.parametrize("placement,participants", [(0, 16), (-1, 16), (1, 0), (3, -5)])
    def test_invalid_counts(self, placement, participants):
        result = make_engine().calculate_placement_points("a1", placement, participants)

        assert result.placement_points == 0
        assert result.explanation[-1] == "Invalid placement or participant count: 0 points"

    def test_format_does_not_change_points(self):
        engine = make_engine()
        assert (
            engine.calculate_placement_points("a1", 2, 32, "round_robin")
            == engine.calculate_placement_points("a1", 2, 32)
        )

    @given(
        formula=st.sampled_from(["dynamic", "fixed", "percentage", "other"]),
        placement=st.integers(min_value=-5, max_value=600),
        participants=st.integers(min_value=-5, max_value=512),
    )
    @settings(max_examples=200)
    def test_points_never_negative(self, formula, placement, participants):
        """Property test: placement points are always >= 0."""
        result = make_engine(formula).calculate_placement_points("a1", placement, participants)
        assert result.placement_points >= 0
