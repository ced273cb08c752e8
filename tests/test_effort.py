"""Tests for effort estimation."""

from __future__ import annotations

from feature_advisor.effort import MIN_HOURS, estimate_effort
from feature_advisor.models import Confidence


class TestEstimateEffort:
    """Tests for estimate_effort."""

    def test_complete_feature_has_floor(self) -> None:
        """Test that a finished feature still costs the minimum hours."""
        assert estimate_effort(100).hours == MIN_HOURS

    def test_base_without_multipliers(self) -> None:
        """Test 0.6h per missing completeness point."""
        estimate = estimate_effort(50)

        assert estimate.base_hours == 30
        assert estimate.hours == 30
        assert estimate.confidence is Confidence.ESTIMATED

    def test_non_increasing_in_completeness(self) -> None:
        """Test that more complete features never cost more."""
        hours = [
            estimate_effort(total, line_count=600, component_count=4, test_score=12).hours
            for total in range(0, 101, 5)
        ]

        assert hours == sorted(hours, reverse=True)

    def test_multipliers_compound(self) -> None:
        """Test size, test-gap and integration multipliers together."""
        estimate = estimate_effort(
            0, line_count=1200, component_count=6, test_score=5, dependent_count=3
        )

        assert estimate.multipliers == {
            "loc": 1.4,
            "components": 1.4,
            "test_gap": 1.5,
            "integration": 1.3,
        }
        assert estimate.hours == round(60 * 1.4 * 1.4 * 1.5 * 1.3)

    def test_two_multipliers_are_heuristic(self) -> None:
        """Test confidence drops to HEURISTIC when two multipliers apply."""
        assert estimate_effort(50, test_score=18).confidence is Confidence.ESTIMATED
        assert (
            estimate_effort(50, test_score=18, dependent_count=1).confidence
            is Confidence.HEURISTIC
        )

    def test_out_of_range_completeness_clamped(self) -> None:
        """Test that totals outside 0-100 are clamped."""
        assert estimate_effort(150).hours == MIN_HOURS
        assert estimate_effort(-10).base_hours == estimate_effort(0).base_hours

    def test_to_dict(self) -> None:
        """Test serialization uses confidence values."""
        data = estimate_effort(40).to_dict()

        assert data["confidence"] == "ESTIMATED"
        assert data["base_hours"] == 36.0
