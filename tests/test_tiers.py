"""
tests/test_tiers.py — Loyalty Tier Tests
=========================================
Threshold validation, tier lookup, admin floors and progress-to-next.
"""

from __future__ import annotations

import pytest

from stitchcoin.engine.tiers import (
    recompute_tier,
    tier_for,
    tier_progress,
    tier_rank,
    validate_thresholds,
)

THRESHOLDS = {"bronze": 0, "silver": 100, "gold": 500, "platinum": 1000}


class TestTierFor:
    @pytest.mark.parametrize(
        ("points", "expected"),
        [
            (0, "bronze"),
            (99, "bronze"),
            (100, "silver"),
            (499, "silver"),
            (500, "gold"),
            (999, "gold"),
            (1000, "platinum"),
            (25_000, "platinum"),
        ],
    )
    def test_boundaries(self, points, expected):
        assert tier_for(points, THRESHOLDS) == expected

    def test_defaults_when_no_thresholds(self):
        assert tier_for(150) == "silver"

    def test_monotonic_in_points(self):
        ranks = [tier_rank(tier_for(p, THRESHOLDS)) for p in range(0, 1500, 7)]
        assert ranks == sorted(ranks)

    def test_custom_thresholds(self):
        custom = {"bronze": 0, "silver": 10, "gold": 20, "platinum": 30}
        assert tier_for(25, custom) == "gold"


class TestRecomputeTier:
    def test_no_floor(self):
        assert recompute_tier(120, THRESHOLDS) == "silver"

    def test_floor_holds_tier_up(self):
        assert recompute_tier(0, THRESHOLDS, floor="gold") == "gold"

    def test_earned_tier_beats_lower_floor(self):
        assert recompute_tier(1200, THRESHOLDS, floor="silver") == "platinum"

    def test_unknown_floor_is_ignored(self):
        assert recompute_tier(0, THRESHOLDS, floor="diamond") == "bronze"


class TestValidateThresholds:
    def test_accepts_valid(self):
        assert validate_thresholds({**THRESHOLDS, "silver": "100"}) == THRESHOLDS

    def test_rejects_missing_tier(self):
        with pytest.raises(ValueError, match="platinum"):
            validate_thresholds({"bronze": 0, "silver": 100, "gold": 500})

    def test_rejects_non_ascending(self):
        with pytest.raises(ValueError, match="ascending"):
            validate_thresholds({"bronze": 0, "silver": 500, "gold": 500, "platinum": 900})

    def test_rejects_nonzero_bronze(self):
        with pytest.raises(ValueError, match="bronze"):
            validate_thresholds({"bronze": 5, "silver": 100, "gold": 500, "platinum": 900})

    def test_rejects_non_integer(self):
        with pytest.raises(ValueError, match="integer"):
            validate_thresholds({**THRESHOLDS, "gold": "lots"})

    def test_rejects_non_mapping(self):
        with pytest.raises(ValueError):
            validate_thresholds([0, 100, 500, 1000])  # type: ignore[arg-type]


class TestTierProgress:
    def test_halfway_to_gold(self):
        progress = tier_progress(300, THRESHOLDS)
        assert progress.tier == "silver"
        assert progress.next_tier == "gold"
        assert progress.next_threshold == 500
        assert progress.points_to_next == 200
        assert progress.progress_percent == 50.0
        assert progress.discount_percent == 5

    def test_platinum_is_complete(self):
        progress = tier_progress(2000, THRESHOLDS)
        assert progress.next_tier is None
        assert progress.points_to_next == 0
        assert progress.progress_percent == 100.0
        assert progress.discount_percent == 15

    def test_floor_tier_progress_is_clamped(self):
        """An admin-granted gold floor with 0 points shows 0% toward platinum."""
        progress = tier_progress(0, THRESHOLDS, tier="gold")
        assert progress.tier == "gold"
        assert progress.next_tier == "platinum"
        assert progress.points_to_next == 1000
        assert progress.progress_percent == 0.0

    def test_to_dict_keys(self):
        data = tier_progress(0, THRESHOLDS).to_dict()
        assert set(data) == {
            "tier", "points", "next_tier", "next_threshold",
            "points_to_next", "progress_percent", "discount_percent",
        }
