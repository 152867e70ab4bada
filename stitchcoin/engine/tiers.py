"""
stitchcoin.engine.tiers — Loyalty Tier Evaluation
==================================================

Maps a lifetime point total onto a loyalty tier.  Thresholds come from the
``points.tier_thresholds`` setting and must be strictly ascending in tier
order (bronze < silver < gold < platinum), bronze starting at 0.

This module is pure calculation — no database I/O.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from stitchcoin.constants import DEFAULT_TIER_THRESHOLDS, TIER_BENEFITS, TIER_ORDER


def validate_thresholds(thresholds: Mapping[str, object]) -> dict[str, int]:
    """Return a clean ``tier → threshold`` dict or raise ``ValueError``."""
    if not isinstance(thresholds, Mapping):
        raise ValueError("tier thresholds must be a mapping")
    clean: dict[str, int] = {}
    previous: int | None = None
    for tier in TIER_ORDER:
        if tier.value not in thresholds:
            raise ValueError(f"missing threshold for tier {tier.value!r}")
        try:
            value = int(thresholds[tier.value])
        except (TypeError, ValueError):
            raise ValueError(f"threshold for {tier.value!r} is not an integer") from None
        if value < 0:
            raise ValueError(f"threshold for {tier.value!r} is negative")
        if previous is not None and value <= previous:
            raise ValueError("tier thresholds must be strictly ascending")
        clean[tier.value] = value
        previous = value
    if clean[TIER_ORDER[0].value] != 0:
        raise ValueError(f"{TIER_ORDER[0].value!r} threshold must be 0")
    return clean


def tier_rank(tier: str | None) -> int:
    """Position of *tier* in :data:`TIER_ORDER`; -1 for None/unknown."""
    for index, candidate in enumerate(TIER_ORDER):
        if candidate.value == tier:
            return index
    return -1


def tier_for(points: int, thresholds: Mapping[str, int] | None = None) -> str:
    """Highest tier whose threshold is ≤ *points*."""
    thresholds = thresholds or DEFAULT_TIER_THRESHOLDS
    current = TIER_ORDER[0].value
    for tier in TIER_ORDER:
        if points >= thresholds[tier.value]:
            current = tier.value
    return current


def recompute_tier(
    lifetime_points: int,
    thresholds: Mapping[str, int] | None = None,
    floor: str | None = None,
) -> str:
    """Threshold tier, never below an admin-granted *floor*."""
    earned = tier_for(lifetime_points, thresholds)
    if tier_rank(floor) > tier_rank(earned):
        return floor  # type: ignore[return-value]
    return earned


@dataclass(frozen=True, slots=True)
class TierProgress:
    """Where a member stands on the tier ladder."""

    tier: str
    points: int
    next_tier: str | None
    next_threshold: int | None
    points_to_next: int
    progress_percent: float
    discount_percent: int

    def to_dict(self) -> dict:
        return {
            "tier": self.tier,
            "points": self.points,
            "next_tier": self.next_tier,
            "next_threshold": self.next_threshold,
            "points_to_next": self.points_to_next,
            "progress_percent": self.progress_percent,
            "discount_percent": self.discount_percent,
        }


def tier_progress(
    points: int,
    thresholds: Mapping[str, int] | None = None,
    tier: str | None = None,
) -> TierProgress:
    """Progress from the current tier toward the next one.

    *tier* overrides the threshold tier (e.g. an admin floor); progress is
    still measured in points from that tier's threshold.
    """
    thresholds = thresholds or DEFAULT_TIER_THRESHOLDS
    tier = tier or tier_for(points, thresholds)
    rank = tier_rank(tier)
    benefits = TIER_BENEFITS.get(tier, {})

    if rank < 0 or rank == len(TIER_ORDER) - 1:
        return TierProgress(
            tier=tier,
            points=points,
            next_tier=None,
            next_threshold=None,
            points_to_next=0,
            progress_percent=100.0,
            discount_percent=benefits.get("discount_percent", 0),
        )

    next_tier = TIER_ORDER[rank + 1].value
    floor_points = thresholds[tier]
    ceiling = thresholds[next_tier]
    span = ceiling - floor_points
    gained = min(max(points - floor_points, 0), span)
    return TierProgress(
        tier=tier,
        points=points,
        next_tier=next_tier,
        next_threshold=ceiling,
        points_to_next=max(ceiling - points, 0),
        progress_percent=round(gained / span * 100, 1) if span else 100.0,
        discount_percent=benefits.get("discount_percent", 0),
    )
