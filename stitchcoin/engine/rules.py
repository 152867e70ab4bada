"""
stitchcoin.engine.rules — Reward tuning snapshot
=================================================

Collects every reward tuning knob from the :class:`ConfigCache` into one
immutable object, so a single claim or purchase sees a consistent set of
values even if an admin edits settings mid-request.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import tzinfo
from typing import TYPE_CHECKING

from stitchcoin.constants import DEFAULT_TIER_THRESHOLDS
from stitchcoin.engine.streaks import resolve_timezone
from stitchcoin.engine.tiers import validate_thresholds

if TYPE_CHECKING:
    from stitchcoin.engine.cache import ConfigCache

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RewardRules:
    """Immutable reward configuration used by the claim and ledger services."""

    daily_claim_amount: int = 10
    streak_bonus_enabled: bool = True
    streak_bonus_amount: int = 5
    streak_bonus_threshold: int = 7
    purchase_bonus_enabled: bool = True
    purchase_bonus_rate: float = 1.0
    purchase_points_rate: float = 10.0
    tier_thresholds: dict[str, int] = field(
        default_factory=lambda: dict(DEFAULT_TIER_THRESHOLDS)
    )
    timezone_name: str = "UTC"
    activity_window_days: int = 30

    @property
    def timezone(self) -> tzinfo:
        return resolve_timezone(self.timezone_name)

    @classmethod
    def from_cache(cls, cache: ConfigCache) -> RewardRules:
        """Build rules from the settings cache, falling back to defaults."""
        defaults = cls()

        thresholds = cache.get_setting("points.tier_thresholds", None)
        if thresholds is None:
            thresholds = dict(DEFAULT_TIER_THRESHOLDS)
        else:
            try:
                thresholds = validate_thresholds(thresholds)
            except ValueError:
                logger.warning(
                    "Invalid points.tier_thresholds %r — using defaults", thresholds
                )
                thresholds = dict(DEFAULT_TIER_THRESHOLDS)

        tz_name = cache.get_str("claims.timezone", defaults.timezone_name) or "UTC"
        try:
            resolve_timezone(tz_name)
        except (KeyError, ValueError):
            logger.warning("Unknown claims.timezone %r — using UTC", tz_name)
            tz_name = "UTC"

        return cls(
            daily_claim_amount=cache.get_int(
                "coins.daily_claim_amount", defaults.daily_claim_amount
            ),
            streak_bonus_enabled=cache.get_bool(
                "coins.streak_bonus_enabled", defaults.streak_bonus_enabled
            ),
            streak_bonus_amount=cache.get_int(
                "coins.streak_bonus_amount", defaults.streak_bonus_amount
            ),
            streak_bonus_threshold=cache.get_int(
                "coins.streak_bonus_threshold", defaults.streak_bonus_threshold
            ),
            purchase_bonus_enabled=cache.get_bool(
                "coins.purchase_bonus_enabled", defaults.purchase_bonus_enabled
            ),
            purchase_bonus_rate=cache.get_float(
                "coins.purchase_bonus_rate", defaults.purchase_bonus_rate
            ),
            purchase_points_rate=cache.get_float(
                "points.purchase_points_rate", defaults.purchase_points_rate
            ),
            tier_thresholds=thresholds,
            timezone_name=tz_name,
            activity_window_days=max(
                1,
                cache.get_int(
                    "analytics.activity_window_days", defaults.activity_window_days
                ),
            ),
        )
