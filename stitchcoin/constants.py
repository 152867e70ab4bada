"""
stitchcoin.constants — Shared Constants
========================================

Single source of truth for tier ordering, tier defaults and presentation
labels.  Import from here instead of duplicating in services and routes.
"""

from __future__ import annotations

from stitchcoin.database.models import LoyaltyTier, TransactionType

# ---------------------------------------------------------------------------
# Loyalty tiers
# ---------------------------------------------------------------------------
TIER_ORDER: tuple[LoyaltyTier, ...] = (
    LoyaltyTier.BRONZE,
    LoyaltyTier.SILVER,
    LoyaltyTier.GOLD,
    LoyaltyTier.PLATINUM,
)

DEFAULT_TIER_THRESHOLDS: dict[str, int] = {
    LoyaltyTier.BRONZE.value: 0,
    LoyaltyTier.SILVER.value: 100,
    LoyaltyTier.GOLD.value: 500,
    LoyaltyTier.PLATINUM.value: 1000,
}

# Checkout discount (percent) unlocked by each tier
TIER_BENEFITS: dict[str, dict[str, int]] = {
    LoyaltyTier.BRONZE.value: {"discount_percent": 0},
    LoyaltyTier.SILVER.value: {"discount_percent": 5},
    LoyaltyTier.GOLD.value: {"discount_percent": 10},
    LoyaltyTier.PLATINUM.value: {"discount_percent": 15},
}


# ---------------------------------------------------------------------------
# Ledger presentation (used by history endpoints)
# ---------------------------------------------------------------------------
TRANSACTION_LABELS: dict[str, str] = {
    TransactionType.DAILY_CLAIM: "Daily reward",
    TransactionType.STREAK_BONUS: "Streak bonus",
    TransactionType.PURCHASE_BONUS: "Purchase bonus",
    TransactionType.PURCHASE_POINTS: "Purchase points",
    TransactionType.REWARD_REDEMPTION: "Reward redemption",
    TransactionType.ADMIN_ADJUSTMENT: "Admin adjustment",
}
