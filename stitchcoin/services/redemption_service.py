"""
stitchcoin.services.redemption_service — Points Reward Catalog
===============================================================

Members spend loyalty points on catalog rewards.  Redemption debits the
points and, for coin packs, credits the coins in the same unit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from stitchcoin.database.models import LedgerKind, TransactionType
from stitchcoin.engine.records import resolve_now
from stitchcoin.engine.rules import RewardRules
from stitchcoin.errors import UnknownRewardError
from stitchcoin.services import ledger_service

if TYPE_CHECKING:
    from stitchcoin.engine.cache import ConfigCache
    from stitchcoin.services.ledger_store import LedgerStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CatalogReward:
    id: str
    name: str
    description: str
    type: str
    cost: int
    value: int
    icon: str
    cost_type: str = "points"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "type": self.type,
            "cost": self.cost,
            "cost_type": self.cost_type,
            "value": self.value,
            "icon": self.icon,
        }


REWARD_CATALOG: tuple[CatalogReward, ...] = (
    CatalogReward("discount_5", "$5 Discount", "Get $5 off your next order",
                  "discount", cost=100, value=5, icon="💰"),
    CatalogReward("discount_10", "$10 Discount", "Get $10 off your next order",
                  "discount", cost=200, value=10, icon="💵"),
    CatalogReward("free_shipping", "Free Shipping", "Free shipping on your next order",
                  "shipping", cost=50, value=0, icon="📦"),
    CatalogReward("exclusive_pattern", "Exclusive Pattern",
                  "Unlock a premium designer pattern",
                  "pattern", cost=200, value=0, icon="🧶"),
    CatalogReward("vip_support", "VIP Support",
                  "Get priority customer service for 30 days",
                  "service", cost=300, value=0, icon="👑"),
    CatalogReward("coin_pack_small", "Small Coin Pack", "Get 50 bonus coins",
                  "coins", cost=100, value=50, icon="🪙"),
    CatalogReward("coin_pack_medium", "Medium Coin Pack", "Get 150 bonus coins",
                  "coins", cost=250, value=150, icon="💰"),
    CatalogReward("coin_pack_large", "Large Coin Pack", "Get 400 bonus coins",
                  "coins", cost=500, value=400, icon="💎"),
)

_CATALOG_BY_ID = {r.id: r for r in REWARD_CATALOG}


def get_reward(reward_id: str) -> CatalogReward:
    try:
        return _CATALOG_BY_ID[reward_id]
    except KeyError:
        raise UnknownRewardError(f"Reward not found: {reward_id}") from None


def list_catalog(store: LedgerStore, user_id: str) -> dict:
    """Catalog annotated with what the member can currently afford."""
    profile = store.peek_profile(user_id)
    coins = profile.coin_balance if profile else 0
    points = profile.point_balance if profile else 0
    return {
        "rewards": [
            {**r.to_dict(), "can_afford": points >= r.cost, "user_balance": points}
            for r in REWARD_CATALOG
        ],
        "user_balance": {"coins": coins, "points": points},
    }


def redeem_reward(
    store: LedgerStore,
    cache: ConfigCache,
    user_id: str,
    reward_id: str,
    *,
    now: datetime | None = None,
) -> dict:
    """Spend points on *reward_id*.

    Raises ``UnknownRewardError`` or ``InsufficientBalanceError``; in both
    cases nothing is written.
    """
    reward = get_reward(reward_id)
    rules = RewardRules.from_cache(cache)
    now = resolve_now(now)

    with store.unit(user_id) as unit:
        ledger_service.post_delta(
            unit, LedgerKind.POINT, -reward.cost, TransactionType.REWARD_REDEMPTION,
            f"Redeemed reward: {reward.name}",
            rules=rules, now=now, reference=reward.id,
        )
        coins_added = 0
        if reward.type == "coins" and reward.value > 0:
            ledger_service.post_delta(
                unit, LedgerKind.COIN, reward.value, TransactionType.REWARD_REDEMPTION,
                f"Bonus coins from reward: {reward.name}",
                rules=rules, now=now, reference=reward.id,
            )
            coins_added = reward.value
        profile = unit.snapshot()

    logger.info("User %s redeemed %s for %d points", user_id, reward.id, reward.cost)
    return {
        "message": f"Successfully redeemed {reward.name}!",
        "reward": {**reward.to_dict(), "coins_added": coins_added,
                   "redeemed_at": now.isoformat()},
        "new_balance": {"coins": profile.coin_balance, "points": profile.point_balance},
    }
