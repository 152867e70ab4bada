"""
stitchcoin.services.ledger_service — Balance Ledger
====================================================

Every balance change in the system goes through :func:`post_delta`:

  1. Reject zero amounts (InvalidAmountError)
  2. Replay: the user's already committed ``idempotency_key`` returns that
     entry; the same key with another amount or type is a conflict
  3. Reject debits that would go below zero (InsufficientBalanceError)
  4. Append the signed transaction and move the balance by the same amount
  5. Point deltas recompute the loyalty tier

:func:`post_delta` works inside a caller's :class:`LedgerUnit` so composite
operations (claim + bonus, purchase points + coins) commit together.
:func:`apply_delta` is the single-entry convenience wrapper.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from stitchcoin.database.models import BALANCE_FIELDS, LedgerKind, TransactionType
from stitchcoin.engine.records import LedgerEntry, resolve_now
from stitchcoin.engine.rules import RewardRules
from stitchcoin.engine.tiers import recompute_tier
from stitchcoin.errors import (
    IdempotencyConflictError,
    InsufficientBalanceError,
    InvalidAmountError,
)

if TYPE_CHECKING:
    from stitchcoin.engine.cache import ConfigCache
    from stitchcoin.services.ledger_store import LedgerStore, LedgerUnit

logger = logging.getLogger(__name__)


def post_delta(
    unit: LedgerUnit,
    kind: LedgerKind,
    amount: int,
    tx_type: str,
    description: str,
    *,
    rules: RewardRules,
    now: datetime,
    reference: str | None = None,
    idempotency_key: str | None = None,
) -> LedgerEntry:
    """Apply a signed *amount* to one of the user's ledgers within *unit*."""
    if amount == 0:
        raise InvalidAmountError("Amount must be non-zero")

    if idempotency_key is not None:
        existing = unit.find_by_idempotency_key(kind, idempotency_key)
        if existing is not None:
            if existing.amount != amount or existing.type != str(tx_type):
                logger.warning(
                    "Idempotency key %s for %s replayed as %s %+d (committed %s %+d)",
                    idempotency_key, unit.user_id, tx_type, amount,
                    existing.type, existing.amount,
                )
                raise IdempotencyConflictError(
                    f"Key {idempotency_key!r} was already used for a different "
                    f"{kind.value} entry"
                )
            logger.debug(
                "Replay of %s for %s (key=%s)", kind, unit.user_id, idempotency_key
            )
            return LedgerEntry.from_row(existing, kind)

    profile = unit.profile
    field_name = BALANCE_FIELDS[kind]
    balance = getattr(profile, field_name)
    new_balance = balance + amount
    if new_balance < 0:
        raise InsufficientBalanceError(kind.value, balance, -amount)

    row = unit.append_transaction(
        kind,
        tx_type=tx_type,
        amount=amount,
        description=description,
        created_at=now,
        reference=reference,
        idempotency_key=idempotency_key,
    )
    unit.update_profile(**{field_name: new_balance})

    if kind == LedgerKind.POINT:
        _refresh_tier(unit, rules)

    return LedgerEntry.from_row(row, kind)


def _refresh_tier(unit: LedgerUnit, rules: RewardRules) -> None:
    profile = unit.profile
    lifetime = unit.lifetime_earned(LedgerKind.POINT)
    tier = recompute_tier(lifetime, rules.tier_thresholds, profile.tier_floor)
    if tier != profile.loyalty_tier:
        logger.info(
            "Tier change for %s: %s → %s (lifetime points %d)",
            unit.user_id, profile.loyalty_tier, tier, lifetime,
        )
        unit.update_profile(loyalty_tier=tier)


def apply_delta(
    store: LedgerStore,
    cache: ConfigCache,
    user_id: str,
    kind: LedgerKind,
    amount: int,
    tx_type: str,
    description: str,
    *,
    reference: str | None = None,
    idempotency_key: str | None = None,
    now: datetime | None = None,
) -> LedgerEntry:
    """Apply one delta in its own unit and commit."""
    rules = RewardRules.from_cache(cache)
    now = resolve_now(now)
    with store.unit(user_id) as unit:
        entry = post_delta(
            unit, kind, amount, tx_type, description,
            rules=rules, now=now, reference=reference,
            idempotency_key=idempotency_key,
        )
    logger.info(
        "Ledger %s %+d for %s (%s)", kind.value, amount, user_id, tx_type
    )
    return entry


# ---------------------------------------------------------------------------
# Commerce hooks
# ---------------------------------------------------------------------------
def credit_purchase_bonus(
    store: LedgerStore,
    cache: ConfigCache,
    user_id: str,
    amount: int,
    pattern_id: str,
    *,
    now: datetime | None = None,
) -> LedgerEntry:
    """Credit bonus coins for a pattern purchase."""
    if amount <= 0:
        raise InvalidAmountError("Purchase bonus must be positive")
    return apply_delta(
        store, cache, user_id, LedgerKind.COIN, amount,
        TransactionType.PURCHASE_BONUS,
        f"Purchase bonus for pattern {pattern_id}",
        reference=pattern_id,
        now=now,
    )


@dataclass(frozen=True, slots=True)
class PurchaseReward:
    order_ref: str
    points: LedgerEntry | None
    coins: LedgerEntry | None

    def to_dict(self) -> dict:
        return {
            "order_ref": self.order_ref,
            "points_awarded": self.points.amount if self.points else 0,
            "coins_awarded": self.coins.amount if self.coins else 0,
        }


def record_purchase(
    store: LedgerStore,
    cache: ConfigCache,
    user_id: str,
    order_total: float,
    order_ref: str,
    pattern_id: str | None = None,
    *,
    now: datetime | None = None,
) -> PurchaseReward:
    """Award loyalty points (and bonus coins if enabled) for a completed order.

    Idempotent per user and *order_ref*: replaying the same order returns
    the entries committed the first time.  Replaying it with a different
    total raises ``IdempotencyConflictError``.
    """
    if order_total <= 0:
        raise InvalidAmountError("Order total must be positive")
    if not order_ref:
        raise InvalidAmountError("Order reference is required")

    rules = RewardRules.from_cache(cache)
    now = resolve_now(now)
    points = math.floor(order_total * rules.purchase_points_rate)
    coins = (
        math.floor(order_total * rules.purchase_bonus_rate)
        if rules.purchase_bonus_enabled else 0
    )
    reference = pattern_id or order_ref
    label = f"pattern {pattern_id}" if pattern_id else f"order {order_ref}"

    point_entry = coin_entry = None
    with store.unit(user_id) as unit:
        if points > 0:
            point_entry = post_delta(
                unit, LedgerKind.POINT, points, TransactionType.PURCHASE_POINTS,
                f"Points earned from purchase of {label}",
                rules=rules, now=now, reference=reference,
                idempotency_key=f"purchase:{order_ref}:points",
            )
        if coins > 0:
            coin_entry = post_delta(
                unit, LedgerKind.COIN, coins, TransactionType.PURCHASE_BONUS,
                f"Purchase bonus for {label}",
                rules=rules, now=now, reference=reference,
                idempotency_key=f"purchase:{order_ref}:coins",
            )

    logger.info(
        "Purchase %s for %s: +%d points, +%d coins", order_ref, user_id, points, coins
    )
    return PurchaseReward(order_ref=order_ref, points=point_entry, coins=coin_entry)
