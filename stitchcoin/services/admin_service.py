"""
stitchcoin.services.admin_service — Admin Adjustment Gateway
=============================================================

Administrators adjust member balances, streaks and tiers from the
dashboard.  Every adjustment follows the pattern:
  1. Check the actor is an admin (UnauthorizedAdjustmentError)
  2. Open a Ledger Store unit for the target user
  3. Read "before" snapshot
  4. Apply the command
  5. Write admin_log with before/after snapshots
  6. Commit

Removals are clamped: taking 1000 coins from a member holding 30 removes
30 and records a -30 transaction.  This is deliberately different from
the Balance Ledger, which rejects any debit that would go negative.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, assert_never

from sqlalchemy import desc, distinct, func, select
from sqlalchemy.orm import Session

from stitchcoin.constants import TIER_ORDER
from stitchcoin.database.models import (
    LEDGER_MODELS,
    AdminLog,
    DailyClaim,
    LedgerKind,
    RewardProfile,
    TransactionType,
)
from stitchcoin.engine.commands import (
    BALANCE_COMMANDS,
    AddCoins,
    AddPoints,
    AdminCommand,
    BalanceCommand,
    RemoveCoins,
    RemovePoints,
    ResetStreak,
    SetTier,
    action_name,
)
from stitchcoin.engine.records import (
    LedgerEntry,
    ProfileSnapshot,
    ensure_utc,
    resolve_now,
)
from stitchcoin.engine.rules import RewardRules
from stitchcoin.engine.tiers import recompute_tier
from stitchcoin.errors import InvalidAmountError, UnauthorizedAdjustmentError
from stitchcoin.services import ledger_service

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from stitchcoin.engine.cache import ConfigCache
    from stitchcoin.services.ledger_store import LedgerStore, LedgerUnit

logger = logging.getLogger(__name__)

ACTIVE_WINDOW_DAYS = 7
CLAIM_RATE_WINDOW_DAYS = 30
LEADERBOARD_SIZE = 10
RECENT_TRANSACTIONS = 20

_UNIT_NAMES = {LedgerKind.COIN: "coins", LedgerKind.POINT: "points"}


@dataclass(frozen=True, slots=True)
class AdminActor:
    """Caller identity as verified by the auth layer."""

    user_id: str
    is_admin: bool = False


@dataclass(frozen=True, slots=True)
class AdjustmentResult:
    message: str
    action: str
    entry: LedgerEntry | None
    profile: ProfileSnapshot

    def to_dict(self) -> dict:
        return {
            "success": True,
            "message": self.message,
            "action": self.action,
            "transaction": self.entry.to_dict() if self.entry else None,
            "profile": self.profile.to_dict(),
        }


def _require_admin(actor: AdminActor) -> None:
    if not actor.is_admin:
        logger.warning("Non-admin %s attempted a rewards adjustment", actor.user_id)
        raise UnauthorizedAdjustmentError("Administrator privileges required")


# ---------------------------------------------------------------------------
# Command dispatch
# ---------------------------------------------------------------------------
def _apply_balance_command(
    unit: LedgerUnit,
    command: BalanceCommand,
    reason: str | None,
    rules: RewardRules,
    now: datetime,
    actor: AdminActor,
) -> tuple[LedgerEntry | None, str]:
    kind, sign = BALANCE_COMMANDS[type(command)]
    unit_name = _UNIT_NAMES[kind]

    if sign > 0:
        amount = command.amount
        description = reason or f"Admin bonus: {amount} {unit_name}"
        message = f"Added {amount} {unit_name} to {unit.user_id}"
    else:
        # Clamp: never remove more than the member holds.
        amount = -min(command.amount, unit.snapshot().balance(kind))
        if amount == 0:
            return None, f"{unit.user_id} has no {unit_name} to remove"
        description = reason or f"Admin adjustment: {amount} {unit_name}"
        message = f"Removed {-amount} {unit_name} from {unit.user_id}"

    entry = ledger_service.post_delta(
        unit, kind, amount, TransactionType.ADMIN_ADJUSTMENT, description,
        rules=rules, now=now, reference=actor.user_id,
    )
    return entry, message


def _dispatch(
    unit: LedgerUnit,
    command: AdminCommand,
    reason: str | None,
    rules: RewardRules,
    now: datetime,
    actor: AdminActor,
) -> tuple[LedgerEntry | None, str]:
    if isinstance(command, BalanceCommand):
        return _apply_balance_command(unit, command, reason, rules, now, actor)
    if isinstance(command, ResetStreak):
        unit.update_profile(login_streak=0)
        return None, f"Reset login streak for {unit.user_id}"
    if isinstance(command, SetTier):
        # The stored tier always equals recompute_tier(lifetime, thresholds, floor).
        lifetime = unit.lifetime_earned(LedgerKind.POINT)
        tier = recompute_tier(lifetime, rules.tier_thresholds, command.tier)
        unit.update_profile(loyalty_tier=tier, tier_floor=command.tier)
        if tier != command.tier:
            return None, (
                f"Set {unit.user_id}'s tier floor to {command.tier}; "
                f"earned tier {tier} still applies"
            )
        return None, f"Set {unit.user_id}'s tier to {command.tier}"
    assert_never(command)


def adjust(
    store: LedgerStore,
    cache: ConfigCache,
    actor: AdminActor,
    target_user_id: str,
    command: AdminCommand,
    reason: str | None = None,
    *,
    now: datetime | None = None,
) -> AdjustmentResult:
    """Apply an admin *command* to *target_user_id* and audit it."""
    _require_admin(actor)
    rules = RewardRules.from_cache(cache)
    now = resolve_now(now)

    with store.unit(target_user_id) as unit:
        before = unit.snapshot()
        entry, message = _dispatch(unit, command, reason, rules, now, actor)
        unit.flush()
        after = unit.snapshot()
        unit.record_admin_action(
            actor_id=actor.user_id,
            action_type=action_name(command),
            before=before.to_dict(),
            after=after.to_dict(),
            reason=reason,
        )

    logger.info(
        "Admin %s: %s on %s (%s)",
        actor.user_id, action_name(command), target_user_id, message,
    )
    return AdjustmentResult(
        message=message, action=action_name(command).value, entry=entry, profile=after,
    )


def adjust_balance(
    store: LedgerStore,
    cache: ConfigCache,
    actor: AdminActor,
    target_user_id: str,
    kind: LedgerKind,
    signed_amount: int,
    reason: str | None = None,
    *,
    now: datetime | None = None,
) -> AdjustmentResult:
    """Signed-amount form of :func:`adjust`; negative amounts are clamped removals."""
    if signed_amount == 0:
        raise InvalidAmountError("Adjustment amount must be non-zero")
    if kind == LedgerKind.COIN:
        command: AdminCommand = (
            AddCoins(signed_amount) if signed_amount > 0 else RemoveCoins(-signed_amount)
        )
    else:
        command = (
            AddPoints(signed_amount) if signed_amount > 0 else RemovePoints(-signed_amount)
        )
    return adjust(store, cache, actor, target_user_id, command, reason, now=now)


# ---------------------------------------------------------------------------
# Overview
# ---------------------------------------------------------------------------
def _leaderboard_row(profile: RewardProfile) -> dict:
    return {
        "user_id": profile.user_id,
        "coins": profile.coin_balance,
        "points": profile.point_balance,
        "streak": profile.login_streak,
        "tier": profile.loyalty_tier,
    }


def _recent(session: Session, kind: LedgerKind) -> list[dict]:
    model = LEDGER_MODELS[kind]
    rows = session.scalars(
        select(model).order_by(desc(model.created_at), desc(model.id))
        .limit(RECENT_TRANSACTIONS)
    ).all()
    return [
        {**LedgerEntry.from_row(row, kind).to_dict(), "user_id": row.user_id}
        for row in rows
    ]


def get_overview(store: LedgerStore, *, now: datetime | None = None) -> dict:
    """Program-wide figures for the admin rewards dashboard."""
    now = resolve_now(now)
    active_since = now - timedelta(days=ACTIVE_WINDOW_DAYS)
    rate_since = now - timedelta(days=CLAIM_RATE_WINDOW_DAYS)

    with Session(store.engine) as session:
        total_users = session.scalar(select(func.count()).select_from(RewardProfile)) or 0
        coins_circulating, points_circulating = session.execute(
            select(
                func.coalesce(func.sum(RewardProfile.coin_balance), 0),
                func.coalesce(func.sum(RewardProfile.point_balance), 0),
            )
        ).one()
        issued = {}
        for kind, model in LEDGER_MODELS.items():
            issued[kind] = session.scalar(
                select(func.coalesce(func.sum(model.amount), 0)).where(model.amount > 0)
            ) or 0

        active_users = session.scalar(
            select(func.count(distinct(DailyClaim.user_id)))
            .where(DailyClaim.claimed_at >= active_since)
        ) or 0
        avg_streak = session.scalar(
            select(func.avg(RewardProfile.login_streak))
            .where(RewardProfile.login_streak > 0)
        )
        recent_claims = session.scalar(
            select(func.count()).select_from(DailyClaim)
            .where(DailyClaim.claimed_at >= rate_since)
        ) or 0

        distribution = {tier.value: 0 for tier in TIER_ORDER}
        for tier, count in session.execute(
            select(RewardProfile.loyalty_tier, func.count())
            .group_by(RewardProfile.loyalty_tier)
        ).all():
            distribution[tier] = count

        top_coins = session.scalars(
            select(RewardProfile)
            .order_by(desc(RewardProfile.coin_balance), RewardProfile.user_id)
            .limit(LEADERBOARD_SIZE)
        ).all()
        top_points = session.scalars(
            select(RewardProfile)
            .order_by(desc(RewardProfile.point_balance), RewardProfile.user_id)
            .limit(LEADERBOARD_SIZE)
        ).all()

        return {
            "stats": {
                "total_users": total_users,
                "active_users": active_users,
                "total_coins_in_circulation": int(coins_circulating),
                "total_points_in_circulation": int(points_circulating),
                "total_coins_issued": int(issued[LedgerKind.COIN]),
                "total_points_issued": int(issued[LedgerKind.POINT]),
                "average_streak": round(float(avg_streak or 0), 1),
                "daily_claim_rate": round(recent_claims / CLAIM_RATE_WINDOW_DAYS, 1),
            },
            "tier_distribution": distribution,
            "leaderboards": {
                "top_coin_users": [_leaderboard_row(p) for p in top_coins],
                "top_point_users": [_leaderboard_row(p) for p in top_points],
            },
            "recent_activity": {
                "coin_transactions": _recent(session, LedgerKind.COIN),
                "point_transactions": _recent(session, LedgerKind.POINT),
            },
        }


def list_audit(
    engine: Engine, *, target_id: str | None = None, limit: int = 50
) -> list[dict]:
    """Most recent admin_log rows, newest first."""
    query = select(AdminLog).order_by(desc(AdminLog.id)).limit(limit)
    if target_id is not None:
        query = query.where(AdminLog.target_id == target_id)
    with Session(engine) as session:
        return [
            {
                "id": row.id,
                "actor_id": row.actor_id,
                "action_type": row.action_type,
                "target_table": row.target_table,
                "target_id": row.target_id,
                "before": row.before_snapshot,
                "after": row.after_snapshot,
                "reason": row.reason,
                "timestamp": ensure_utc(row.timestamp).isoformat() if row.timestamp else None,
            }
            for row in session.scalars(query).all()
        ]
