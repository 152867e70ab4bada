"""
stitchcoin.services.analytics_service — Member-facing read models
==================================================================

Loads a user's ledgers and claim records from the Ledger Store and hands
them to the pure functions in :mod:`stitchcoin.engine.analytics`,
:mod:`stitchcoin.engine.milestones` and :mod:`stitchcoin.engine.tiers`.

Read-only: profiles are peeked, never created, and no lock is taken.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from stitchcoin.constants import TIER_BENEFITS, TRANSACTION_LABELS
from stitchcoin.database.models import LedgerKind
from stitchcoin.engine import analytics
from stitchcoin.engine.milestones import MilestoneContext, evaluate_milestones
from stitchcoin.engine.records import ProfileSnapshot, resolve_now
from stitchcoin.engine.rules import RewardRules
from stitchcoin.engine.streaks import calendar_date
from stitchcoin.engine.tiers import tier_progress

if TYPE_CHECKING:
    from stitchcoin.engine.cache import ConfigCache
    from stitchcoin.services.ledger_store import LedgerStore

RECENT_TRANSACTIONS = 10


def _profile_or_blank(store: LedgerStore, user_id: str) -> ProfileSnapshot:
    return store.peek_profile(user_id) or ProfileSnapshot(user_id=user_id)


def get_balance(
    store: LedgerStore, cache: ConfigCache, user_id: str
) -> dict:
    """Balances, streak, tier and the last few coin transactions."""
    rules = RewardRules.from_cache(cache)
    profile = _profile_or_blank(store, user_id)
    coin_entries = store.list_transactions(user_id, LedgerKind.COIN)
    point_entries = store.list_transactions(user_id, LedgerKind.POINT)
    progress = tier_progress(
        analytics.total_earned(point_entries),
        rules.tier_thresholds,
        tier=profile.loyalty_tier,
    )
    return {
        "coin_balance": profile.coin_balance,
        "point_balance": profile.point_balance,
        "login_streak": profile.login_streak,
        "last_claim": (
            profile.last_claim_date.isoformat() if profile.last_claim_date else None
        ),
        "loyalty_tier": profile.loyalty_tier,
        "tier_progress": progress.to_dict(),
        "tier_benefits": TIER_BENEFITS.get(profile.loyalty_tier, {}),
        "recent_transactions": [
            e.to_dict() for e in reversed(coin_entries[-RECENT_TRANSACTIONS:])
        ],
    }


def get_history(
    store: LedgerStore,
    cache: ConfigCache,
    user_id: str,
    *,
    now: datetime | None = None,
) -> dict:
    """Coin transaction history (newest first), claims and this month's calendar."""
    rules = RewardRules.from_cache(cache)
    now = resolve_now(now)
    today = calendar_date(now, rules.timezone)

    transactions = store.list_transactions(user_id, LedgerKind.COIN)
    claims = store.list_daily_claims(user_id)
    return {
        "transactions": [
            {**e.to_dict(), "label": TRANSACTION_LABELS.get(e.type, e.type)}
            for e in reversed(transactions)
        ],
        "claims": [c.to_dict() for c in reversed(claims)],
        "calendar": analytics.claim_calendar(
            ((c.claim_date, c.coins_awarded) for c in claims),
            today.year,
            today.month,
        ),
        "current_month": {
            "month": today.month,
            "year": today.year,
            "name": today.strftime("%B %Y"),
        },
    }


def build_analytics(
    store: LedgerStore,
    cache: ConfigCache,
    user_id: str,
    *,
    now: datetime | None = None,
) -> dict:
    """Summary, activity chart, per-type breakdown and milestones."""
    rules = RewardRules.from_cache(cache)
    tz = rules.timezone
    now = resolve_now(now)
    today = calendar_date(now, tz)

    profile = _profile_or_blank(store, user_id)
    coin_entries = store.list_transactions(user_id, LedgerKind.COIN)
    point_entries = store.list_transactions(user_id, LedgerKind.POINT)
    claim_dates = [c.claim_date for c in store.list_daily_claims(user_id)]

    summary = analytics.summarize(
        coin_entries=coin_entries,
        point_entries=point_entries,
        claim_dates=claim_dates,
        current_coins=profile.coin_balance,
        current_points=profile.point_balance,
        current_streak=profile.login_streak,
        loyalty_tier=profile.loyalty_tier,
        now=now,
    )
    daily = analytics.daily_activity(
        coin_entries, point_entries, claim_dates,
        today=today, days=rules.activity_window_days, tz=tz,
    )
    milestones = evaluate_milestones(MilestoneContext(
        longest_streak=summary.longest_streak,
        total_claims=summary.total_days_claimed,
        lifetime_coins=summary.total_coins_earned,
        lifetime_points=summary.total_points_earned,
    ))
    return {
        "summary": summary.to_dict(),
        "tier_progress": tier_progress(
            summary.total_points_earned, rules.tier_thresholds,
            tier=profile.loyalty_tier,
        ).to_dict(),
        "activity": {
            "daily": [d.to_dict() for d in daily],
            "coins_by_type": analytics.transactions_by_type(coin_entries),
            "points_by_type": analytics.transactions_by_type(point_entries),
        },
        "milestones": [m.to_dict() for m in milestones],
    }
