"""
stitchcoin.services.claim_service — Daily Claim Processor
==========================================================

Runs the daily claim inside one Ledger Store unit:

  1. Work out today's calendar date in ``claims.timezone``
  2. Reject a second claim for the same day (AlreadyClaimedError)
  3. Advance or reset the streak
  4. Credit the daily amount, plus the streak bonus on bonus days
  5. Write the DailyClaim record and the new streak state

Steps 2–5 commit together or not at all.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, date, datetime
from typing import TYPE_CHECKING

from stitchcoin.database.models import LedgerKind, TransactionType
from stitchcoin.engine import streaks
from stitchcoin.engine.records import resolve_now
from stitchcoin.engine.rules import RewardRules
from stitchcoin.errors import AlreadyClaimedError
from stitchcoin.services import ledger_service

if TYPE_CHECKING:
    from stitchcoin.engine.cache import ConfigCache
    from stitchcoin.services.ledger_store import LedgerStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ClaimResult:
    """Outcome of a successful claim."""

    user_id: str
    claim_date: date
    coins_awarded: int
    base_coins: int
    bonus_coins: int
    new_streak: int
    new_balance: int
    next_claim_at: datetime

    def to_dict(self) -> dict:
        return {
            "claim_date": self.claim_date.isoformat(),
            "coins_awarded": self.coins_awarded,
            "base_coins": self.base_coins,
            "bonus_coins": self.bonus_coins,
            "streak_bonus": self.bonus_coins > 0,
            "new_streak": self.new_streak,
            "new_balance": self.new_balance,
            "next_claim_at": self.next_claim_at.isoformat(),
        }


@dataclass(frozen=True, slots=True)
class ClaimStatus:
    """Read-only claim eligibility."""

    can_claim: bool
    today: date
    login_streak: int
    last_claim_date: date | None
    next_claim_at: datetime
    seconds_until_next_claim: int
    next_reward: int

    def to_dict(self) -> dict:
        return {
            "can_claim": self.can_claim,
            "today": self.today.isoformat(),
            "login_streak": self.login_streak,
            "last_claim_date": (
                self.last_claim_date.isoformat() if self.last_claim_date else None
            ),
            "next_claim_at": self.next_claim_at.isoformat(),
            "seconds_until_next_claim": self.seconds_until_next_claim,
            "next_reward": self.next_reward,
        }


def claim_daily(
    store: LedgerStore,
    cache: ConfigCache,
    user_id: str,
    *,
    now: datetime | None = None,
) -> ClaimResult:
    """Claim today's coins for *user_id*.

    Raises ``AlreadyClaimedError`` if the user already claimed for the
    current calendar day; nothing is written in that case.
    """
    rules = RewardRules.from_cache(cache)
    tz = rules.timezone
    now = resolve_now(now)
    today = streaks.calendar_date(now, tz)

    with store.unit(user_id) as unit:
        if unit.get_daily_claim(today) is not None:
            raise AlreadyClaimedError(
                f"Daily reward already claimed for {today.isoformat()}"
            )
        profile = unit.profile
        plan = streaks.plan_claim(
            profile.login_streak, profile.last_claim_date, today, rules
        )
        if plan is None:
            raise AlreadyClaimedError(
                f"Daily reward already claimed for {today.isoformat()}"
            )

        ledger_service.post_delta(
            unit, LedgerKind.COIN, plan.base_coins, TransactionType.DAILY_CLAIM,
            f"Daily reward (day {plan.new_streak})",
            rules=rules, now=now,
        )
        if plan.bonus_coins:
            ledger_service.post_delta(
                unit, LedgerKind.COIN, plan.bonus_coins, TransactionType.STREAK_BONUS,
                f"{plan.new_streak}-day streak bonus",
                rules=rules, now=now,
            )

        unit.add_daily_claim(
            claim_date=today,
            claimed_at=now,
            coins_awarded=plan.coins_awarded,
            streak=plan.new_streak,
        )
        unit.update_profile(login_streak=plan.new_streak, last_claim_date=today)
        new_balance = unit.profile.coin_balance

    logger.info(
        "Daily claim for %s on %s: +%d coins (streak %d)",
        user_id, today, plan.coins_awarded, plan.new_streak,
    )
    return ClaimResult(
        user_id=user_id,
        claim_date=today,
        coins_awarded=plan.coins_awarded,
        base_coins=plan.base_coins,
        bonus_coins=plan.bonus_coins,
        new_streak=plan.new_streak,
        new_balance=new_balance,
        next_claim_at=streaks.next_claim_at(today, tz),
    )


def claim_status(
    store: LedgerStore,
    cache: ConfigCache,
    user_id: str,
    *,
    now: datetime | None = None,
) -> ClaimStatus:
    """Whether *user_id* may claim now.  Never creates or changes anything."""
    rules = RewardRules.from_cache(cache)
    tz = rules.timezone
    now = resolve_now(now)
    today = streaks.calendar_date(now, tz)

    profile = store.peek_profile(user_id)
    login_streak = profile.login_streak if profile else 0
    last_claim = profile.last_claim_date if profile else None

    eligible = streaks.can_claim(last_claim, today)
    if eligible:
        plan = streaks.plan_claim(login_streak, last_claim, today, rules)
        next_reward = plan.coins_awarded if plan else 0
        opens = now
    else:
        next_reward = 0
        opens = streaks.next_claim_at(max(today, last_claim), tz)

    return ClaimStatus(
        can_claim=eligible,
        today=today,
        login_streak=login_streak,
        last_claim_date=last_claim,
        next_claim_at=opens.astimezone(UTC),
        seconds_until_next_claim=streaks.seconds_until_next_claim(now, last_claim, tz),
        next_reward=next_reward,
    )
