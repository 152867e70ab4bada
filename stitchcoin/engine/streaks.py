"""
stitchcoin.engine.streaks — Daily Claim State Machine
======================================================

Pure calculation for the daily claim: which calendar day a moment falls
on, whether a user may claim, what the next streak value is and how many
coins the claim pays.

A profile moves ``Unclaimed-Today → Claimed-Today`` at most once per
calendar day; the claim day is defined by the ``claims.timezone`` setting.

This module is pure calculation — no database I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta, tzinfo
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

if TYPE_CHECKING:
    from stitchcoin.engine.rules import RewardRules


# ---------------------------------------------------------------------------
# Calendar helpers
# ---------------------------------------------------------------------------
def resolve_timezone(name: str) -> tzinfo:
    """Map a timezone name to a tzinfo.

    Raises ``KeyError`` for names the zoneinfo database doesn't know.
    """
    if not name or name.upper() == "UTC":
        return UTC
    try:
        return ZoneInfo(name)
    except ZoneInfoNotFoundError as exc:
        raise KeyError(name) from exc


def calendar_date(now: datetime, tz: tzinfo = UTC) -> date:
    """Calendar day of *now* in *tz*.  Naive datetimes are taken as UTC."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    return now.astimezone(tz).date()


def can_claim(last_claim_date: date | None, today: date) -> bool:
    """True when the user has not claimed on *today* (or later)."""
    return last_claim_date is None or last_claim_date < today


def next_streak(login_streak: int, last_claim_date: date | None, today: date) -> int:
    """Streak value after a claim on *today*.

    Consecutive day → +1, anything else (first claim or a gap) → 1.
    """
    if last_claim_date is not None and last_claim_date == today - timedelta(days=1):
        return login_streak + 1
    return 1


def is_bonus_day(streak: int, rules: RewardRules) -> bool:
    """Every ``streak_bonus_threshold``-th consecutive day pays a bonus."""
    threshold = rules.streak_bonus_threshold
    return (
        rules.streak_bonus_enabled
        and threshold > 0
        and rules.streak_bonus_amount > 0
        and streak % threshold == 0
    )


# ---------------------------------------------------------------------------
# Claim plan
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class ClaimPlan:
    """What a claim on ``claim_date`` will write."""

    claim_date: date
    new_streak: int
    base_coins: int
    bonus_coins: int

    @property
    def coins_awarded(self) -> int:
        return self.base_coins + self.bonus_coins


def plan_claim(
    login_streak: int,
    last_claim_date: date | None,
    today: date,
    rules: RewardRules,
) -> ClaimPlan | None:
    """Return the claim to apply on *today*, or None if already claimed."""
    if not can_claim(last_claim_date, today):
        return None
    streak = next_streak(login_streak, last_claim_date, today)
    bonus = rules.streak_bonus_amount if is_bonus_day(streak, rules) else 0
    return ClaimPlan(
        claim_date=today,
        new_streak=streak,
        base_coins=rules.daily_claim_amount,
        bonus_coins=bonus,
    )


def next_claim_at(today: date, tz: tzinfo = UTC) -> datetime:
    """Start of the calendar day after *today* in *tz*, as an aware UTC datetime."""
    tomorrow = datetime.combine(today + timedelta(days=1), time.min, tzinfo=tz)
    return tomorrow.astimezone(UTC)


def seconds_until_next_claim(
    now: datetime, last_claim_date: date | None, tz: tzinfo = UTC
) -> int:
    """Seconds until the user may claim again; 0 when a claim is open now."""
    today = calendar_date(now, tz)
    if can_claim(last_claim_date, today):
        return 0
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    # A last_claim_date in the future keeps the gate closed until the day after it.
    opens = next_claim_at(max(today, last_claim_date), tz)
    return max(0, int((opens - now).total_seconds()))
