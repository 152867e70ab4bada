"""
stitchcoin.engine.analytics — Engagement Analytics
===================================================

Everything on the analytics page is recomputed per request from the
append-only ledgers and claim records; no derived figure is stored.

Pipeline:
  ledger entries + claim dates → totals / per-type breakdown
                               → longest streak → milestones
                               → daily activity buckets
                               → engagement score (0–100)

This module is pure calculation — no database I/O.
"""

from __future__ import annotations

import calendar
import math
from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta, tzinfo

from stitchcoin.engine.records import LedgerEntry

# ---------------------------------------------------------------------------
# Engagement score weights — (weight, saturation value)
# ---------------------------------------------------------------------------
STREAK_WEIGHT = (30, 30)
CLAIMS_WEIGHT = (20, 100)
COINS_WEIGHT = (20, 500)
POINTS_WEIGHT = (20, 1000)
ACTIVITY_WEIGHT = (10, 50)

RECENT_ACTIVITY_DAYS = 30


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


# ---------------------------------------------------------------------------
# Streak history
# ---------------------------------------------------------------------------
def longest_streak(claim_dates: Iterable[date]) -> int:
    """Longest run of consecutive calendar days in *claim_dates*.

    Historical high-water mark: independent of the live ``login_streak``,
    which resets on a gap.
    """
    ordered = sorted(set(claim_dates))
    if not ordered:
        return 0
    best = run = 1
    for prev, curr in zip(ordered, ordered[1:]):
        if curr - prev == timedelta(days=1):
            run += 1
            best = max(best, run)
        else:
            run = 1
    return best


# ---------------------------------------------------------------------------
# Ledger totals
# ---------------------------------------------------------------------------
def total_earned(entries: Iterable[LedgerEntry]) -> int:
    return sum(e.amount for e in entries if e.amount > 0)


def total_spent(entries: Iterable[LedgerEntry]) -> int:
    return -sum(e.amount for e in entries if e.amount < 0)


def transactions_by_type(entries: Iterable[LedgerEntry]) -> dict[str, int]:
    """Sum of absolute amounts grouped by transaction type."""
    result: dict[str, int] = defaultdict(int)
    for entry in entries:
        result[entry.type] += abs(entry.amount)
    return dict(result)


def count_since(entries: Iterable[LedgerEntry], since: datetime) -> int:
    return sum(1 for e in entries if e.created_at >= since)


# ---------------------------------------------------------------------------
# Daily activity buckets
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class DailyActivity:
    date: date
    coins_earned: int
    points_earned: int
    claimed: bool

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "coins_earned": self.coins_earned,
            "points_earned": self.points_earned,
            "claimed": self.claimed,
        }


def _credits_by_day(entries: Iterable[LedgerEntry], tz: tzinfo) -> dict[date, int]:
    buckets: dict[date, int] = defaultdict(int)
    for entry in entries:
        if entry.amount > 0:
            buckets[entry.created_at.astimezone(tz).date()] += entry.amount
    return buckets


def daily_activity(
    coin_entries: Iterable[LedgerEntry],
    point_entries: Iterable[LedgerEntry],
    claim_dates: Iterable[date],
    today: date,
    days: int = 30,
    tz: tzinfo = UTC,
) -> list[DailyActivity]:
    """One bucket per day for the last *days* days, oldest first, ending *today*."""
    coins = _credits_by_day(coin_entries, tz)
    points = _credits_by_day(point_entries, tz)
    claimed = set(claim_dates)
    result = []
    for offset in range(days - 1, -1, -1):
        day = today - timedelta(days=offset)
        result.append(DailyActivity(
            date=day,
            coins_earned=coins.get(day, 0),
            points_earned=points.get(day, 0),
            claimed=day in claimed,
        ))
    return result


def claim_calendar(
    claims: Iterable[tuple[date, int]], year: int, month: int
) -> list[dict]:
    """Month grid for the claim calendar: one entry per day of *month*.

    *claims* yields ``(claim_date, coins_awarded)`` pairs.
    """
    awarded = {d: coins for d, coins in claims if d.year == year and d.month == month}
    _, days_in_month = calendar.monthrange(year, month)
    grid = []
    for day in range(1, days_in_month + 1):
        current = date(year, month, day)
        grid.append({
            "date": current.isoformat(),
            "day": day,
            "claimed": current in awarded,
            "coins_awarded": awarded.get(current, 0),
        })
    return grid


# ---------------------------------------------------------------------------
# Engagement score
# ---------------------------------------------------------------------------
def _sub_score(value: float, weight: tuple[int, int]) -> float:
    points, saturation = weight
    return min(max(value, 0) / saturation, 1.0) * points


def engagement_score(
    current_streak: int,
    total_days_claimed: int,
    total_coins_earned: int,
    total_points_earned: int,
    recent_activity: int,
) -> int:
    """Bounded 0–100 composite score.

    Weights: current streak 30 (saturates at 30 days), days claimed 20
    (100), coins earned 20 (500), points earned 20 (1000) and ledger events
    in the last 30 days 10 (50).  The total is rounded half-up.
    """
    total = (
        _sub_score(current_streak, STREAK_WEIGHT)
        + _sub_score(total_days_claimed, CLAIMS_WEIGHT)
        + _sub_score(total_coins_earned, COINS_WEIGHT)
        + _sub_score(total_points_earned, POINTS_WEIGHT)
        + _sub_score(recent_activity, ACTIVITY_WEIGHT)
    )
    return round_half_up(total)


# ---------------------------------------------------------------------------
# Summary
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class EngagementSummary:
    current_coins: int
    current_points: int
    total_coins_earned: int
    total_coins_spent: int
    total_points_earned: int
    total_points_spent: int
    current_streak: int
    longest_streak: int
    total_days_claimed: int
    engagement_score: int
    loyalty_tier: str

    def to_dict(self) -> dict:
        return {
            "current_coins": self.current_coins,
            "current_points": self.current_points,
            "total_coins_earned": self.total_coins_earned,
            "total_coins_spent": self.total_coins_spent,
            "total_points_earned": self.total_points_earned,
            "total_points_spent": self.total_points_spent,
            "current_streak": self.current_streak,
            "longest_streak": self.longest_streak,
            "total_days_claimed": self.total_days_claimed,
            "engagement_score": self.engagement_score,
            "loyalty_tier": self.loyalty_tier,
        }


def summarize(
    *,
    coin_entries: Sequence[LedgerEntry],
    point_entries: Sequence[LedgerEntry],
    claim_dates: Sequence[date],
    current_coins: int,
    current_points: int,
    current_streak: int,
    loyalty_tier: str,
    now: datetime,
) -> EngagementSummary:
    """Fold the raw history into an :class:`EngagementSummary`."""
    since = now - timedelta(days=RECENT_ACTIVITY_DAYS)
    coins_earned = total_earned(coin_entries)
    points_earned = total_earned(point_entries)
    days_claimed = len(set(claim_dates))
    recent = count_since(coin_entries, since) + count_since(point_entries, since)
    return EngagementSummary(
        current_coins=current_coins,
        current_points=current_points,
        total_coins_earned=coins_earned,
        total_coins_spent=total_spent(coin_entries),
        total_points_earned=points_earned,
        total_points_spent=total_spent(point_entries),
        current_streak=current_streak,
        longest_streak=longest_streak(claim_dates),
        total_days_claimed=days_claimed,
        engagement_score=engagement_score(
            current_streak, days_claimed, coins_earned, points_earned, recent
        ),
        loyalty_tier=loyalty_tier,
    )
