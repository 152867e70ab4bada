"""
tests/test_streaks.py — Daily Claim State Machine Tests
========================================================
Pure-function tests for calendar days, streak advance/reset, bonus cadence
and the next-claim countdown.
"""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from stitchcoin.engine.rules import RewardRules
from stitchcoin.engine.streaks import (
    calendar_date,
    can_claim,
    is_bonus_day,
    next_claim_at,
    next_streak,
    plan_claim,
    resolve_timezone,
    seconds_until_next_claim,
)

D = date(2026, 3, 10)


class TestCalendarDate:
    def test_utc_default(self):
        assert calendar_date(datetime(2026, 3, 10, 23, 59, tzinfo=UTC)) == D

    def test_naive_is_utc(self):
        assert calendar_date(datetime(2026, 3, 10, 0, 0)) == D

    def test_timezone_shifts_the_day(self):
        moment = datetime(2026, 3, 11, 2, 0, tzinfo=UTC)
        assert calendar_date(moment, ZoneInfo("America/New_York")) == D

    def test_resolve_timezone(self):
        assert resolve_timezone("UTC") is UTC
        assert resolve_timezone("") is UTC
        assert resolve_timezone("Europe/Berlin") == ZoneInfo("Europe/Berlin")

    def test_resolve_unknown_timezone(self):
        with pytest.raises(KeyError):
            resolve_timezone("Mars/Olympus_Mons")


class TestStreakTransitions:
    def test_first_claim_starts_at_one(self):
        assert next_streak(0, None, D) == 1

    def test_consecutive_day_increments(self):
        assert next_streak(4, D - timedelta(days=1), D) == 5

    def test_gap_resets(self):
        assert next_streak(4, D - timedelta(days=2), D) == 1

    def test_days_d_d1_d2_give_three(self):
        streak, last = 0, None
        for offset in range(3):
            today = D + timedelta(days=offset)
            streak, last = next_streak(streak, last, today), today
        assert streak == 3

    def test_skipping_a_day_resets_to_one(self):
        streak = next_streak(0, None, D)
        streak = next_streak(streak, D, D + timedelta(days=2))
        assert streak == 1

    def test_can_claim(self):
        assert can_claim(None, D)
        assert can_claim(D - timedelta(days=1), D)
        assert not can_claim(D, D)
        # A future last_claim_date (clock skew) is treated as already claimed
        assert not can_claim(D + timedelta(days=1), D)


class TestBonusCadence:
    def test_every_seventh_day(self):
        rules = RewardRules()
        assert [s for s in range(1, 22) if is_bonus_day(s, rules)] == [7, 14, 21]

    def test_disabled(self):
        rules = RewardRules(streak_bonus_enabled=False)
        assert not is_bonus_day(7, rules)

    def test_zero_threshold_never_fires(self):
        rules = RewardRules(streak_bonus_threshold=0)
        assert not is_bonus_day(7, rules)

    def test_plan_on_bonus_day(self):
        plan = plan_claim(6, D - timedelta(days=1), D, RewardRules())
        assert plan is not None
        assert plan.new_streak == 7
        assert plan.base_coins == 10
        assert plan.bonus_coins == 5
        assert plan.coins_awarded == 15

    def test_plan_none_when_claimed_today(self):
        assert plan_claim(3, D, D, RewardRules()) is None


class TestNextClaim:
    def test_next_claim_at_is_next_midnight(self):
        assert next_claim_at(D) == datetime(2026, 3, 11, tzinfo=UTC)

    def test_next_claim_at_in_timezone(self):
        opens = next_claim_at(D, ZoneInfo("America/New_York"))
        # Midnight EDT on 11 March 2026 is 04:00 UTC
        assert opens == datetime(2026, 3, 11, 4, 0, tzinfo=UTC)

    def test_seconds_until_next_claim(self):
        now = datetime(2026, 3, 10, 23, 0, tzinfo=UTC)
        assert seconds_until_next_claim(now, D) == 3600

    def test_zero_when_claim_open(self):
        now = datetime(2026, 3, 10, 23, 0, tzinfo=UTC)
        assert seconds_until_next_claim(now, D - timedelta(days=1)) == 0
        assert seconds_until_next_claim(now, None) == 0
