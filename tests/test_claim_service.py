"""
tests/test_claim_service.py — Daily Claim Processor Tests
==========================================================
End-to-end claim tests against SQLite: first claim, consecutive days,
the 7-day streak bonus, gap reset, at-most-once per day (including two
racing threads), claims racing admin adjustments and all-or-nothing
rollback.
"""

from __future__ import annotations

import threading
from datetime import UTC, date, datetime, timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from stitchcoin.database.engine import create_db_engine, init_db
from stitchcoin.database.models import (
    AdminLog,
    CoinTransaction,
    DailyClaim,
    LedgerKind,
    PointTransaction,
    TransactionType,
)
from stitchcoin.engine.cache import ConfigCache
from stitchcoin.engine.commands import AddCoins, AddPoints, RemoveCoins, RemovePoints
from stitchcoin.errors import AlreadyClaimedError
from stitchcoin.services import admin_service, claim_service, ledger_service
from stitchcoin.services.admin_service import AdminActor
from stitchcoin.services.ledger_store import LedgerStore
from stitchcoin.services.settings_service import upsert_setting


def _days(now: datetime, n: int):
    return [now + timedelta(days=i) for i in range(n)]


def _claim_count(engine) -> int:
    with Session(engine) as session:
        return session.scalar(select(func.count()).select_from(DailyClaim))


def _ledger_sum(engine, model, user_id: str) -> int:
    with Session(engine) as session:
        return session.scalar(
            select(func.coalesce(func.sum(model.amount), 0)).where(model.user_id == user_id)
        )


def _file_backed(tmp_path):
    """Engine, cache and store on a SQLite file so threads get real connections."""
    engine = create_db_engine(f"sqlite:///{tmp_path / 'claims.db'}")
    init_db(engine)
    cache = ConfigCache(engine)
    cache.load_all()
    return engine, cache, LedgerStore(engine, lock_timeout=10.0)


class TestFirstClaim:
    def test_fresh_user(self, store, cache, now):
        result = claim_service.claim_daily(store, cache, "u1", now=now)
        assert result.coins_awarded == 10
        assert result.bonus_coins == 0
        assert result.new_streak == 1
        assert result.new_balance == 10
        assert result.claim_date == date(2026, 3, 11)
        assert result.next_claim_at == datetime(2026, 3, 12, tzinfo=UTC)

        profile = store.get_profile("u1")
        assert profile.coin_balance == 10
        assert profile.login_streak == 1
        assert profile.last_claim_date == date(2026, 3, 11)

    def test_writes_claim_record_and_transaction(self, store, cache, now):
        claim_service.claim_daily(store, cache, "u1", now=now)
        claim = store.get_daily_claim("u1", date(2026, 3, 11))
        assert claim is not None
        assert claim.coins_awarded == 10
        assert claim.streak == 1
        [entry] = store.list_transactions("u1", LedgerKind.COIN)
        assert entry.type == TransactionType.DAILY_CLAIM
        assert entry.description == "Daily reward (day 1)"

    def test_claim_amount_follows_settings(self, db_engine, store, cache, now):
        upsert_setting(db_engine, cache, key="coins.daily_claim_amount", value=25)
        result = claim_service.claim_daily(store, cache, "u1", now=now)
        assert result.coins_awarded == 25


class TestStreaks:
    def test_seven_consecutive_days(self, store, cache, now):
        results = [
            claim_service.claim_daily(store, cache, "u1", now=moment)
            for moment in _days(now, 7)
        ]
        assert [r.new_streak for r in results] == [1, 2, 3, 4, 5, 6, 7]
        assert [r.coins_awarded for r in results] == [10] * 6 + [15]
        assert results[-1].bonus_coins == 5
        assert store.get_profile("u1").coin_balance == 75

    def test_bonus_written_as_separate_entry(self, store, cache, now):
        for moment in _days(now, 7):
            claim_service.claim_daily(store, cache, "u1", now=moment)
        entries = store.list_transactions("u1", LedgerKind.COIN)
        bonus = [e for e in entries if e.type == TransactionType.STREAK_BONUS]
        assert len(bonus) == 1
        assert bonus[0].amount == 5
        assert bonus[0].description == "7-day streak bonus"
        # the claim record carries the combined amount
        assert store.get_daily_claim("u1", bonus[0].created_at.date()).coins_awarded == 15

    def test_gap_resets_streak(self, store, cache, now):
        claim_service.claim_daily(store, cache, "u1", now=now)
        claim_service.claim_daily(store, cache, "u1", now=now + timedelta(days=1))
        result = claim_service.claim_daily(store, cache, "u1", now=now + timedelta(days=3))
        assert result.new_streak == 1
        assert store.get_profile("u1").login_streak == 1

    def test_bonus_disabled(self, db_engine, store, cache, now):
        upsert_setting(db_engine, cache, key="coins.streak_bonus_enabled", value=False)
        results = [
            claim_service.claim_daily(store, cache, "u1", now=moment)
            for moment in _days(now, 7)
        ]
        assert results[-1].coins_awarded == 10


class TestOncePerDay:
    def test_second_claim_same_day_rejected(self, db_engine, store, cache, now):
        claim_service.claim_daily(store, cache, "u1", now=now)
        with pytest.raises(AlreadyClaimedError):
            claim_service.claim_daily(store, cache, "u1", now=now + timedelta(hours=8))
        assert store.get_profile("u1").coin_balance == 10
        assert _claim_count(db_engine) == 1

    def test_users_are_independent(self, store, cache, now):
        claim_service.claim_daily(store, cache, "u1", now=now)
        result = claim_service.claim_daily(store, cache, "u2", now=now)
        assert result.new_balance == 10

    def test_concurrent_claims(self, tmp_path, now):
        """Two threads claiming at once: exactly one wins."""
        engine, cache, store = _file_backed(tmp_path)

        barrier = threading.Barrier(2)
        outcomes: list[object] = []
        guard = threading.Lock()

        def worker():
            barrier.wait()
            try:
                result = claim_service.claim_daily(store, cache, "u1", now=now)
            except AlreadyClaimedError as exc:
                result = exc
            with guard:
                outcomes.append(result)

        threads = [threading.Thread(target=worker) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        try:
            assert len(outcomes) == 2
            assert sum(isinstance(o, claim_service.ClaimResult) for o in outcomes) == 1
            assert sum(isinstance(o, AlreadyClaimedError) for o in outcomes) == 1
            assert _claim_count(engine) == 1
            assert store.get_profile("u1").coin_balance == 10
        finally:
            engine.dispose()


class TestClaimRacingAdmin:
    """Claims and admin adjustments on the same member interleave safely."""

    ADMIN = AdminActor("admin-1", is_admin=True)
    COMMANDS = (
        RemoveCoins(1000), AddCoins(25), RemoveCoins(7), AddPoints(40), RemovePoints(1000),
    )

    def _race(self, targets):
        barrier = threading.Barrier(len(targets))
        errors: list[Exception] = []
        guard = threading.Lock()

        def run(action):
            barrier.wait()
            try:
                action()
            except Exception as exc:  # surfaced by the caller's assertion
                with guard:
                    errors.append(exc)

        threads = [threading.Thread(target=run, args=(t,)) for t in targets]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)
        return errors

    def test_balances_match_ledger_sums(self, tmp_path, now):
        engine, cache, store = _file_backed(tmp_path)
        try:
            admin_service.adjust(store, cache, self.ADMIN, "u1", AddCoins(30), now=now)
            admin_service.adjust(store, cache, self.ADMIN, "u1", AddPoints(80), now=now)

            for moment in _days(now, 3):
                targets = [
                    lambda m=moment: claim_service.claim_daily(store, cache, "u1", now=m),
                ]
                targets += [
                    lambda c=command, m=moment: admin_service.adjust(
                        store, cache, self.ADMIN, "u1", c, now=m,
                    )
                    for command in self.COMMANDS
                ]
                assert self._race(targets) == []

                profile = store.get_profile("u1")
                assert profile.coin_balance >= 0
                assert profile.point_balance >= 0
                assert profile.coin_balance == _ledger_sum(engine, CoinTransaction, "u1")
                assert profile.point_balance == _ledger_sum(engine, PointTransaction, "u1")
                assert profile.last_claim_date == moment.date()

            assert _claim_count(engine) == 3
            assert store.get_profile("u1").login_streak == 3
            with Session(engine) as session:
                audited = session.scalar(select(func.count()).select_from(AdminLog))
            assert audited == 2 + 3 * len(self.COMMANDS)
            assert store.balance_drift() == []
        finally:
            engine.dispose()


class TestAtomicity:
    def test_failure_mid_claim_rolls_everything_back(
        self, db_engine, store, cache, now, monkeypatch
    ):
        for moment in _days(now, 6):
            claim_service.claim_daily(store, cache, "u1", now=moment)
        day7 = now + timedelta(days=6)

        real_post_delta = ledger_service.post_delta

        def failing_post_delta(unit, kind, amount, tx_type, *args, **kwargs):
            if tx_type == TransactionType.STREAK_BONUS:
                raise RuntimeError("database went away")
            return real_post_delta(unit, kind, amount, tx_type, *args, **kwargs)

        monkeypatch.setattr(ledger_service, "post_delta", failing_post_delta)
        with pytest.raises(RuntimeError):
            claim_service.claim_daily(store, cache, "u1", now=day7)

        profile = store.get_profile("u1")
        assert profile.coin_balance == 60
        assert profile.login_streak == 6
        assert profile.last_claim_date == (now + timedelta(days=5)).date()
        assert store.get_daily_claim("u1", day7.date()) is None
        with Session(db_engine) as session:
            assert session.scalar(select(func.count()).select_from(CoinTransaction)) == 6

        # once the fault clears the same claim goes through
        monkeypatch.setattr(ledger_service, "post_delta", real_post_delta)
        result = claim_service.claim_daily(store, cache, "u1", now=day7)
        assert result.coins_awarded == 15


class TestTimezone:
    def test_claim_day_uses_configured_timezone(self, db_engine, store, cache):
        upsert_setting(db_engine, cache, key="claims.timezone", value="America/New_York")
        late_evening_new_york = datetime(2026, 3, 11, 2, 0, tzinfo=UTC)
        result = claim_service.claim_daily(store, cache, "u1", now=late_evening_new_york)
        assert result.claim_date == date(2026, 3, 10)
        assert result.next_claim_at == datetime(2026, 3, 11, 4, 0, tzinfo=UTC)

        # 03:00 UTC is still 10 March in New York
        with pytest.raises(AlreadyClaimedError):
            claim_service.claim_daily(
                store, cache, "u1", now=datetime(2026, 3, 11, 3, 0, tzinfo=UTC),
            )


class TestClaimStatus:
    def test_unknown_user_can_claim_without_profile(self, store, cache, now):
        status = claim_service.claim_status(store, cache, "ghost", now=now)
        assert status.can_claim
        assert status.next_reward == 10
        assert status.seconds_until_next_claim == 0
        assert store.peek_profile("ghost") is None

    def test_after_claim(self, store, cache, now):
        claim_service.claim_daily(store, cache, "u1", now=now)
        status = claim_service.claim_status(store, cache, "u1", now=now)
        assert not status.can_claim
        assert status.login_streak == 1
        assert status.next_reward == 0
        assert status.seconds_until_next_claim == 9 * 3600
        assert status.next_claim_at == datetime(2026, 3, 12, tzinfo=UTC)

    def test_shows_upcoming_bonus(self, store, cache, now):
        for moment in _days(now, 6):
            claim_service.claim_daily(store, cache, "u1", now=moment)
        status = claim_service.claim_status(
            store, cache, "u1", now=now + timedelta(days=6),
        )
        assert status.can_claim
        assert status.next_reward == 15

    def test_status_is_read_only(self, store, cache, now):
        claim_service.claim_daily(store, cache, "u1", now=now)
        before = store.get_profile("u1")
        for _ in range(3):
            claim_service.claim_status(store, cache, "u1", now=now)
        assert store.get_profile("u1") == before
