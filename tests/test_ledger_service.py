"""
tests/test_ledger_service.py — Balance Ledger Tests
====================================================
Tests for post_delta / apply_delta and the commerce hooks against an
in-memory SQLite database.

Every test checks the core invariant where it matters: the stored balance
always equals the sum of the user's ledger entries.
"""

from __future__ import annotations

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from stitchcoin.database.models import (
    CoinTransaction,
    LedgerKind,
    PointTransaction,
    TransactionType,
)
from stitchcoin.errors import (
    IdempotencyConflictError,
    InsufficientBalanceError,
    InvalidAmountError,
)
from stitchcoin.services import ledger_service
from stitchcoin.services.settings_service import upsert_setting


def _ledger_sum(engine, model, user_id: str) -> int:
    with Session(engine) as session:
        return session.scalar(
            select(func.coalesce(func.sum(model.amount), 0)).where(model.user_id == user_id)
        )


def _row_count(engine, model) -> int:
    with Session(engine) as session:
        return session.scalar(select(func.count()).select_from(model))


class TestApplyDelta:
    def test_credit_updates_balance_and_ledger(self, db_engine, store, cache, now):
        entry = ledger_service.apply_delta(
            store, cache, "u1", LedgerKind.COIN, 25,
            TransactionType.ADMIN_ADJUSTMENT, "Welcome gift", now=now,
        )
        assert entry.amount == 25
        assert entry.created_at == now
        assert store.get_profile("u1").coin_balance == 25
        assert _ledger_sum(db_engine, CoinTransaction, "u1") == 25

    def test_debit_within_balance(self, db_engine, store, cache, now):
        ledger_service.apply_delta(
            store, cache, "u1", LedgerKind.COIN, 25, "admin_adjustment", "in", now=now,
        )
        ledger_service.apply_delta(
            store, cache, "u1", LedgerKind.COIN, -25, "reward_redemption", "out", now=now,
        )
        assert store.get_profile("u1").coin_balance == 0
        assert _ledger_sum(db_engine, CoinTransaction, "u1") == 0

    def test_point_balance_matches_ledger_sum(self, db_engine, store, cache, now):
        for amount in (120, -45, 30):
            ledger_service.apply_delta(
                store, cache, "u1", LedgerKind.POINT, amount, "admin_adjustment", "p",
                now=now,
            )
        assert store.get_profile("u1").point_balance == 105
        assert _ledger_sum(db_engine, PointTransaction, "u1") == 105

    def test_zero_amount_rejected(self, db_engine, store, cache, now):
        with pytest.raises(InvalidAmountError):
            ledger_service.apply_delta(
                store, cache, "u1", LedgerKind.COIN, 0, "admin_adjustment", "noop", now=now,
            )
        assert _row_count(db_engine, CoinTransaction) == 0

    def test_overdraft_rejected_and_nothing_written(self, db_engine, store, cache, now):
        ledger_service.apply_delta(
            store, cache, "u1", LedgerKind.POINT, 50, "purchase_points", "in", now=now,
        )
        with pytest.raises(InsufficientBalanceError) as excinfo:
            ledger_service.apply_delta(
                store, cache, "u1", LedgerKind.POINT, -80, "reward_redemption", "out",
                now=now,
            )
        assert excinfo.value.balance == 50
        assert excinfo.value.requested == 80
        assert store.get_profile("u1").point_balance == 50
        assert _row_count(db_engine, PointTransaction) == 1

    def test_idempotent_replay(self, db_engine, store, cache, now):
        first = ledger_service.apply_delta(
            store, cache, "u1", LedgerKind.COIN, 40, "purchase_bonus", "order",
            idempotency_key="order-1", now=now,
        )
        second = ledger_service.apply_delta(
            store, cache, "u1", LedgerKind.COIN, 40, "purchase_bonus", "order",
            idempotency_key="order-1", now=now,
        )
        assert first.id == second.id
        assert store.get_profile("u1").coin_balance == 40
        assert _row_count(db_engine, CoinTransaction) == 1

    def test_replayed_key_with_other_amount_conflicts(self, db_engine, store, cache, now):
        ledger_service.apply_delta(
            store, cache, "u1", LedgerKind.COIN, 40, "purchase_bonus", "order",
            idempotency_key="order-1", now=now,
        )
        with pytest.raises(IdempotencyConflictError):
            ledger_service.apply_delta(
                store, cache, "u1", LedgerKind.COIN, 55, "purchase_bonus", "order",
                idempotency_key="order-1", now=now,
            )
        assert store.get_profile("u1").coin_balance == 40
        assert _row_count(db_engine, CoinTransaction) == 1


class TestTierRecompute:
    def test_points_move_tier(self, store, cache, now):
        ledger_service.apply_delta(
            store, cache, "u1", LedgerKind.POINT, 120, "purchase_points", "p", now=now,
        )
        assert store.get_profile("u1").loyalty_tier == "silver"

    def test_spending_points_keeps_tier(self, store, cache, now):
        """Tiers follow lifetime points earned, not the spendable balance."""
        ledger_service.apply_delta(
            store, cache, "u1", LedgerKind.POINT, 600, "purchase_points", "p", now=now,
        )
        ledger_service.apply_delta(
            store, cache, "u1", LedgerKind.POINT, -500, "reward_redemption", "r", now=now,
        )
        profile = store.get_profile("u1")
        assert profile.point_balance == 100
        assert profile.loyalty_tier == "gold"

    def test_coins_do_not_move_tier(self, store, cache, now):
        ledger_service.apply_delta(
            store, cache, "u1", LedgerKind.COIN, 5000, "admin_adjustment", "c", now=now,
        )
        assert store.get_profile("u1").loyalty_tier == "bronze"

    def test_custom_thresholds_from_settings(self, db_engine, store, cache, now):
        upsert_setting(
            db_engine, cache, key="points.tier_thresholds",
            value={"bronze": 0, "silver": 10, "gold": 20, "platinum": 30},
        )
        ledger_service.apply_delta(
            store, cache, "u1", LedgerKind.POINT, 25, "purchase_points", "p", now=now,
        )
        assert store.get_profile("u1").loyalty_tier == "gold"


class TestCommerceHooks:
    def test_purchase_bonus(self, store, cache, now):
        entry = ledger_service.credit_purchase_bonus(store, cache, "u1", 15, "pat-9", now=now)
        assert entry.type == TransactionType.PURCHASE_BONUS
        assert entry.reference == "pat-9"
        assert store.get_profile("u1").coin_balance == 15

    def test_purchase_bonus_must_be_positive(self, store, cache, now):
        with pytest.raises(InvalidAmountError):
            ledger_service.credit_purchase_bonus(store, cache, "u1", 0, "pat-9", now=now)

    def test_record_purchase_awards_points_and_coins(self, store, cache, now):
        reward = ledger_service.record_purchase(
            store, cache, "u1", 12.5, "ord-1", "pat-3", now=now,
        )
        # default rates: 10 points and 1 coin per currency unit, floored
        assert reward.to_dict() == {
            "order_ref": "ord-1", "points_awarded": 125, "coins_awarded": 12,
        }
        profile = store.get_profile("u1")
        assert profile.point_balance == 125
        assert profile.coin_balance == 12
        assert profile.loyalty_tier == "silver"

    def test_record_purchase_is_idempotent_per_order(self, db_engine, store, cache, now):
        ledger_service.record_purchase(store, cache, "u1", 10, "ord-1", now=now)
        ledger_service.record_purchase(store, cache, "u1", 10, "ord-1", now=now)
        profile = store.get_profile("u1")
        assert profile.point_balance == 100
        assert profile.coin_balance == 10
        assert _row_count(db_engine, PointTransaction) == 1

    def test_same_order_ref_for_two_users_credits_both(self, db_engine, store, cache, now):
        ledger_service.record_purchase(store, cache, "alice", 10, "order-1", now=now)
        reward = ledger_service.record_purchase(store, cache, "bob", 10, "order-1", now=now)

        assert reward.points.user_id == "bob"
        assert reward.to_dict() == {
            "order_ref": "order-1", "points_awarded": 100, "coins_awarded": 10,
        }
        for user_id in ("alice", "bob"):
            profile = store.get_profile(user_id)
            assert profile.point_balance == 100
            assert profile.coin_balance == 10
            assert _ledger_sum(db_engine, PointTransaction, user_id) == 100
            assert _ledger_sum(db_engine, CoinTransaction, user_id) == 10

    def test_order_replayed_with_new_total_conflicts(self, store, cache, now):
        ledger_service.record_purchase(store, cache, "u1", 10, "ord-1", now=now)
        with pytest.raises(IdempotencyConflictError):
            ledger_service.record_purchase(store, cache, "u1", 25, "ord-1", now=now)
        profile = store.get_profile("u1")
        assert profile.point_balance == 100
        assert profile.coin_balance == 10

    def test_purchase_bonus_disabled(self, db_engine, store, cache, now):
        upsert_setting(db_engine, cache, key="coins.purchase_bonus_enabled", value=False)
        reward = ledger_service.record_purchase(store, cache, "u1", 10, "ord-2", now=now)
        assert reward.coins is None
        assert store.get_profile("u1").coin_balance == 0

    def test_record_purchase_rejects_bad_input(self, store, cache, now):
        with pytest.raises(InvalidAmountError):
            ledger_service.record_purchase(store, cache, "u1", 0, "ord-3", now=now)
        with pytest.raises(InvalidAmountError):
            ledger_service.record_purchase(store, cache, "u1", 5, "", now=now)
