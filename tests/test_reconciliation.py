"""
tests/test_reconciliation.py — Balance Reconciliation Tests
============================================================
Balances are forced out of line with the ledger by writing the profile
row directly, then reconciled back.
"""

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.orm import Session

from stitchcoin.database.models import LedgerKind, RewardProfile
from stitchcoin.services import admin_service, ledger_service
from stitchcoin.services.reconciliation_service import reconcile_balances


def _corrupt(engine, user_id, **values):
    with Session(engine) as session:
        session.execute(
            update(RewardProfile).where(RewardProfile.user_id == user_id).values(**values)
        )
        session.commit()


def _seed(store, cache, now):
    ledger_service.apply_delta(
        store, cache, "u1", LedgerKind.COIN, 40, "admin_adjustment", "seed", now=now,
    )
    ledger_service.apply_delta(
        store, cache, "u1", LedgerKind.POINT, 70, "purchase_points", "seed", now=now,
    )


class TestReconcile:
    def test_clean_ledger(self, store, cache, now):
        _seed(store, cache, now)
        report = reconcile_balances(store)
        assert report["checked"] == 2
        assert report["corrected"] == 0
        assert report["corrections"] == []

    def test_fixes_drift(self, db_engine, store, cache, now):
        _seed(store, cache, now)
        _corrupt(db_engine, "u1", coin_balance=999)

        report = reconcile_balances(store, actor_id="admin-1")
        assert report["corrected"] == 1
        assert report["corrections"] == [{
            "user_id": "u1", "kind": "coin", "stored": 999, "actual": 40, "diff": -959,
        }]
        assert store.get_profile("u1").coin_balance == 40
        assert store.balance_drift() == []

        [audit] = admin_service.list_audit(db_engine, target_id="u1")
        assert audit["action_type"] == "reconcile"
        assert audit["actor_id"] == "admin-1"

    def test_dry_run_reports_without_fixing(self, db_engine, store, cache, now):
        _seed(store, cache, now)
        _corrupt(db_engine, "u1", point_balance=3)

        report = reconcile_balances(store, fix=False)
        assert report["corrected"] == 0
        assert report["drifted"] == 1
        assert report["corrections"][0]["kind"] == "point"
        assert store.get_profile("u1").point_balance == 3
