"""
stitchcoin.services.reconciliation_service — Balance Reconciliation
====================================================================

Validates ``reward_profiles`` balances against the ledgers and corrects
drift if found.

How it works:
    1. ``SUM(amount)`` per user from ``coin_transactions`` and
       ``point_transactions`` is the ground truth.
    2. Compare against the stored ``coin_balance`` / ``point_balance``.
    3. For each mismatch (when *fix* is set), take the user's ledger lock,
       re-read both figures and overwrite the balance with the ledger sum.
    4. Log all corrections for audit.

Run on startup and on demand from the admin dashboard.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from stitchcoin.database.models import BALANCE_FIELDS, AdminActionType
from stitchcoin.engine.records import resolve_now

if TYPE_CHECKING:
    from stitchcoin.services.ledger_store import LedgerStore

logger = logging.getLogger(__name__)


def reconcile_balances(
    store: LedgerStore, *, fix: bool = True, actor_id: str = "system"
) -> dict:
    """Compare every balance with its ledger sum and (optionally) fix drift.

    Returns ``{"checked": N, "corrected": M, "corrections": [...]}``.
    """
    checked = len(store.list_user_ids()) * len(BALANCE_FIELDS)
    corrections: list[dict] = []

    for user_id, kind, stored, actual in store.balance_drift():
        correction = {
            "user_id": user_id,
            "kind": kind.value,
            "stored": stored,
            "actual": actual,
            "diff": actual - stored,
        }
        if fix:
            with store.unit(user_id) as unit:
                # Re-check under the lock; a concurrent unit may have moved both.
                actual = unit.ledger_sum(kind)
                before = unit.snapshot()
                if before.balance(kind) == actual:
                    continue
                if actual < 0:
                    logger.error(
                        "Ledger sum for %s %s is negative (%d); not correcting",
                        user_id, kind.value, actual,
                    )
                    continue
                unit.update_profile(**{BALANCE_FIELDS[kind]: actual})
                unit.flush()
                unit.record_admin_action(
                    actor_id=actor_id,
                    action_type=AdminActionType.RECONCILE,
                    before=before.to_dict(),
                    after=unit.snapshot().to_dict(),
                    reason=f"{kind.value} balance reconciled to ledger sum",
                )
            correction.update(stored=before.balance(kind), actual=actual,
                              diff=actual - before.balance(kind))
        corrections.append(correction)

    if corrections:
        logger.warning(
            "Balance reconciliation: %s %d/%d balances: %s",
            "corrected" if fix else "found drift in",
            len(corrections), checked, corrections,
        )
    else:
        logger.info("Balance reconciliation: all %d balances match", checked)

    return {
        "checked": checked,
        "corrected": len(corrections) if fix else 0,
        "drifted": len(corrections),
        "corrections": corrections,
        "timestamp": resolve_now().isoformat(),
    }
