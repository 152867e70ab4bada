"""
stitchcoin.api.routes.rewards — Member rewards endpoints (JWT‑protected)
========================================================================

The caller is always the user named in the token's ``sub`` claim.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from stitchcoin.api.deps import get_cache, get_current_user, get_store
from stitchcoin.engine.cache import ConfigCache
from stitchcoin.services import (
    analytics_service,
    claim_service,
    redemption_service,
)
from stitchcoin.services.ledger_store import LedgerStore

router = APIRouter(prefix="/rewards", tags=["rewards"])


# ---------------------------------------------------------------------------
# Daily claim
# ---------------------------------------------------------------------------
@router.post("/claim")
def claim(
    user: dict = Depends(get_current_user),
    store: LedgerStore = Depends(get_store),
    cache: ConfigCache = Depends(get_cache),
):
    result = claim_service.claim_daily(store, cache, str(user["sub"]))
    return {
        "success": True,
        "message": f"You earned {result.coins_awarded} coins!",
        **result.to_dict(),
    }


@router.get("/claim/status")
def claim_status(
    user: dict = Depends(get_current_user),
    store: LedgerStore = Depends(get_store),
    cache: ConfigCache = Depends(get_cache),
):
    return claim_service.claim_status(store, cache, str(user["sub"])).to_dict()


# ---------------------------------------------------------------------------
# Balance, history, analytics
# ---------------------------------------------------------------------------
@router.get("/balance")
def balance(
    user: dict = Depends(get_current_user),
    store: LedgerStore = Depends(get_store),
    cache: ConfigCache = Depends(get_cache),
):
    return analytics_service.get_balance(store, cache, str(user["sub"]))


@router.get("/history")
def history(
    user: dict = Depends(get_current_user),
    store: LedgerStore = Depends(get_store),
    cache: ConfigCache = Depends(get_cache),
):
    return analytics_service.get_history(store, cache, str(user["sub"]))


@router.get("/analytics")
def analytics(
    user: dict = Depends(get_current_user),
    store: LedgerStore = Depends(get_store),
    cache: ConfigCache = Depends(get_cache),
):
    return analytics_service.build_analytics(store, cache, str(user["sub"]))


# ---------------------------------------------------------------------------
# Reward catalog
# ---------------------------------------------------------------------------
@router.get("/catalog")
def catalog(
    user: dict = Depends(get_current_user),
    store: LedgerStore = Depends(get_store),
):
    return redemption_service.list_catalog(store, str(user["sub"]))


@router.post("/catalog/{reward_id}/redeem")
def redeem(
    reward_id: str,
    user: dict = Depends(get_current_user),
    store: LedgerStore = Depends(get_store),
    cache: ConfigCache = Depends(get_cache),
):
    return {
        "success": True,
        **redemption_service.redeem_reward(store, cache, str(user["sub"]), reward_id),
    }
