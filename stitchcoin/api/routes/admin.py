"""
stitchcoin.api.routes.admin — Admin rewards endpoints (JWT‑protected)
=====================================================================
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from stitchcoin.api.deps import (
    get_actor,
    get_cache,
    get_current_admin,
    get_engine,
    get_store,
)
from stitchcoin.engine.cache import ConfigCache
from stitchcoin.engine.commands import parse_admin_action
from stitchcoin.services import (
    admin_service,
    ledger_service,
    reconciliation_service,
    settings_service,
)
from stitchcoin.services.admin_service import AdminActor
from stitchcoin.services.ledger_store import LedgerStore

router = APIRouter(prefix="/admin", tags=["admin"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class AdjustRequest(BaseModel):
    action: str
    user_id: str = Field(min_length=1, max_length=64)
    amount: int | None = None
    tier: str | None = None
    reason: str | None = Field(default=None, max_length=500)


class PurchaseBonusRequest(BaseModel):
    user_id: str = Field(min_length=1, max_length=64)
    amount: int
    pattern_id: str = Field(min_length=1, max_length=100)


class PurchaseRequest(BaseModel):
    user_id: str = Field(min_length=1, max_length=64)
    order_total: float
    order_ref: str = Field(min_length=1, max_length=80)
    pattern_id: str | None = Field(default=None, max_length=100)


class SettingUpdate(BaseModel):
    key: str
    value: Any
    category: str | None = None
    description: str | None = None


# ---------------------------------------------------------------------------
# Adjustments
# ---------------------------------------------------------------------------
@router.post("/rewards/adjust")
def adjust(
    body: AdjustRequest,
    actor: AdminActor = Depends(get_actor),
    store: LedgerStore = Depends(get_store),
    cache: ConfigCache = Depends(get_cache),
):
    """Apply a dashboard action; non-admin callers get 403 from the gateway."""
    command = parse_admin_action(body.action, body.amount, body.tier)
    result = admin_service.adjust(
        store, cache, actor, body.user_id, command, body.reason,
    )
    return result.to_dict()


# ---------------------------------------------------------------------------
# Commerce hooks
# ---------------------------------------------------------------------------
@router.post("/rewards/purchase-bonus")
def purchase_bonus(
    body: PurchaseBonusRequest,
    admin: dict = Depends(get_current_admin),
    store: LedgerStore = Depends(get_store),
    cache: ConfigCache = Depends(get_cache),
):
    entry = ledger_service.credit_purchase_bonus(
        store, cache, body.user_id, body.amount, body.pattern_id,
    )
    return {"transaction": entry.to_dict()}


@router.post("/rewards/purchases")
def record_purchase(
    body: PurchaseRequest,
    admin: dict = Depends(get_current_admin),
    store: LedgerStore = Depends(get_store),
    cache: ConfigCache = Depends(get_cache),
):
    reward = ledger_service.record_purchase(
        store, cache, body.user_id, body.order_total, body.order_ref, body.pattern_id,
    )
    return reward.to_dict()


# ---------------------------------------------------------------------------
# Overview & reconciliation
# ---------------------------------------------------------------------------
@router.get("/rewards/overview")
def overview(
    admin: dict = Depends(get_current_admin),
    store: LedgerStore = Depends(get_store),
):
    return admin_service.get_overview(store)


@router.post("/rewards/reconcile")
def reconcile(
    fix: bool = Query(True),
    admin: dict = Depends(get_current_admin),
    store: LedgerStore = Depends(get_store),
):
    return reconciliation_service.reconcile_balances(
        store, fix=fix, actor_id=str(admin["sub"]),
    )


# ---------------------------------------------------------------------------
# Audit log
# ---------------------------------------------------------------------------
@router.get("/audit")
def audit_log(
    user_id: str | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
    admin: dict = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    return {"entries": admin_service.list_audit(engine, target_id=user_id, limit=limit)}


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------
@router.get("/settings")
def get_settings(
    admin: dict = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    return {"settings": settings_service.get_all_settings(engine)}


@router.put("/settings")
def update_settings(
    body: list[SettingUpdate],
    admin: dict = Depends(get_current_admin),
    engine=Depends(get_engine),
    cache: ConfigCache = Depends(get_cache),
):
    items = [
        {
            "key": s.key,
            "value": s.value,
            **({"category": s.category} if s.category else {}),
            **({"description": s.description} if s.description else {}),
        }
        for s in body
    ]
    count = settings_service.bulk_upsert(engine, cache, items, actor_id=str(admin["sub"]))
    return {"updated": count}
