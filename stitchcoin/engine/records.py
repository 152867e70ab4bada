"""
stitchcoin.engine.records — Immutable ledger snapshots
=======================================================

Plain frozen dataclasses handed out by the Ledger Store.  Services return
these instead of ORM rows so callers never hold a session-bound object,
and the pure engine modules can type against them without importing
SQLAlchemy sessions.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, date, datetime
from typing import TYPE_CHECKING

from stitchcoin.database.models import LedgerKind

if TYPE_CHECKING:
    from stitchcoin.database.models import (
        CoinTransaction,
        DailyClaim,
        PointTransaction,
        RewardProfile,
    )

__all__ = ["ClaimRecord", "LedgerEntry", "ProfileSnapshot", "ensure_utc", "resolve_now"]


def ensure_utc(moment: datetime) -> datetime:
    """Return *moment* as an aware UTC datetime.

    Naive values are taken to already be UTC (SQLite drops the offset on
    the way back out of the database).
    """
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC)


@dataclass(frozen=True, slots=True)
class ProfileSnapshot:
    """Point-in-time copy of a :class:`RewardProfile` row."""

    user_id: str
    coin_balance: int = 0
    point_balance: int = 0
    login_streak: int = 0
    last_claim_date: date | None = None
    loyalty_tier: str = "bronze"
    tier_floor: str | None = None

    @classmethod
    def from_row(cls, row: RewardProfile) -> ProfileSnapshot:
        return cls(
            user_id=row.user_id,
            coin_balance=row.coin_balance,
            point_balance=row.point_balance,
            login_streak=row.login_streak,
            last_claim_date=row.last_claim_date,
            loyalty_tier=row.loyalty_tier,
            tier_floor=row.tier_floor,
        )

    def balance(self, kind: LedgerKind) -> int:
        return self.coin_balance if kind == LedgerKind.COIN else self.point_balance

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "coin_balance": self.coin_balance,
            "point_balance": self.point_balance,
            "login_streak": self.login_streak,
            "last_claim_date": (
                self.last_claim_date.isoformat() if self.last_claim_date else None
            ),
            "loyalty_tier": self.loyalty_tier,
            "tier_floor": self.tier_floor,
        }


@dataclass(frozen=True, slots=True)
class LedgerEntry:
    """One committed coin or point transaction."""

    id: int
    user_id: str
    kind: LedgerKind
    type: str
    amount: int
    description: str
    created_at: datetime
    reference: str | None = None

    @classmethod
    def from_row(
        cls, row: CoinTransaction | PointTransaction, kind: LedgerKind
    ) -> LedgerEntry:
        return cls(
            id=row.id,
            user_id=row.user_id,
            kind=kind,
            type=row.type,
            amount=row.amount,
            description=row.description,
            created_at=ensure_utc(row.created_at),
            reference=row.reference,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "type": self.type,
            "amount": self.amount,
            "description": self.description,
            "reference": self.reference,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True, slots=True)
class ClaimRecord:
    """One daily claim."""

    user_id: str
    claim_date: date
    claimed_at: datetime
    coins_awarded: int
    streak: int

    @classmethod
    def from_row(cls, row: DailyClaim) -> ClaimRecord:
        return cls(
            user_id=row.user_id,
            claim_date=row.claim_date,
            claimed_at=ensure_utc(row.claimed_at),
            coins_awarded=row.coins_awarded,
            streak=row.streak,
        )

    def to_dict(self) -> dict:
        return {
            "claim_date": self.claim_date.isoformat(),
            "claimed_at": self.claimed_at.isoformat(),
            "coins_awarded": self.coins_awarded,
            "streak": self.streak,
        }


def resolve_now(now: datetime | None = None) -> datetime:
    """*now* normalised to aware UTC, or the current time."""
    return ensure_utc(now) if now is not None else datetime.now(UTC)
