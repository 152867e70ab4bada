"""
stitchcoin.database.models — SQLAlchemy 2.0 Data Models
========================================================

Schema for the rewards ledger.

Tables:
- reward_profiles     — Per-user balances, streak state and loyalty tier
- coin_transactions   — Append-only coin ledger (signed amounts)
- point_transactions  — Append-only point ledger (same shape as coins)
- daily_claims        — One row per user per claimed calendar day
- settings            — JSON key-value tuning knobs (claim amount, tiers, …)
- admin_log           — Append-only audit trail of admin mutations

Balances on ``reward_profiles`` are a materialisation of the ledgers: for
every user, ``coin_balance == SUM(coin_transactions.amount)`` and likewise
for points.  Only :mod:`stitchcoin.services.ledger_store` units write them.
"""

from __future__ import annotations

import enum
from datetime import date, datetime

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, declared_attr, mapped_column

# JSONB on PostgreSQL, plain JSON everywhere else (SQLite in tests).
JSONType = JSON().with_variant(JSONB, "postgresql")


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Stitchcoin ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class LedgerKind(enum.StrEnum):
    """The two balances a profile carries."""
    COIN = "coin"
    POINT = "point"


class TransactionType(enum.StrEnum):
    """Why a ledger entry was written."""
    DAILY_CLAIM = "daily_claim"
    STREAK_BONUS = "streak_bonus"
    PURCHASE_BONUS = "purchase_bonus"
    PURCHASE_POINTS = "purchase_points"
    REWARD_REDEMPTION = "reward_redemption"
    ADMIN_ADJUSTMENT = "admin_adjustment"


class LoyaltyTier(enum.StrEnum):
    """Loyalty tiers, lowest first."""
    BRONZE = "bronze"
    SILVER = "silver"
    GOLD = "gold"
    PLATINUM = "platinum"


class AdminActionType(enum.StrEnum):
    """Categories of admin mutations recorded in admin_log."""
    ADD_COINS = "add_coins"
    REMOVE_COINS = "remove_coins"
    ADD_POINTS = "add_points"
    REMOVE_POINTS = "remove_points"
    RESET_STREAK = "reset_streak"
    SET_TIER = "set_tier"
    RECONCILE = "reconcile"
    UPDATE_SETTING = "update_setting"


# ---------------------------------------------------------------------------
# RewardProfile — one row per user
# ---------------------------------------------------------------------------
class RewardProfile(Base):
    __tablename__ = "reward_profiles"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    coin_balance: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    point_balance: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    login_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_claim_date: Mapped[date | None] = mapped_column(Date, default=None)
    loyalty_tier: Mapped[str] = mapped_column(
        String(20), nullable=False, default=LoyaltyTier.BRONZE.value
    )
    # Tier granted by an administrator; automatic recomputation never drops below it.
    tier_floor: Mapped[str | None] = mapped_column(String(20), default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("coin_balance >= 0", name="ck_reward_profiles_coins_nonneg"),
        CheckConstraint("point_balance >= 0", name="ck_reward_profiles_points_nonneg"),
        CheckConstraint("login_streak >= 0", name="ck_reward_profiles_streak_nonneg"),
        Index("ix_reward_profiles_coin_balance", "coin_balance"),
        Index("ix_reward_profiles_point_balance", "point_balance"),
    )

    def __repr__(self) -> str:
        return (
            f"<RewardProfile user={self.user_id!r} coins={self.coin_balance} "
            f"points={self.point_balance} streak={self.login_streak}>"
        )


# ---------------------------------------------------------------------------
# Ledger tables — coins and points share one shape
# ---------------------------------------------------------------------------
class _LedgerEntryColumns:
    """Columns shared by :class:`CoinTransaction` and :class:`PointTransaction`."""

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    reference: Mapped[str | None] = mapped_column(String(100), default=None)
    # Unique per user, not globally: order refs come from the storefront.
    idempotency_key: Mapped[str | None] = mapped_column(String(128), default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    @declared_attr
    def user_id(cls) -> Mapped[str]:
        return mapped_column(
            String(64),
            ForeignKey("reward_profiles.user_id", ondelete="CASCADE"),
            nullable=False,
        )

    @declared_attr.directive
    def __table_args__(cls) -> tuple:
        table = cls.__tablename__
        return (
            CheckConstraint("amount <> 0", name=f"ck_{table}_amount_nonzero"),
            UniqueConstraint(
                "user_id", "idempotency_key", name=f"uq_{table}_user_idempotency_key"
            ),
            Index(f"ix_{table}_user_time", "user_id", "created_at"),
            Index(f"ix_{table}_created_at", "created_at"),
        )

    def __repr__(self) -> str:
        return (
            f"<{type(self).__name__} id={self.id} user={self.user_id!r} "
            f"type={self.type} amount={self.amount}>"
        )


class CoinTransaction(_LedgerEntryColumns, Base):
    __tablename__ = "coin_transactions"


class PointTransaction(_LedgerEntryColumns, Base):
    __tablename__ = "point_transactions"


LEDGER_MODELS: dict[LedgerKind, type[CoinTransaction] | type[PointTransaction]] = {
    LedgerKind.COIN: CoinTransaction,
    LedgerKind.POINT: PointTransaction,
}

BALANCE_FIELDS: dict[LedgerKind, str] = {
    LedgerKind.COIN: "coin_balance",
    LedgerKind.POINT: "point_balance",
}


# ---------------------------------------------------------------------------
# DailyClaim — at most one per user per calendar day
# ---------------------------------------------------------------------------
class DailyClaim(Base):
    __tablename__ = "daily_claims"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("reward_profiles.user_id", ondelete="CASCADE"),
        nullable=False,
    )
    claim_date: Mapped[date] = mapped_column(Date, nullable=False)
    claimed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    coins_awarded: Mapped[int] = mapped_column(Integer, nullable=False)
    streak: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __table_args__ = (
        UniqueConstraint("user_id", "claim_date", name="uq_daily_claims_user_date"),
        Index("ix_daily_claims_claimed_at", "claimed_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<DailyClaim user={self.user_id!r} date={self.claim_date} "
            f"coins={self.coins_awarded}>"
        )


# ---------------------------------------------------------------------------
# AdminLog — append-only audit trail
# ---------------------------------------------------------------------------
class AdminLog(Base):
    __tablename__ = "admin_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    actor_id: Mapped[str] = mapped_column(String(64), nullable=False)
    action_type: Mapped[str] = mapped_column(String(50), nullable=False)
    target_table: Mapped[str] = mapped_column(String(50), nullable=False)
    target_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    before_snapshot: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    after_snapshot: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_admin_log_actor_time", "actor_id", "timestamp"),
        Index("ix_admin_log_target", "target_table", "target_id", "timestamp"),
    )

    def __repr__(self) -> str:
        return f"<AdminLog id={self.id} actor={self.actor_id} action={self.action_type}>"


# ---------------------------------------------------------------------------
# Settings — key-value tuning store
# ---------------------------------------------------------------------------
class Setting(Base):
    """Key-value configuration store.

    Every reward tuning knob (claim amount, streak bonus cadence, tier
    thresholds, purchase rates) lives here so admins can adjust values from
    the dashboard without redeploying.  Values are stored as JSON strings;
    typed accessors live in :class:`~stitchcoin.engine.cache.ConfigCache`.
    """
    __tablename__ = "settings"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value_json: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False, default="general")
    description: Mapped[str | None] = mapped_column(Text, default=None)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("ix_settings_category", "category"),
    )

    def __repr__(self) -> str:
        return f"<Setting key={self.key!r} category={self.category!r}>"
