"""
stitchcoin.services.ledger_store — Ledger Store
================================================

The only code that writes ``reward_profiles``, the two transaction
ledgers and ``daily_claims``.

Every mutation runs inside a :meth:`LedgerStore.unit`:

  1. Acquire the in-process lock for the user (timeout → ProfileLockTimeoutError)
  2. Open one SQLAlchemy transaction
  3. ``SELECT … FOR UPDATE`` the profile row (created zeroed on first use)
  4. Caller reads → validates → appends → updates through the unit
  5. Commit; any exception rolls the whole unit back

The commit is the only durability point, so a failure anywhere leaves the
user's state exactly as it was.  Read-side helpers take no locks.
"""

from __future__ import annotations

import logging
import threading
import weakref
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from stitchcoin.database.models import (
    BALANCE_FIELDS,
    LEDGER_MODELS,
    AdminLog,
    CoinTransaction,
    DailyClaim,
    LedgerKind,
    PointTransaction,
    RewardProfile,
)
from stitchcoin.engine.records import ClaimRecord, LedgerEntry, ProfileSnapshot
from stitchcoin.errors import (
    AlreadyClaimedError,
    ConcurrentModificationError,
    ProfileLockTimeoutError,
)

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

# Profile columns a unit may change; balances go through the Balance Ledger.
MUTABLE_PROFILE_FIELDS = frozenset({
    "coin_balance",
    "point_balance",
    "login_streak",
    "last_claim_date",
    "loyalty_tier",
    "tier_floor",
})


# ---------------------------------------------------------------------------
# Per-user locks
# ---------------------------------------------------------------------------
class _KeyLock:
    __slots__ = ("lock", "__weakref__")

    def __init__(self) -> None:
        self.lock = threading.Lock()


class KeyedLocks:
    """One mutex per key, created on demand and dropped when unused.

    Thread-safe.  Distinct keys never contend with each other.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: weakref.WeakValueDictionary[str, _KeyLock] = (
            weakref.WeakValueDictionary()
        )

    def _entry(self, key: str) -> _KeyLock:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = _KeyLock()
                self._locks[key] = entry
            return entry

    @contextmanager
    def hold(self, key: str, timeout: float) -> Iterator[None]:
        entry = self._entry(key)  # strong ref keeps the entry alive while held
        if not entry.lock.acquire(timeout=timeout):
            logger.warning("Ledger lock timeout for user %s after %.1fs", key, timeout)
            raise ProfileLockTimeoutError(
                f"Another operation is in progress for user {key}; retry shortly"
            )
        try:
            yield
        finally:
            entry.lock.release()


# ---------------------------------------------------------------------------
# Unit of work
# ---------------------------------------------------------------------------
class LedgerUnit:
    """Atomic read-modify-write scope for a single user.

    Obtained from :meth:`LedgerStore.unit`; never constructed directly.
    """

    def __init__(self, session: Session, user_id: str) -> None:
        self.session = session
        self.user_id = user_id
        self._profile: RewardProfile | None = None

    @property
    def profile(self) -> RewardProfile:
        """The locked profile row, created zeroed if it doesn't exist yet."""
        if self._profile is None:
            profile = self.session.scalar(
                select(RewardProfile)
                .where(RewardProfile.user_id == self.user_id)
                .with_for_update()
            )
            if profile is None:
                profile = RewardProfile(
                    user_id=self.user_id,
                    coin_balance=0,
                    point_balance=0,
                    login_streak=0,
                    loyalty_tier="bronze",
                )
                self.session.add(profile)
                self.session.flush()
                logger.debug("Created reward profile for %s", self.user_id)
            self._profile = profile
        return self._profile

    def snapshot(self) -> ProfileSnapshot:
        return ProfileSnapshot.from_row(self.profile)

    # -- claims ---------------------------------------------------------
    def get_daily_claim(self, claim_date: date) -> DailyClaim | None:
        return self.session.scalar(
            select(DailyClaim).where(
                DailyClaim.user_id == self.user_id,
                DailyClaim.claim_date == claim_date,
            )
        )

    def add_daily_claim(
        self,
        *,
        claim_date: date,
        claimed_at: datetime,
        coins_awarded: int,
        streak: int,
    ) -> DailyClaim:
        """Insert the claim record; the unique (user, date) key rejects a second one."""
        claim = DailyClaim(
            user_id=self.user_id,
            claim_date=claim_date,
            claimed_at=claimed_at,
            coins_awarded=coins_awarded,
            streak=streak,
        )
        self.session.add(claim)
        try:
            self.session.flush()
        except IntegrityError as exc:
            raise AlreadyClaimedError(
                f"Daily reward already claimed for {claim_date.isoformat()}"
            ) from exc
        return claim

    # -- ledgers --------------------------------------------------------
    def append_transaction(
        self,
        kind: LedgerKind,
        *,
        tx_type: str,
        amount: int,
        description: str,
        created_at: datetime,
        reference: str | None = None,
        idempotency_key: str | None = None,
    ) -> CoinTransaction | PointTransaction:
        model = LEDGER_MODELS[kind]
        row = model(
            user_id=self.user_id,
            type=str(tx_type),
            amount=amount,
            description=description,
            reference=reference,
            idempotency_key=idempotency_key,
            created_at=created_at,
        )
        self.session.add(row)
        self.session.flush()
        return row

    def find_by_idempotency_key(
        self, kind: LedgerKind, key: str
    ) -> CoinTransaction | PointTransaction | None:
        """This user's committed entry for *key*; keys never match across users."""
        model = LEDGER_MODELS[kind]
        return self.session.scalar(
            select(model).where(
                model.user_id == self.user_id,
                model.idempotency_key == key,
            )
        )

    def ledger_sum(self, kind: LedgerKind) -> int:
        model = LEDGER_MODELS[kind]
        return self.session.scalar(
            select(func.coalesce(func.sum(model.amount), 0)).where(
                model.user_id == self.user_id
            )
        ) or 0

    def lifetime_earned(self, kind: LedgerKind) -> int:
        """Sum of positive entries: what the user has ever been credited."""
        model = LEDGER_MODELS[kind]
        return self.session.scalar(
            select(func.coalesce(func.sum(model.amount), 0)).where(
                model.user_id == self.user_id, model.amount > 0
            )
        ) or 0

    # -- profile --------------------------------------------------------
    def update_profile(self, **changes: Any) -> None:
        unknown = set(changes) - MUTABLE_PROFILE_FIELDS
        if unknown:
            raise AttributeError(f"Cannot update profile fields: {sorted(unknown)}")
        profile = self.profile
        for field_name, value in changes.items():
            setattr(profile, field_name, value)

    def record_admin_action(
        self,
        *,
        actor_id: str,
        action_type: str,
        before: dict | None,
        after: dict | None,
        reason: str | None = None,
    ) -> None:
        """Insert an admin_log row within this unit."""
        self.session.add(AdminLog(
            actor_id=actor_id,
            action_type=str(action_type),
            target_table=RewardProfile.__tablename__,
            target_id=self.user_id,
            before_snapshot=before,
            after_snapshot=after,
            reason=reason,
        ))

    def flush(self) -> None:
        self.session.flush()


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------
class LedgerStore:
    """SQLAlchemy-backed record store for profiles, ledgers and claims.

    Usage:
        store = LedgerStore(engine, lock_timeout=5.0)
        with store.unit("user-1") as unit:
            unit.update_profile(login_streak=0)
    """

    def __init__(self, engine: Engine, lock_timeout: float = 5.0) -> None:
        self.engine = engine
        self.lock_timeout = lock_timeout
        self._locks = KeyedLocks()

    @contextmanager
    def unit(self, user_id: str) -> Iterator[LedgerUnit]:
        """Serialized, all-or-nothing unit of work for *user_id*."""
        with self._locks.hold(user_id, self.lock_timeout):
            session = Session(self.engine, expire_on_commit=False)
            try:
                yield LedgerUnit(session, user_id)
                session.commit()
            except (IntegrityError, OperationalError) as exc:
                session.rollback()
                logger.warning("Ledger unit for %s rolled back: %s", user_id, exc)
                raise ConcurrentModificationError(
                    f"Concurrent update for user {user_id}; retry shortly"
                ) from exc
            except Exception:
                session.rollback()
                raise
            finally:
                session.close()

    # -------------------------------------------------------------------
    # Read side (no locks)
    # -------------------------------------------------------------------
    def get_profile(self, user_id: str) -> ProfileSnapshot:
        """Return the profile, creating a zeroed one on first access."""
        existing = self.peek_profile(user_id)
        if existing is not None:
            return existing
        with self.unit(user_id) as unit:
            return unit.snapshot()

    def peek_profile(self, user_id: str) -> ProfileSnapshot | None:
        """Return the profile if it exists, without creating it."""
        with Session(self.engine) as session:
            row = session.get(RewardProfile, user_id)
            return ProfileSnapshot.from_row(row) if row is not None else None

    def get_daily_claim(self, user_id: str, claim_date: date) -> ClaimRecord | None:
        with Session(self.engine) as session:
            row = session.scalar(
                select(DailyClaim).where(
                    DailyClaim.user_id == user_id,
                    DailyClaim.claim_date == claim_date,
                )
            )
            return ClaimRecord.from_row(row) if row is not None else None

    def list_transactions(
        self,
        user_id: str,
        kind: LedgerKind,
        since: datetime | None = None,
    ) -> list[LedgerEntry]:
        """All entries of *kind* for *user_id*, oldest first."""
        model = LEDGER_MODELS[kind]
        query = select(model).where(model.user_id == user_id)
        if since is not None:
            query = query.where(model.created_at >= since)
        with Session(self.engine) as session:
            rows = session.scalars(query.order_by(model.id)).all()
            return [LedgerEntry.from_row(row, kind) for row in rows]

    def list_daily_claims(self, user_id: str) -> list[ClaimRecord]:
        """All claim records for *user_id*, oldest first."""
        with Session(self.engine) as session:
            rows = session.scalars(
                select(DailyClaim)
                .where(DailyClaim.user_id == user_id)
                .order_by(DailyClaim.claim_date)
            ).all()
            return [ClaimRecord.from_row(row) for row in rows]

    def list_user_ids(self) -> list[str]:
        with Session(self.engine) as session:
            return list(session.scalars(
                select(RewardProfile.user_id).order_by(RewardProfile.user_id)
            ).all())

    def balance_drift(self) -> list[tuple[str, LedgerKind, int, int]]:
        """``(user_id, kind, stored, ledger_sum)`` for every mismatched balance."""
        drift: list[tuple[str, LedgerKind, int, int]] = []
        with Session(self.engine) as session:
            for kind, model in LEDGER_MODELS.items():
                sums = dict(session.execute(
                    select(model.user_id, func.sum(model.amount)).group_by(model.user_id)
                ).all())
                balance_col = getattr(RewardProfile, BALANCE_FIELDS[kind])
                for user_id, stored in session.execute(
                    select(RewardProfile.user_id, balance_col)
                ).all():
                    actual = int(sums.get(user_id) or 0)
                    if stored != actual:
                        drift.append((user_id, kind, stored, actual))
        return drift
