"""
stitchcoin.errors — Rewards Error Taxonomy
===========================================

Every ledger mutation failure is raised as a :class:`RewardsError`
subclass *before* anything is committed, so callers can rely on
"exception ⇒ state unchanged".

``code`` is a stable machine-readable identifier surfaced in API
responses; ``retryable`` marks contention errors that are safe to retry
with backoff.
"""

from __future__ import annotations


class RewardsError(Exception):
    """Base class for rewards-engine errors."""

    code = "rewards_error"
    retryable = False

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(detail)


class AlreadyClaimedError(RewardsError):
    """The user already claimed for this calendar day."""

    code = "already_claimed"


class InsufficientBalanceError(RewardsError):
    """A debit would drive a balance below zero."""

    code = "insufficient_balance"

    def __init__(self, kind: str, balance: int, requested: int):
        self.kind = kind
        self.balance = balance
        self.requested = requested
        super().__init__(
            f"Insufficient {kind} balance: need {requested}, have {balance}"
        )


class InvalidAmountError(RewardsError):
    """Zero or non-positive amount where a positive one is required."""

    code = "invalid_amount"


class InvalidCommandError(RewardsError):
    """Unknown admin action or malformed command arguments."""

    code = "invalid_command"


class IdempotencyConflictError(RewardsError):
    """An idempotency key was replayed with a different amount or type."""

    code = "idempotency_conflict"


class UnknownRewardError(RewardsError):
    """Redemption requested for a reward id that is not in the catalog."""

    code = "unknown_reward"


class UnauthorizedAdjustmentError(RewardsError):
    """Caller is not an administrator."""

    code = "unauthorized_adjustment"


class ProfileLockTimeoutError(RewardsError):
    """The per-user ledger lock could not be acquired in time."""

    code = "profile_lock_timeout"
    retryable = True


class ConcurrentModificationError(RewardsError):
    """The database rejected the unit because of a concurrent writer."""

    code = "concurrent_modification"
    retryable = True
