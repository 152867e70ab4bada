"""
stitchcoin.engine.commands — Admin Adjustment Commands
=======================================================

The admin dashboard sends ``{"action": "...", "amount": ..., "tier": ...}``.
:func:`parse_admin_action` turns that into one of a closed set of command
objects; :mod:`stitchcoin.services.admin_service` dispatches on the type.
"""

from __future__ import annotations

from dataclasses import dataclass

from stitchcoin.constants import TIER_ORDER
from stitchcoin.database.models import AdminActionType, LedgerKind
from stitchcoin.errors import InvalidAmountError, InvalidCommandError


@dataclass(frozen=True, slots=True)
class AddCoins:
    amount: int


@dataclass(frozen=True, slots=True)
class RemoveCoins:
    amount: int


@dataclass(frozen=True, slots=True)
class AddPoints:
    amount: int


@dataclass(frozen=True, slots=True)
class RemovePoints:
    amount: int


@dataclass(frozen=True, slots=True)
class ResetStreak:
    pass


@dataclass(frozen=True, slots=True)
class SetTier:
    """Set the admin tier floor.

    The stored tier becomes the higher of the floor and the tier earned from
    lifetime points, so setting a floor below the earned tier does not demote.
    """

    tier: str


AdminCommand = AddCoins | RemoveCoins | AddPoints | RemovePoints | ResetStreak | SetTier

# Variants that move a balance through the Balance Ledger
BalanceCommand = AddCoins | RemoveCoins | AddPoints | RemovePoints

# command type → (ledger, sign)
BALANCE_COMMANDS: dict[type, tuple[LedgerKind, int]] = {
    AddCoins: (LedgerKind.COIN, 1),
    RemoveCoins: (LedgerKind.COIN, -1),
    AddPoints: (LedgerKind.POINT, 1),
    RemovePoints: (LedgerKind.POINT, -1),
}

ACTION_NAMES: dict[type, AdminActionType] = {
    AddCoins: AdminActionType.ADD_COINS,
    RemoveCoins: AdminActionType.REMOVE_COINS,
    AddPoints: AdminActionType.ADD_POINTS,
    RemovePoints: AdminActionType.REMOVE_POINTS,
    ResetStreak: AdminActionType.RESET_STREAK,
    SetTier: AdminActionType.SET_TIER,
}


def action_name(command: AdminCommand) -> AdminActionType:
    return ACTION_NAMES[type(command)]


def _positive_amount(action: str, amount: object) -> int:
    if amount is None or isinstance(amount, bool):
        raise InvalidAmountError(f"{action} requires a positive amount")
    try:
        value = int(amount)
    except (TypeError, ValueError):
        raise InvalidAmountError(f"{action} requires a positive amount") from None
    if value != amount or value <= 0:
        raise InvalidAmountError(f"{action} requires a positive amount")
    return value


def parse_admin_action(
    action: str, amount: object = None, tier: str | None = None
) -> AdminCommand:
    """Build a command from the wire ``action`` string.

    Raises ``InvalidCommandError`` for unknown actions or tiers and
    ``InvalidAmountError`` for missing/non-positive amounts.
    """
    try:
        kind = AdminActionType(action)
    except ValueError:
        raise InvalidCommandError(f"Unknown action: {action!r}") from None

    if kind == AdminActionType.ADD_COINS:
        return AddCoins(_positive_amount(action, amount))
    if kind == AdminActionType.REMOVE_COINS:
        return RemoveCoins(_positive_amount(action, amount))
    if kind == AdminActionType.ADD_POINTS:
        return AddPoints(_positive_amount(action, amount))
    if kind == AdminActionType.REMOVE_POINTS:
        return RemovePoints(_positive_amount(action, amount))
    if kind == AdminActionType.RESET_STREAK:
        return ResetStreak()
    if kind == AdminActionType.SET_TIER:
        valid = [t.value for t in TIER_ORDER]
        if tier not in valid:
            raise InvalidCommandError(
                f"Invalid tier {tier!r}; expected one of {', '.join(valid)}"
            )
        return SetTier(tier)
    # reconcile / update_setting are audit categories, not dashboard actions
    raise InvalidCommandError(f"Unknown action: {action!r}")
