"""
stitchcoin.services.settings_service — Settings CRUD
=====================================================

Typed read/write access to the ``settings`` table.  Every mutation
reloads the :class:`~stitchcoin.engine.cache.ConfigCache` so the next
claim sees the new values.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from stitchcoin.database.engine import get_session
from stitchcoin.database.models import AdminActionType, AdminLog, Setting
from stitchcoin.engine.streaks import resolve_timezone
from stitchcoin.engine.tiers import validate_thresholds
from stitchcoin.errors import InvalidCommandError

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from stitchcoin.engine.cache import ConfigCache

logger = logging.getLogger(__name__)


def _decode(value_json: str) -> Any:
    try:
        return json.loads(value_json)
    except (json.JSONDecodeError, TypeError):
        return value_json


def _validate(key: str, value: Any) -> None:
    """Reject values that would break claims or tiers."""
    if key == "points.tier_thresholds":
        try:
            validate_thresholds(value)
        except ValueError as exc:
            raise InvalidCommandError(f"{key}: {exc}") from None
    elif key == "claims.timezone":
        try:
            resolve_timezone(str(value))
        except (KeyError, ValueError):
            raise InvalidCommandError(f"{key}: unknown timezone {value!r}") from None
    elif key.endswith(("_amount", "_rate", "_threshold", "_days")):
        if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
            raise InvalidCommandError(f"{key}: expected a non-negative number")


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def get_all_settings(engine: Engine) -> list[dict]:
    """Every setting, ordered by category then key, with parsed values."""
    with Session(engine) as session:
        rows = session.scalars(
            select(Setting).order_by(Setting.category, Setting.key)
        ).all()
        return [
            {
                "key": r.key,
                "value": _decode(r.value_json),
                "category": r.category,
                "description": r.description,
            }
            for r in rows
        ]


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

def bulk_upsert(
    engine: Engine,
    cache: ConfigCache,
    settings: list[dict],
    *,
    actor_id: str | None = None,
) -> int:
    """Upsert many settings at once.

    Each dict should have at least ``key`` and ``value``.
    Optional: ``category``, ``description``.

    All values are validated before anything is written.  When *actor_id*
    is provided, each change is recorded in ``admin_log`` with before/after
    snapshots.

    Returns the number of rows touched.
    """
    for item in settings:
        _validate(item["key"], item["value"])

    count = 0
    with get_session(engine) as session:
        for item in settings:
            key = item["key"]
            value_json = json.dumps(item["value"])
            existing = session.get(Setting, key)

            before_snapshot: dict | None = None
            if existing is not None:
                before_snapshot = {
                    "key": existing.key,
                    "value": _decode(existing.value_json),
                    "category": existing.category,
                    "description": existing.description,
                }
                existing.value_json = value_json
                if "category" in item:
                    existing.category = item["category"]
                if "description" in item:
                    existing.description = item["description"]
            else:
                existing = Setting(
                    key=key,
                    value_json=value_json,
                    category=item.get("category", key.split(".", 1)[0]),
                    description=item.get("description"),
                )
                session.add(existing)

            if actor_id is not None:
                after_snapshot = {
                    "key": key,
                    "value": item["value"],
                    "category": existing.category,
                    "description": existing.description,
                }
                if before_snapshot != after_snapshot:
                    session.add(AdminLog(
                        actor_id=actor_id,
                        action_type=AdminActionType.UPDATE_SETTING.value,
                        target_table="settings",
                        target_id=key,
                        before_snapshot=before_snapshot,
                        after_snapshot=after_snapshot,
                    ))
            count += 1

    cache.handle_notify("settings")
    logger.info("Updated %d settings (actor=%s)", count, actor_id)
    return count


def upsert_setting(
    engine: Engine,
    cache: ConfigCache,
    *,
    key: str,
    value: Any,
    category: str | None = None,
    description: str | None = None,
    actor_id: str | None = None,
) -> int:
    """Insert or update a single setting."""
    item: dict[str, Any] = {"key": key, "value": value}
    if category:
        item["category"] = category
    if description is not None:
        item["description"] = description
    return bulk_upsert(engine, cache, [item], actor_id=actor_id)
