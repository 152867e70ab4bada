"""
stitchcoin.database.seed — Default Settings Seeder
===================================================

Baseline reward settings seeded on first startup so claims, purchase
rewards and tiers work before an admin has touched the dashboard.

Idempotent — only inserts keys that don't already exist.  Values edited
later by admins are never overwritten.
"""

from __future__ import annotations

import json
import logging

from sqlalchemy import Engine
from sqlalchemy.orm import Session

from stitchcoin.constants import DEFAULT_TIER_THRESHOLDS
from stitchcoin.database.models import Setting

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Default settings catalogue
# ---------------------------------------------------------------------------
DEFAULT_SETTINGS: dict[str, tuple[object, str, str]] = {
    "coins.daily_claim_amount": (10, "coins", "Coins awarded for each daily claim"),
    "coins.streak_bonus_enabled": (True, "coins", "Award a bonus on streak milestones"),
    "coins.streak_bonus_amount": (5, "coins", "Extra coins on every streak milestone day"),
    "coins.streak_bonus_threshold": (
        7, "coins", "Streak bonus fires on every Nth consecutive claim day",
    ),
    "coins.purchase_bonus_enabled": (True, "coins", "Award bonus coins on purchases"),
    "coins.purchase_bonus_rate": (1, "coins", "Bonus coins per currency unit spent"),
    "points.purchase_points_rate": (10, "points", "Loyalty points per currency unit spent"),
    "points.tier_thresholds": (
        dict(DEFAULT_TIER_THRESHOLDS), "points",
        "Lifetime points needed for each loyalty tier",
    ),
    "claims.timezone": ("UTC", "claims", "IANA timezone that defines a claim day"),
    "analytics.activity_window_days": (
        30, "analytics", "Days covered by the activity chart and recent-activity score",
    ),
}
"""Each entry maps ``key`` → ``(default_value, category, description)``."""


# ---------------------------------------------------------------------------
# Seeder
# ---------------------------------------------------------------------------
def seed_default_settings(engine: Engine) -> None:
    """Insert default settings that don't yet exist.

    Runs on every startup but only writes rows for keys that are missing,
    so it is safe to call repeatedly.
    """
    session = Session(engine)
    inserted = 0
    try:
        for key, (value, category, desc) in DEFAULT_SETTINGS.items():
            existing = session.get(Setting, key)
            if existing is None:
                session.add(Setting(
                    key=key,
                    value_json=json.dumps(value),
                    category=category,
                    description=desc,
                ))
                inserted += 1
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

    if inserted:
        logger.info("Seeded %d default settings.", inserted)
