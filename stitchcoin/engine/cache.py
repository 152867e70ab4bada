"""
stitchcoin.engine.cache — In-Memory Settings Cache
===================================================

Reward tuning values (claim amount, streak bonus cadence, tier thresholds,
purchase rates) live in the ``settings`` table.  Reading them on every
claim would add a query per request, so they are cached in memory and
reloaded whenever an admin edits them through
:mod:`stitchcoin.services.settings_service`.
"""

from __future__ import annotations

import json
import logging
import threading
from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from stitchcoin.database.models import Setting

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


class ConfigCache:
    """Thread-safe in-memory cache of parsed ``settings`` rows.

    Usage:
        cache = ConfigCache(engine)
        cache.load_all()

        amount = cache.get_int("coins.daily_claim_amount", default=10)
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._lock = threading.Lock()
        # key → parsed JSON value
        self._settings: dict[str, Any] = {}

    # -------------------------------------------------------------------
    # Cache loading
    # -------------------------------------------------------------------
    def load_all(self) -> None:
        """Load every setting from the DB. Call on startup and after edits."""
        self._load_settings()
        logger.info("ConfigCache loaded: %d settings", len(self._settings))

    def _load_settings(self) -> None:
        with Session(self._engine) as session:
            rows = session.scalars(select(Setting)).all()
            parsed: dict[str, Any] = {}
            for row in rows:
                try:
                    parsed[row.key] = json.loads(row.value_json)
                except (json.JSONDecodeError, TypeError):
                    parsed[row.key] = row.value_json

        with self._lock:
            self._settings = parsed

    def handle_notify(self, table_name: str) -> None:
        """Reload the part of the cache backed by *table_name*."""
        if table_name == "settings":
            self._load_settings()
            logger.debug("ConfigCache reloaded settings")
        else:
            logger.warning("ConfigCache: ignoring change notice for %r", table_name)

    # -------------------------------------------------------------------
    # Typed setting accessors (thread-safe)
    # -------------------------------------------------------------------
    def get_setting(self, key: str, default: Any = None) -> Any:
        """Return the parsed JSON value for *key*, or *default*."""
        with self._lock:
            return self._settings.get(key, default)

    def get_int(self, key: str, default: int = 0) -> int:
        val = self.get_setting(key)
        if val is None:
            return default
        try:
            return int(val)
        except (TypeError, ValueError):
            return default

    def get_float(self, key: str, default: float = 0.0) -> float:
        val = self.get_setting(key)
        if val is None:
            return default
        try:
            return float(val)
        except (TypeError, ValueError):
            return default

    def get_bool(self, key: str, default: bool = False) -> bool:
        val = self.get_setting(key)
        if val is None:
            return default
        if isinstance(val, str):
            return val.strip().lower() in ("1", "true", "yes", "on")
        return bool(val)

    def get_str(self, key: str, default: str = "") -> str:
        val = self.get_setting(key)
        if val is None:
            return default
        return str(val)
