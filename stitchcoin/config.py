"""
stitchcoin.config — YAML Configuration Loader
==============================================

Reads ``config.yaml`` for **infrastructure-only** settings (marketplace
identity, API port, ledger lock timeout).  All reward tuning values
(claim amount, streak bonus, tier thresholds, purchase rates) live in the
``settings`` database table, editable from the admin dashboard.

Usage::

    from stitchcoin.config import load_config

    cfg = load_config()             # reads ./config.yaml by default
    print(cfg.marketplace_name)     # "Stitchcoin Dev"
    print(cfg.lock_timeout_seconds) # 5.0
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml


# ---------------------------------------------------------------------------
# Typed settings object — infrastructure/identity only.
# Reward tuning lives in the DB ``settings`` table.
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class StitchcoinConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    marketplace_name: str

    # API
    api_port: int

    # Seconds a request waits for another request on the same user
    lock_timeout_seconds: float = 5.0

    # Optional
    frontend_url: str | None = None


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> StitchcoinConfig:
    """Read *path* and return a :class:`StitchcoinConfig` instance.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    ValueError
        If ``lock_timeout_seconds`` is not positive.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    lock_timeout = float(raw.get("lock_timeout_seconds", 5.0))
    if lock_timeout <= 0:
        raise ValueError("lock_timeout_seconds must be positive")

    return StitchcoinConfig(
        marketplace_name=raw["marketplace_name"],
        api_port=int(raw["api_port"]),
        lock_timeout_seconds=lock_timeout,
        frontend_url=raw.get("frontend_url") or None,
    )
