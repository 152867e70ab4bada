"""
Stitchcoin — Rewards Ledger & Engagement Engine for a Pattern Marketplace
=========================================================================
Tracks per-member coin and loyalty-point balances, runs the daily-claim
streak, derives loyalty tiers and milestones, and reports engagement
analytics recomputed from an append-only transaction history.

Package layout::

    stitchcoin/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Tier order, tier defaults, ledger labels
    ├── errors.py          # RewardsError hierarchy
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + schema init
    │   ├── models.py      # Profiles, ledgers, claims, settings, admin log
    │   └── seed.py        # Default reward settings
    ├── engine/
    │   ├── cache.py       # In-memory settings cache
    │   ├── rules.py       # Immutable reward rules snapshot
    │   ├── records.py     # Frozen profile / ledger / claim snapshots
    │   ├── streaks.py     # Daily claim state machine
    │   ├── tiers.py       # Loyalty tier evaluation
    │   ├── milestones.py  # Milestone progress
    │   ├── analytics.py   # Engagement analytics
    │   └── commands.py    # Admin adjustment commands
    ├── services/
    │   ├── ledger_store.py          # Locked, atomic units of work
    │   ├── ledger_service.py        # Balance ledger + purchase hooks
    │   ├── claim_service.py         # Daily claim processor
    │   ├── analytics_service.py     # Balance, history, analytics read models
    │   ├── redemption_service.py    # Points reward catalog
    │   ├── admin_service.py         # Audited admin adjustments + overview
    │   ├── reconciliation_service.py # Balance vs. ledger drift repair
    │   └── settings_service.py      # Settings CRUD
    └── api/
        ├── main.py        # FastAPI app
        ├── deps.py        # JWT verification + shared dependencies
        ├── errors.py      # RewardsError → HTTP responses
        └── routes/        # Member + admin REST endpoints
"""

__version__ = "0.1.0"
