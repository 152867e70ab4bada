"""
stitchcoin.__main__ — Entry point for ``python -m stitchcoin``
==============================================================

Wiring:
1. Load .env (secrets).
2. Load config.yaml (infrastructure settings).
3. Create the SQLAlchemy engine, ensure tables exist, seed settings.
4. Reconcile balances against the ledgers.
5. Serve the FastAPI app with uvicorn (blocking).

Run with::

    python -m stitchcoin
"""

from __future__ import annotations

import logging

import uvicorn
from dotenv import load_dotenv

from stitchcoin.config import load_config
from stitchcoin.database.engine import create_db_engine, init_db

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("stitchcoin")


def main() -> None:
    """Bootstrap and serve the Stitchcoin rewards API."""

    # 1. Environment variables (secrets).
    load_dotenv()

    # 2. Infrastructure configuration.
    cfg = load_config()
    logger.info("Config loaded — Marketplace: %s", cfg.marketplace_name)

    # 3. Database.
    engine = create_db_engine()
    init_db(engine)

    # 4. Catch any drift left behind by manual DB edits.
    from stitchcoin.services.ledger_store import LedgerStore
    from stitchcoin.services.reconciliation_service import reconcile_balances

    reconcile_balances(LedgerStore(engine, lock_timeout=cfg.lock_timeout_seconds))
    engine.dispose()

    # 5. API (blocks until Ctrl+C or SIGTERM).
    uvicorn.run("stitchcoin.api.main:app", host="0.0.0.0", port=cfg.api_port)


if __name__ == "__main__":
    main()
