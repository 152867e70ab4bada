"""
stitchcoin.api.main — FastAPI application entry point
======================================================

Run with::

    uvicorn stitchcoin.api.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

from stitchcoin import __version__  # noqa: E402
from stitchcoin.api.deps import get_cache, get_engine  # noqa: E402
from stitchcoin.api.errors import register_exception_handlers  # noqa: E402
from stitchcoin.api.routes.admin import router as admin_router  # noqa: E402
from stitchcoin.api.routes.rewards import router as rewards_router  # noqa: E402
from stitchcoin.database.engine import init_db  # noqa: E402

logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Resolve allowed CORS origins from env with safe defaults.

    Priority:
      1) CORS_ALLOW_ORIGINS (comma-separated)
      2) FRONTEND_URL (single origin)
    """
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if raw:
        return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]

    frontend_url = os.getenv("FRONTEND_URL", "").strip()
    if frontend_url:
        return [frontend_url.rstrip("/")]

    return []


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle — create tables, seed settings, warm the cache."""
    engine = get_engine()
    init_db(engine)
    get_cache()
    logger.info("Stitchcoin API started — engine ready (%s)", engine.url.database)
    yield
    logger.info("Stitchcoin API shutting down")


app = FastAPI(
    title="Stitchcoin Rewards API",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(rewards_router, prefix="/api")
app.include_router(admin_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}
