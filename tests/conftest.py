"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import os

# ---------------------------------------------------------------------------
# Ensure a valid JWT_SECRET is always set for test runs.
# This must happen before any import of stitchcoin.api.deps which validates
# the secret at module-load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)

from datetime import UTC, datetime  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from stitchcoin.database.models import Base  # noqa: E402
from stitchcoin.database.seed import seed_default_settings  # noqa: E402
from stitchcoin.engine.cache import ConfigCache  # noqa: E402
from stitchcoin.services.ledger_store import LedgerStore  # noqa: E402

# Fixed clock for service tests: a Wednesday, mid-month.
NOW = datetime(2026, 3, 11, 15, 0, tzinfo=UTC)


@pytest.fixture
def db_engine() -> Engine:
    """In-memory SQLite engine with all Stitchcoin tables and default settings.

    Uses StaticPool so every session (and the TestClient's worker thread)
    shares the same in-memory database.
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    seed_default_settings(engine)
    return engine


@pytest.fixture
def cache(db_engine: Engine) -> ConfigCache:
    cache = ConfigCache(db_engine)
    cache.load_all()
    return cache


@pytest.fixture
def store(db_engine: Engine) -> LedgerStore:
    return LedgerStore(db_engine, lock_timeout=2.0)


@pytest.fixture
def now() -> datetime:
    return NOW


def make_token(sub: str = "member-1", *, is_admin: bool = False) -> str:
    """Create a bearer JWT.  Usable from fixtures and directly in tests."""
    import jwt

    from stitchcoin.api.deps import JWT_ALGORITHM, JWT_SECRET

    return jwt.encode(
        {"sub": sub, "is_admin": is_admin},
        JWT_SECRET,
        algorithm=JWT_ALGORITHM,
    )


def auth_header(sub: str = "member-1", *, is_admin: bool = False) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(sub, is_admin=is_admin)}"}


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return auth_header("admin-1", is_admin=True)


@pytest.fixture
def member_headers() -> dict[str, str]:
    return auth_header("member-1")


@pytest.fixture
def client(db_engine: Engine, store: LedgerStore, cache: ConfigCache):
    """FastAPI TestClient wired to the in-memory database.

    Created without a ``with`` block so the lifespan (which would connect to
    DATABASE_URL) never runs.
    """
    from fastapi.testclient import TestClient

    from stitchcoin.api import deps
    from stitchcoin.api.main import app

    app.dependency_overrides[deps.get_engine] = lambda: db_engine
    app.dependency_overrides[deps.get_store] = lambda: store
    app.dependency_overrides[deps.get_cache] = lambda: cache
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()


@pytest.fixture
def headers_for():
    """Factory fixture: ``headers_for("alice")`` → bearer headers for alice."""
    return auth_header
