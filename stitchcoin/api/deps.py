"""
stitchcoin.api.deps — FastAPI dependency injection
===================================================

Identity is issued elsewhere in the storefront; this API only verifies the
bearer JWT (``sub`` = user id, ``is_admin`` flag) with the shared secret.
"""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Annotated

import jwt
from fastapi import Depends, Header, HTTPException, status
from jwt.exceptions import InvalidTokenError
from sqlalchemy import Engine

from stitchcoin.config import StitchcoinConfig, load_config
from stitchcoin.database.engine import create_db_engine
from stitchcoin.engine.cache import ConfigCache
from stitchcoin.services.admin_service import AdminActor
from stitchcoin.services.ledger_store import LedgerStore

_WEAK_SECRETS = frozenset({
    "stitchcoin-dev-secret-change-me",
    "change-me",
    "secret",
    "dev",
    "",
})

_MIN_SECRET_LENGTH = 32

JWT_ALGORITHM = "HS256"


def _load_jwt_secret() -> str:
    """Load and validate JWT_SECRET from the environment.

    Raises RuntimeError at import time if the secret is missing, blank,
    too short (< 32 chars), or a known weak default.
    """
    secret = os.getenv("JWT_SECRET", "")
    if not secret:
        raise RuntimeError(
            "JWT_SECRET environment variable is not set. "
            "Use the same secret as the storefront's auth service."
        )
    if secret in _WEAK_SECRETS:
        raise RuntimeError(
            f"JWT_SECRET is set to a known weak default ('{secret}'). "
            "Please set a strong, unique secret."
        )
    if len(secret) < _MIN_SECRET_LENGTH:
        raise RuntimeError(
            f"JWT_SECRET is too short ({len(secret)} chars). "
            f"Minimum length is {_MIN_SECRET_LENGTH} characters."
        )
    return secret


JWT_SECRET: str = _load_jwt_secret()


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_db_engine()


@lru_cache(maxsize=1)
def get_config() -> StitchcoinConfig:
    return load_config()


@lru_cache(maxsize=1)
def get_store() -> LedgerStore:
    return LedgerStore(get_engine(), lock_timeout=get_config().lock_timeout_seconds)


@lru_cache(maxsize=1)
def get_cache() -> ConfigCache:
    cache = ConfigCache(get_engine())
    cache.load_all()
    return cache


def get_current_user(
    authorization: Annotated[str | None, Header()] = None,
) -> dict:
    """Validate the bearer JWT and return its payload. Raises 401 if invalid."""
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Missing token")
    token = authorization.split(" ", 1)[1]
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except InvalidTokenError:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")
    if not payload.get("sub"):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Token has no subject")
    return payload


def get_actor(payload: Annotated[dict, Depends(get_current_user)]) -> AdminActor:
    """Caller as an :class:`AdminActor`; the admin gateway checks the flag."""
    return AdminActor(user_id=str(payload["sub"]), is_admin=bool(payload.get("is_admin")))


def get_current_admin(payload: Annotated[dict, Depends(get_current_user)]) -> dict:
    """Like :func:`get_current_user` but raises 403 for non-admins."""
    if not payload.get("is_admin"):
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Not admin")
    return payload
