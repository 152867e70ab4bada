"""
stitchcoin.api.errors — RewardsError → HTTP mapping
====================================================

Each rewards error surfaces as ``{"detail": ..., "error": <code>}`` so the
storefront can tell "already done" (409) from "not allowed" (400/403/404)
from "transient, retry" (503 + ``Retry-After``).
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from stitchcoin.errors import (
    AlreadyClaimedError,
    ConcurrentModificationError,
    IdempotencyConflictError,
    InsufficientBalanceError,
    InvalidAmountError,
    InvalidCommandError,
    ProfileLockTimeoutError,
    RewardsError,
    UnauthorizedAdjustmentError,
    UnknownRewardError,
)

logger = logging.getLogger(__name__)

STATUS_BY_ERROR: dict[type[RewardsError], int] = {
    AlreadyClaimedError: 409,
    IdempotencyConflictError: 409,
    InsufficientBalanceError: 400,
    InvalidAmountError: 422,
    InvalidCommandError: 400,
    UnknownRewardError: 404,
    UnauthorizedAdjustmentError: 403,
    ProfileLockTimeoutError: 503,
    ConcurrentModificationError: 503,
}


def status_for(exc: RewardsError) -> int:
    for klass in type(exc).__mro__:
        if klass in STATUS_BY_ERROR:
            return STATUS_BY_ERROR[klass]
    return 400


async def rewards_error_handler(request: Request, exc: RewardsError) -> JSONResponse:
    code = status_for(exc)
    headers = {"Retry-After": "1"} if exc.retryable else None
    if exc.retryable:
        logger.warning("%s %s → %s: %s", request.method, request.url.path, code, exc.detail)
    return JSONResponse(
        status_code=code,
        content={"detail": exc.detail, "error": exc.code},
        headers=headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RewardsError, rewards_error_handler)
