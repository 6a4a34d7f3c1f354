"""Rate limiting dependency for FastAPI routes.

This module wires the rate limiting adapter into the HTTP layer.

Design goals:
- Minimal coupling: API routes depend on a dependency function only.
- Swap-friendly: the counter store can be Redis or in-memory behind an
  abstract interface.
- Shared state: with the Redis backend every worker and instance counts
  against the same window.

Rate limiting strategy:
- Fixed-window limit per (client, user, resource) tuple.
- Client and user come from X-Client-ID / X-User-ID headers, falling back to
  "anonymous"; the resource is the request path.
"""

from __future__ import annotations

import logging
import math
from typing import Annotated

from fastapi import Header, HTTPException, Request, status

from app.adapters.counter_store.base import AbstractCounterStore
from app.adapters.counter_store.factory import create_counter_store
from app.adapters.rate_limit.base import (
    RateLimitOutcome,
    RateLimitRequest,
    hash_rate_limit_key,
)
from app.adapters.rate_limit.fixed_window import FixedWindowRateLimiter
from app.core.config import settings

logger = logging.getLogger(__name__)

ANONYMOUS_ID = "anonymous"

_limiter: FixedWindowRateLimiter | None = None
_limiter_config: tuple | None = None


def _current_config() -> tuple:
    return (
        settings.app.rate_limit_backend,
        settings.app.rate_limit_requests,
        settings.app.rate_limit_window_seconds,
        settings.app.rate_limit_atomic_create,
        settings.app.rate_limit_fail_open,
        settings.redis.url,
    )


def get_rate_limiter() -> FixedWindowRateLimiter:
    """Return a process-wide rate limiter instance.

    The instance is cached in-module so the store connection pool is reused
    across requests. If configuration changes (primarily in tests), the
    limiter is rebuilt.

    Returns:
        FixedWindowRateLimiter: Configured limiter instance.
    """

    global _limiter, _limiter_config

    config = _current_config()

    if _limiter is None or _limiter_config != config:
        _limiter = FixedWindowRateLimiter(
            create_counter_store(),
            window=settings.app.rate_limit_window,
            limit=settings.app.rate_limit_requests,
            atomic_create=settings.app.rate_limit_atomic_create,
            fail_open=settings.app.rate_limit_fail_open,
        )
        _limiter_config = config
        logger.info(
            "rate_limit.configured",
            extra={
                "backend": _limiter.store.backend_name,
                "limit": settings.app.rate_limit_requests,
                "window_s": settings.app.rate_limit_window_seconds,
                "atomic_create": settings.app.rate_limit_atomic_create,
                "fail_open": settings.app.rate_limit_fail_open,
            },
        )

    return _limiter


def get_counter_store() -> AbstractCounterStore:
    """Return the counter store used by the process-wide limiter."""

    return get_rate_limiter().store


async def close_rate_limiter() -> None:
    """Close the cached limiter's store connections and drop the cache."""

    global _limiter, _limiter_config

    if _limiter is not None:
        await _limiter.store.close()
    _limiter = None
    _limiter_config = None


def build_rate_limit_request(
    request: Request,
    client_id: str | None,
    user_id: str | None,
) -> RateLimitRequest:
    """Build the identity tuple for the current HTTP request.

    Args:
        request: FastAPI request.
        client_id: Value of the X-Client-ID header.
        user_id: Value of the X-User-ID header.

    Returns:
        RateLimitRequest keyed on the request path.
    """

    return RateLimitRequest(
        resource=request.url.path,
        client_id=client_id or ANONYMOUS_ID,
        user_id=user_id or ANONYMOUS_ID,
    )


async def enforce_rate_limit(
    request: Request,
    x_client_id: Annotated[str | None, Header(alias="X-Client-ID")] = None,
    x_user_id: Annotated[str | None, Header(alias="X-User-ID")] = None,
) -> None:
    """FastAPI dependency enforcing rate limits.

    When enabled, counts the request against its (client, user, path) window.
    If the window is exhausted, or the counter store fails while the limiter
    is fail-closed, raises HTTP 429.

    Args:
        request: FastAPI request.
        x_client_id: Client identifier from X-Client-ID header.
        x_user_id: User identifier from X-User-ID header.

    Raises:
        HTTPException: 429 Too Many Requests when the request is denied.
    """

    if not settings.app.rate_limit_enabled:
        return

    limiter = get_rate_limiter()
    rate_request = build_rate_limit_request(request, x_client_id, x_user_id)
    result = await limiter.evaluate(rate_request)
    key_hash = hash_rate_limit_key(result.key)

    if limiter.resolve(result):
        logger.info(
            "rate_limit.admitted",
            extra={
                "key_hash": key_hash,
                "outcome": result.outcome.value,
                "limit": result.limit,
                "remaining": result.remaining,
                "window_s": settings.app.rate_limit_window_seconds,
            },
        )
        return

    retry_after = math.ceil(settings.app.rate_limit_window_seconds)
    logger.warning(
        "rate_limit.denied",
        extra={
            "key_hash": key_hash,
            "outcome": result.outcome.value,
            "limit": result.limit,
            "count": result.count,
            "window_s": settings.app.rate_limit_window_seconds,
            "retry_after_s": retry_after,
        },
    )

    headers: dict[str, str] = {}
    if settings.app.rate_limit_include_headers:
        headers["Retry-After"] = str(retry_after)
        headers["X-RateLimit-Limit"] = str(result.limit)
        if result.remaining is not None:
            headers["X-RateLimit-Remaining"] = str(result.remaining)

    detail = "Rate limit exceeded. Try again later."
    if result.outcome is RateLimitOutcome.ERROR:
        detail = "Rate limit could not be verified. Try again later."

    raise HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail=detail,
        headers=headers or None,
    )
