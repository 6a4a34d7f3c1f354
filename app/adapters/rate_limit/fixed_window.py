"""Fixed-window rate limiter backed by a shared counter store.

Each identity tuple owns one counter per window. The first request of a
window creates the counter with count=1 and a TTL equal to the window;
later requests increment it and are denied once the count exceeds the limit.
The store expires the counter, which opens the next window.

Notes:
- Stateless after construction: one instance can serve concurrent callers.
- Fail-closed by default: any store failure denies the request.
- At most two store round trips per check, no retries.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from app.adapters.counter_store.base import AbstractCounterStore
from app.adapters.rate_limit.base import (
    AbstractRateLimiter,
    RateLimiterConfig,
    RateLimitOutcome,
    RateLimitRequest,
    RateLimitResult,
    build_rate_limit_key,
    hash_rate_limit_key,
)
from app.core.errors import CounterStoreError

logger = logging.getLogger(__name__)


class FixedWindowRateLimiter(AbstractRateLimiter):
    """Rate limiter counting requests per key in fixed, store-expired windows.

    By default a window is opened with ``EXISTS`` followed by ``SET``. Two
    concurrent first requests can both see the key missing and both write
    count=1, so the window may admit one extra request. With
    ``atomic_create=True`` the window is opened with a single conditional
    set instead, which closes that gap.
    """

    def __init__(
        self,
        store: AbstractCounterStore,
        window: timedelta,
        limit: int,
        *,
        atomic_create: bool = False,
        fail_open: bool = False,
    ) -> None:
        """Initialize the limiter.

        Limit and window are not validated. A limit below 1 still admits the
        first request of each window.

        Args:
            store: Shared counter store.
            window: Window length, used as the counter TTL.
            limit: Maximum admitted requests per window (inclusive).
            atomic_create: Open windows with ``set_if_absent``.
            fail_open: Admit instead of deny when the store fails.
        """
        self._store = store
        self._config = RateLimiterConfig(window=window, limit=limit)
        self._atomic_create = atomic_create
        self._fail_open = fail_open

    @property
    def config(self) -> RateLimiterConfig:
        return self._config

    @property
    def store(self) -> AbstractCounterStore:
        return self._store

    def _admit(self, key: str, count: int) -> RateLimitResult:
        return RateLimitResult(
            outcome=RateLimitOutcome.ADMIT,
            key=key,
            limit=self._config.limit,
            count=count,
        )

    def _from_count(self, key: str, count: int) -> RateLimitResult:
        if count > self._config.limit:
            return RateLimitResult(
                outcome=RateLimitOutcome.DENY,
                key=key,
                limit=self._config.limit,
                count=count,
            )
        return self._admit(key, count)

    def _from_error(self, key: str, exc: CounterStoreError) -> RateLimitResult:
        logger.warning(
            "rate_limit.store_error",
            extra={
                "key_hash": hash_rate_limit_key(key),
                "error_code": exc.code,
                "error_details": exc.details,
            },
        )
        return RateLimitResult(
            outcome=RateLimitOutcome.ERROR,
            key=key,
            limit=self._config.limit,
            error=exc.message,
        )

    async def _evaluate_check_then_create(self, key: str) -> RateLimitResult:
        if not await self._store.exists(key):
            await self._store.set_with_expiry(key, 1, self._config.window)
            return self._admit(key, 1)
        return self._from_count(key, await self._store.increment(key))

    async def _evaluate_atomic(self, key: str) -> RateLimitResult:
        if await self._store.set_if_absent(key, 1, self._config.window):
            return self._admit(key, 1)
        return self._from_count(key, await self._store.increment(key))

    async def evaluate(self, request: RateLimitRequest) -> RateLimitResult:
        """Count the request and return the tagged outcome.

        Store failures never raise; they produce an ERROR outcome.

        Args:
            request: Identity tuple to count.

        Returns:
            RateLimitResult with outcome ADMIT, DENY or ERROR.
        """
        key = build_rate_limit_key(request)
        try:
            if self._atomic_create:
                result = await self._evaluate_atomic(key)
            else:
                result = await self._evaluate_check_then_create(key)
        except CounterStoreError as exc:
            return self._from_error(key, exc)

        logger.debug(
            "rate_limit.evaluated",
            extra={
                "key_hash": hash_rate_limit_key(key),
                "outcome": result.outcome.value,
                "count": result.count,
                "limit": result.limit,
            },
        )
        return result

    def resolve(self, result: RateLimitResult) -> bool:
        """Fold a tagged result into an admit/deny decision."""
        if result.outcome is RateLimitOutcome.ERROR:
            return self._fail_open
        return result.allowed

    async def check_rate_limit(self, request: RateLimitRequest) -> bool:
        """Count the request and return True if it is admitted.

        Args:
            request: Identity tuple to count.

        Returns:
            True to admit, False to deny (including store failures unless
            the limiter was built with ``fail_open=True``).
        """
        return self.resolve(await self.evaluate(request))
