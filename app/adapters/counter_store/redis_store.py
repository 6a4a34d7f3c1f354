"""Redis counter store adapter.

Uses ``redis.asyncio`` so each store round trip suspends the calling task
instead of blocking the event loop. Counters are plain Redis strings holding
integers; expiry is delegated to Redis key TTLs.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Awaitable, TypeVar

from redis.asyncio import Redis
from redis.exceptions import RedisError, ResponseError

from app.adapters.counter_store.base import AbstractCounterStore
from app.core.errors import CounterStoreError

logger = logging.getLogger(__name__)

T = TypeVar("T")

COUNTER_MISSING = "counter_missing"

# INCR only when the key exists; plain INCR would recreate an expired counter
# without a TTL.
_INCREMENT_EXISTING = """
if redis.call("EXISTS", KEYS[1]) == 1 then
    return redis.call("INCR", KEYS[1])
end
return redis.error_reply("counter_missing")
"""


def _ttl_milliseconds(ttl: timedelta) -> int:
    """Convert a TTL to whole milliseconds for ``SET ... PX``."""
    return int(ttl / timedelta(milliseconds=1))


class RedisCounterStore(AbstractCounterStore):
    """Counter store backed by a shared Redis instance.

    All client failures (connection refused, timeouts, protocol errors) are
    translated into ``CounterStoreError``.
    """

    backend_name = "redis"

    def __init__(self, client: Redis) -> None:
        """Initialize the adapter around an existing client.

        Args:
            client: ``redis.asyncio.Redis`` instance, ideally created with
                ``decode_responses=True``.
        """
        self._client = client
        self._increment_existing = client.register_script(_INCREMENT_EXISTING)

    @classmethod
    def from_url(
        cls,
        url: str,
        *,
        socket_timeout: float | None = None,
        socket_connect_timeout: float | None = None,
    ) -> "RedisCounterStore":
        """Create a store with its own connection pool.

        Args:
            url: Redis URL (``redis://`` or ``rediss://``).
            socket_timeout: Per-command timeout in seconds.
            socket_connect_timeout: Connection timeout in seconds.

        Returns:
            RedisCounterStore bound to a new client.
        """
        client = Redis.from_url(
            url,
            encoding="utf-8",
            decode_responses=True,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_connect_timeout,
        )
        return cls(client)

    async def _run(self, operation: str, call: Awaitable[T]) -> T:
        try:
            return await call
        except ResponseError as exc:
            if COUNTER_MISSING not in str(exc):
                raise self._unavailable(operation, exc) from exc
            raise CounterStoreError(
                code=COUNTER_MISSING,
                message="Cannot increment a counter that does not exist",
                details={"backend": self.backend_name, "operation": operation},
            ) from exc
        except (RedisError, OSError) as exc:
            raise self._unavailable(operation, exc) from exc

    def _unavailable(self, operation: str, exc: Exception) -> CounterStoreError:
        logger.debug(
            "counter_store.redis_error",
            extra={"operation": operation, "error_type": type(exc).__name__},
        )
        return CounterStoreError(
            code="counter_store_unavailable",
            message=f"Redis {operation} failed",
            details={
                "backend": self.backend_name,
                "operation": operation,
                "error_type": type(exc).__name__,
            },
        )

    async def exists(self, key: str) -> int:
        return int(await self._run("exists", self._client.exists(key)))

    async def set_with_expiry(self, key: str, value: int, ttl: timedelta) -> None:
        await self._run("set", self._client.set(key, value, px=_ttl_milliseconds(ttl)))

    async def increment(self, key: str) -> int:
        return int(await self._run("incr", self._increment_existing(keys=[key])))

    async def set_if_absent(self, key: str, value: int, ttl: timedelta) -> bool:
        created: Any = await self._run(
            "set_nx",
            self._client.set(key, value, px=_ttl_milliseconds(ttl), nx=True),
        )
        return bool(created)

    async def ping(self) -> bool:
        try:
            return bool(await self._run("ping", self._client.ping()))
        except CounterStoreError:
            return False

    async def close(self) -> None:
        await self._client.aclose()
        logger.debug("Redis connection closed")
