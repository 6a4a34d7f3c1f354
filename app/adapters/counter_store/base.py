"""Counter store interface.

The rate limiter depends on this abstraction only. Implementations wrap a
shared key-value service (Redis) or a process-local dict for tests and
single-worker deployments.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import timedelta


class AbstractCounterStore(ABC):
    """Interface for key-value stores holding expiring integer counters.

    Every method raises ``CounterStoreError`` when the store fails or cannot
    be reached. No other exception type may escape an implementation.
    """

    backend_name: str = "abstract"

    @abstractmethod
    async def exists(self, key: str) -> int:
        """Check whether a key is present.

        Args:
            key: Counter key.

        Returns:
            Nonzero if the key exists, 0 otherwise.
        """
        raise NotImplementedError

    @abstractmethod
    async def set_with_expiry(self, key: str, value: int, ttl: timedelta) -> None:
        """Create or overwrite a counter with a time-to-live.

        Args:
            key: Counter key.
            value: Initial integer value.
            ttl: Time after which the store drops the key.
        """
        raise NotImplementedError

    @abstractmethod
    async def increment(self, key: str) -> int:
        """Atomically add 1 to the counter at key.

        Args:
            key: Counter key.

        Returns:
            The value after the increment.
        """
        raise NotImplementedError

    @abstractmethod
    async def set_if_absent(self, key: str, value: int, ttl: timedelta) -> bool:
        """Atomically create a counter only when the key is absent.

        Args:
            key: Counter key.
            value: Initial integer value.
            ttl: Time after which the store drops the key.

        Returns:
            True if this call created the key, False if it already existed.
        """
        raise NotImplementedError

    @abstractmethod
    async def ping(self) -> bool:
        """Return True when the store answers a round trip."""
        raise NotImplementedError

    async def close(self) -> None:
        """Release connections held by the store (no-op by default)."""
        return None
