"""In-memory counter store.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state.
- Expiry is evaluated lazily against an injectable clock.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable

from app.adapters.counter_store.base import AbstractCounterStore
from app.core.errors import CounterStoreError


@dataclass
class _CounterRecord:
    count: int
    expires_at: float


class InMemoryCounterStore(AbstractCounterStore):
    """Counter store backed by a dict with per-key expiry.

    Mirrors the subset of Redis semantics the rate limiter relies on, except
    that ``increment`` on a missing key is an error instead of creating it.

    Important:
        This store is per-process only. If the API runs with multiple workers
        (e.g., multiple Uvicorn/Gunicorn workers), each worker will enforce its
        own independent limits.
    """

    backend_name = "memory"

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        """Initialize the in-memory store.

        Args:
            clock: Time source returning seconds; only differences are used.
        """
        self._clock = clock
        self._lock = threading.RLock()
        self._records: dict[str, _CounterRecord] = {}

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return f"InMemoryCounterStore(size={len(self._records)})"

    def _live_record(self, key: str) -> _CounterRecord | None:
        """Return the record for key, dropping it if it has expired.

        Must be called with the lock held.
        """
        record = self._records.get(key)
        if record is None:
            return None
        if self._clock() >= record.expires_at:
            del self._records[key]
            return None
        return record

    def _expiry_for(self, ttl: timedelta) -> float:
        return self._clock() + ttl.total_seconds()

    async def exists(self, key: str) -> int:
        with self._lock:
            return 1 if self._live_record(key) is not None else 0

    async def set_with_expiry(self, key: str, value: int, ttl: timedelta) -> None:
        with self._lock:
            self._records[key] = _CounterRecord(count=value, expires_at=self._expiry_for(ttl))

    async def increment(self, key: str) -> int:
        with self._lock:
            record = self._live_record(key)
            if record is None:
                raise CounterStoreError(
                    code="counter_missing",
                    message="Cannot increment a counter that does not exist",
                    details={"backend": self.backend_name, "operation": "increment"},
                )
            record.count += 1
            return record.count

    async def set_if_absent(self, key: str, value: int, ttl: timedelta) -> bool:
        with self._lock:
            if self._live_record(key) is not None:
                return False
            self._records[key] = _CounterRecord(count=value, expires_at=self._expiry_for(ttl))
            return True

    async def ping(self) -> bool:
        return True

    def get_count(self, key: str) -> int | None:
        """Return the live count for key, or None when absent/expired."""
        with self._lock:
            record = self._live_record(key)
            return record.count if record is not None else None

    def get_ttl(self, key: str) -> float | None:
        """Return remaining seconds before key expires, or None when absent."""
        with self._lock:
            record = self._live_record(key)
            if record is None:
                return None
            return record.expires_at - self._clock()

    def clear(self) -> None:
        """Remove all counters."""
        with self._lock:
            self._records.clear()
