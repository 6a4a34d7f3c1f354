"""Rate limiter interfaces.

The API should depend on this abstraction (not the concrete implementation)
so the decision logic stays independent of the HTTP layer and of the counter
store backend.
"""

from __future__ import annotations

import enum
import hashlib
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import timedelta

KEY_PREFIX = "rate_limit"
KEY_DELIMITER = ":"


@dataclass(frozen=True)
class RateLimitRequest:
    """Identity tuple a rate limit decision is made for.

    Attributes:
        resource: Endpoint or URL being accessed.
        client_id: Calling application.
        user_id: End user on whose behalf the client calls.
    """

    resource: str
    client_id: str
    user_id: str


@dataclass(frozen=True)
class RateLimiterConfig:
    """Immutable limiter configuration.

    Attributes:
        window: Fixed window length; also the TTL of each counter.
        limit: Maximum admitted requests per window (inclusive).
    """

    window: timedelta
    limit: int


class RateLimitOutcome(str, enum.Enum):
    """Tagged outcome of a rate limit evaluation."""

    ADMIT = "admit"
    DENY = "deny"
    ERROR = "error"


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a rate limit evaluation.

    Attributes:
        outcome: Admit, deny, or error when the store could not answer.
        key: Counter key the decision was made against.
        limit: Max requests per window.
        count: Counter value after this request (None on error).
        error: Failure description when outcome is ERROR.
    """

    outcome: RateLimitOutcome
    key: str
    limit: int
    count: int | None = None
    error: str | None = None

    @property
    def allowed(self) -> bool:
        return self.outcome is RateLimitOutcome.ADMIT

    @property
    def remaining(self) -> int | None:
        if self.count is None:
            return None
        return max(0, self.limit - self.count)


def build_rate_limit_key(request: RateLimitRequest) -> str:
    """Derive the counter key for an identity tuple.

    Field values are joined verbatim, so a value containing ':' can collide
    with another tuple.

    Examples:
        >>> build_rate_limit_key(RateLimitRequest("https://example.com", "client1", "user1"))
        'rate_limit:client1:user1:https://example.com'
    """
    return KEY_DELIMITER.join(
        (KEY_PREFIX, request.client_id, request.user_id, request.resource)
    )


def hash_rate_limit_key(key: str) -> str:
    """Hash a rate limit key for logging without exposing identities."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    @abstractmethod
    async def evaluate(self, request: RateLimitRequest) -> RateLimitResult:
        """Count the request and return the tagged outcome.

        Args:
            request: Identity tuple to count.

        Returns:
            RateLimitResult describing the decision.
        """
        raise NotImplementedError

    @abstractmethod
    async def check_rate_limit(self, request: RateLimitRequest) -> bool:
        """Count the request and return True if it is admitted."""
        raise NotImplementedError
