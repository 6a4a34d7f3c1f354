"""Rate limiting adapters.

This package holds the fixed-window decision logic. Counters live in a
shared store (see ``app.adapters.counter_store``) so every service instance
sees the same window.
"""

from app.adapters.rate_limit.base import (
    AbstractRateLimiter,
    RateLimiterConfig,
    RateLimitOutcome,
    RateLimitRequest,
    RateLimitResult,
    build_rate_limit_key,
)
from app.adapters.rate_limit.fixed_window import FixedWindowRateLimiter

__all__ = [
    "AbstractRateLimiter",
    "FixedWindowRateLimiter",
    "RateLimitOutcome",
    "RateLimitRequest",
    "RateLimitResult",
    "RateLimiterConfig",
    "build_rate_limit_key",
]
