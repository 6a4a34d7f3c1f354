from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from app.adapters.rate_limit.base import hash_rate_limit_key
from app.adapters.rate_limit.fixed_window import FixedWindowRateLimiter
from app.core.rate_limit import enforce_rate_limit, get_rate_limiter
from app.schemas.rate_limit import RateLimitCheckRequest, RateLimitCheckResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Rate Limit"])


@router.post("/rate-limit/check", response_model=RateLimitCheckResponse)
async def check_rate_limit(
    payload: RateLimitCheckRequest,
    limiter: FixedWindowRateLimiter = Depends(get_rate_limiter),
) -> RateLimitCheckResponse:
    """Count one request for the given identity tuple and report the decision.

    The endpoint always answers 200; callers act on ``allowed``. Counter store
    failures are reported with ``outcome="error"``.
    """
    result = await limiter.evaluate(payload.to_domain())
    allowed = limiter.resolve(result)

    logger.info(
        "rate_limit.checked",
        extra={
            "key_hash": hash_rate_limit_key(result.key),
            "outcome": result.outcome.value,
            "allowed": allowed,
        },
    )

    return RateLimitCheckResponse(
        allowed=allowed,
        outcome=result.outcome.value,
        limit=result.limit,
        count=result.count,
        remaining=result.remaining,
        window_seconds=limiter.config.window.total_seconds(),
    )


@router.get("/rate-limit/guarded", dependencies=[Depends(enforce_rate_limit)])
async def guarded_resource() -> dict:
    """Rate-limited no-op endpoint.

    Counts against the (X-Client-ID, X-User-ID, path) window and answers 429
    once it is exhausted. Useful to smoke-test limits through a gateway.
    """
    return {"status": "admitted"}
