"""Pydantic schemas for the rate limit check endpoint."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from app.adapters.rate_limit.base import RateLimitRequest


class RateLimitCheckRequest(BaseModel):
    """Identity tuple submitted for a rate limit decision."""

    resource: str = Field(
        ..., description="Endpoint or URL being accessed (e.g., https://example.com/orders)."
    )
    client_id: str = Field(..., description="Identifier of the calling client application.")
    user_id: str = Field(..., description="Identifier of the end user.")

    def to_domain(self) -> RateLimitRequest:
        return RateLimitRequest(
            resource=self.resource,
            client_id=self.client_id,
            user_id=self.user_id,
        )


class RateLimitCheckResponse(BaseModel):
    """Decision returned for a rate limit check."""

    allowed: bool = Field(..., description="True when the request is admitted.")
    outcome: Literal["admit", "deny", "error"] = Field(
        ...,
        description=(
            "Underlying outcome. 'error' means the counter store failed; "
            "'allowed' then reflects the configured failure policy."
        ),
    )
    limit: int = Field(..., description="Maximum requests admitted per window.")
    count: int | None = Field(
        default=None, description="Counter value after this request (null on error)."
    )
    remaining: int | None = Field(
        default=None, description="Requests left in the current window (null on error)."
    )
    window_seconds: float = Field(..., description="Fixed window length in seconds.")
