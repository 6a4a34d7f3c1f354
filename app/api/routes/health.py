from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.adapters.counter_store.base import AbstractCounterStore
from app.core.rate_limit import get_counter_store

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Liveness check.

    Returns:
        dict: A dictionary with a single "status" key set to "ok".
    """

    return {"status": "ok"}


@router.get("/health/ready")
async def readiness_check(
    store: AbstractCounterStore = Depends(get_counter_store),
) -> JSONResponse:
    """Readiness check: the counter store must answer a ping.

    Returns:
        JSONResponse: 200 ``{"status": "ready"}`` or 503 ``{"status": "unavailable"}``.
    """

    if await store.ping():
        return JSONResponse(status_code=200, content={"status": "ready", "backend": store.backend_name})
    return JSONResponse(
        status_code=503,
        content={"status": "unavailable", "backend": store.backend_name},
    )
