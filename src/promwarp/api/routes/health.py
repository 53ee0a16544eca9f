from __future__ import annotations

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from promwarp import __version__
from promwarp.api.deps import get_finder
from promwarp.warp10 import SeriesFinder

router = APIRouter()


class HealthResponse(BaseModel):
    status: str
    version: str = __version__


class ReadinessResponse(BaseModel):
    status: str
    warp10: str


@router.get("/health", response_model=HealthResponse, status_code=status.HTTP_200_OK)
async def health_check() -> HealthResponse:
    """Basic health check endpoint."""
    return HealthResponse(status="healthy")


@router.get("/ready", response_model=ReadinessResponse, status_code=status.HTTP_200_OK)
async def readiness_check(
    finder: SeriesFinder = Depends(get_finder),  # noqa: B008
) -> ReadinessResponse:
    """Readiness check with Warp 10 connectivity."""
    check = getattr(finder, "health_check", None)
    if check is None:
        warp10_status = "unknown"
    else:
        warp10_status = "connected" if await check() else "disconnected"

    return ReadinessResponse(
        status="ready" if warp10_status != "disconnected" else "not_ready",
        warp10=warp10_status,
    )
