"""
Prometheus HTTP API discovery routes.

    GET  /series                  -> find_series
    POST /series                  -> search_series (metric name policy, honours start)
    GET  /labels, POST /labels    -> find_label_names
    GET  /label/__name__/values   -> find_metric_names
    GET  /label/{name}/values     -> find_label_values
"""

from __future__ import annotations

from datetime import datetime

import structlog
from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel

from promwarp.api.auth import require_token
from promwarp.api.deps import get_orchestrator, match_params, start_param
from promwarp.discovery import DiscoveryOrchestrator
from promwarp.logging import bind_request_context
from promwarp.matchers import METRIC_NAME_LABEL

router = APIRouter()
logger = structlog.get_logger()


class SeriesResponse(BaseModel):
    status: str = "success"
    data: list[dict[str, str]]


class LabelsResponse(BaseModel):
    status: str = "success"
    data: list[str]


@router.get("/series", response_model=SeriesResponse, status_code=status.HTTP_200_OK)
async def find_series(
    token: str = Depends(require_token),  # noqa: B008
    matches: list[str] = Depends(match_params),  # noqa: B008
    orchestrator: DiscoveryOrchestrator = Depends(get_orchestrator),  # noqa: B008
) -> SeriesResponse:
    bind_request_context(endpoint="series", matches=len(matches))
    return SeriesResponse(data=await orchestrator.find_series(token, matches))


@router.post("/series", response_model=SeriesResponse, status_code=status.HTTP_200_OK)
async def search_series(
    token: str = Depends(require_token),  # noqa: B008
    matches: list[str] = Depends(match_params),  # noqa: B008
    start: datetime | None = Depends(start_param),  # noqa: B008
    orchestrator: DiscoveryOrchestrator = Depends(get_orchestrator),  # noqa: B008
) -> SeriesResponse:
    bind_request_context(endpoint="series_search", matches=len(matches))
    series = await orchestrator.search_series(token, matches, start=start)
    logger.debug("series_search_done", series=len(series))
    return SeriesResponse(data=series)


@router.api_route(
    "/labels",
    methods=["GET", "POST"],
    response_model=LabelsResponse,
    status_code=status.HTTP_200_OK,
)
async def find_label_names(
    token: str = Depends(require_token),  # noqa: B008
    matches: list[str] = Depends(match_params),  # noqa: B008
    orchestrator: DiscoveryOrchestrator = Depends(get_orchestrator),  # noqa: B008
) -> LabelsResponse:
    bind_request_context(endpoint="labels", matches=len(matches))
    return LabelsResponse(data=await orchestrator.find_label_names(token, matches))


@router.get("/label/{label}/values", response_model=LabelsResponse, status_code=status.HTTP_200_OK)
async def find_label_values(
    label: str,
    request: Request,
    token: str = Depends(require_token),  # noqa: B008
    matches: list[str] = Depends(match_params),  # noqa: B008
    orchestrator: DiscoveryOrchestrator = Depends(get_orchestrator),  # noqa: B008
) -> LabelsResponse:
    bind_request_context(endpoint="label_values", label=label, matches=len(matches))

    # Grafana's metric browser lists __name__ values; that goes through the
    # metric name search with its defaults and minimum search length.
    if label == METRIC_NAME_LABEL:
        start = await start_param(request)
        names = await orchestrator.find_metric_names(token, matches, start=start, label=label)
        return LabelsResponse(data=names)

    return LabelsResponse(data=await orchestrator.find_label_values(token, label, matches))
