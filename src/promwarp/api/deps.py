from __future__ import annotations

from datetime import datetime

from fastapi import Depends, Request

from promwarp.config import Settings, get_settings
from promwarp.discovery import DiscoveryConfig, DiscoveryOrchestrator, parse_timestamp
from promwarp.discovery.errors import ValidationError
from promwarp.warp10 import SeriesFinder, Warp10Client


def get_finder(settings: Settings = Depends(get_settings)) -> SeriesFinder:  # noqa: B008
    return Warp10Client(
        settings.warp_endpoint,
        timeout=settings.http_timeout,
        max_retries=settings.http_max_retries,
        backoff_factor=settings.http_retry_backoff_factor,
    )


def get_orchestrator(
    finder: SeriesFinder = Depends(get_finder),  # noqa: B008
    settings: Settings = Depends(get_settings),  # noqa: B008
) -> DiscoveryOrchestrator:
    return DiscoveryOrchestrator(finder, DiscoveryConfig.from_settings(settings))


async def _form_values(request: Request, key: str) -> list[str]:
    if request.method != "POST":
        return []
    form = await request.form()
    return [str(v) for v in form.getlist(key)]


async def match_params(request: Request) -> list[str]:
    """`match[]` values from the query string and url-encoded POST bodies."""
    values = request.query_params.getlist("match[]")
    values.extend(await _form_values(request, "match[]"))
    return values


async def start_param(request: Request) -> datetime | None:
    """Optional `start` parameter as an aware datetime."""
    raw = request.query_params.get("start")
    if raw is None:
        form_values = await _form_values(request, "start")
        raw = form_values[0] if form_values else None
    if raw is None or raw == "":
        return None
    try:
        return parse_timestamp(raw)
    except ValueError as exc:
        raise ValidationError("failed to parse start time") from exc
