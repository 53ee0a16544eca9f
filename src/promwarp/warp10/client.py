"""
Warp 10 directory client.

Runs selector lookups against the `/api/v0/find` endpoint and returns the
matching series metadata (class, labels, attributes).
"""

from __future__ import annotations

import json
from typing import Any, Protocol

import httpx
import structlog
from circuitbreaker import CircuitBreakerError

from promwarp import __version__
from promwarp.clients.base import BaseHTTPClient, PermanentHTTPError, RetryableHTTPError
from promwarp.warp10.models import FindParameters, GeoTimeSeries

DEFAULT_USER_AGENT = f"promwarp-warp10/{__version__}"
TOKEN_HEADER = "X-Warp10-Token"

logger = structlog.get_logger()


class Warp10Error(RuntimeError):
    """Raised when a Warp 10 request fails."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SeriesFinder(Protocol):
    """Backend lookup used by the discovery endpoints."""

    async def find(
        self,
        token: str,
        selector: str,
        params: FindParameters | None = None,
    ) -> list[GeoTimeSeries]:
        ...


def parse_find_response(body: str) -> list[GeoTimeSeries]:
    """
    Decode a find response body.

    Warp 10 answers `format=json` with a JSON array; some versions stream
    one JSON object per line instead. Both are accepted.
    """
    body = body.strip()
    if not body:
        return []

    try:
        payload: Any = json.loads(body)
    except json.JSONDecodeError:
        try:
            payload = [json.loads(line) for line in body.splitlines() if line.strip()]
        except json.JSONDecodeError as exc:
            raise Warp10Error(f"Invalid find response: {exc}") from exc

    if isinstance(payload, dict):
        payload = [payload]
    if not isinstance(payload, list):
        raise Warp10Error(f"Unexpected find response type: {type(payload).__name__}")

    return [GeoTimeSeries.from_json(item) for item in payload if isinstance(item, dict)]


class Warp10Client(BaseHTTPClient):
    """Warp 10 API client with retry logic and circuit breaker."""

    def __init__(
        self,
        endpoint: str,
        *,
        timeout: float = 30.0,
        max_retries: int = 3,
        backoff_factor: float = 2.0,
        user_agent: str = DEFAULT_USER_AGENT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(
            endpoint,
            timeout=timeout,
            max_retries=max_retries,
            backoff_factor=backoff_factor,
            transport=transport,
        )
        self._user_agent = user_agent

    def _headers(self) -> dict[str, str]:
        headers = super()._headers()
        headers["User-Agent"] = self._user_agent
        return headers

    async def find(
        self,
        token: str,
        selector: str,
        params: FindParameters | None = None,
    ) -> list[GeoTimeSeries]:
        """
        Find series matching a Warp 10 selector.

        Args:
            token: Warp 10 READ token
            selector: Selector text, e.g. ``~http.*{env=prod}``
            params: Optional activeafter/gcount restrictions

        Returns:
            Matched series metadata

        Raises:
            Warp10Error: If the lookup fails for any reason
        """
        query: dict[str, str] = {"selector": selector, "format": "json"}
        if params is not None:
            query.update(params.to_query_params())

        response = await self._call("GET", "/api/v0/find", params=query, headers={TOKEN_HEADER: token})
        series = parse_find_response(response.text)
        logger.debug("warp10_find", selector=selector, series=len(series))
        return series

    async def health_check(self) -> bool:
        """Return True if Warp 10 answers its check endpoint."""
        try:
            await self._call("GET", "/api/v0/check")
            return True
        except Warp10Error:
            return False

    async def _call(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        try:
            return await self._request(method, path, params=params, headers=headers)
        except PermanentHTTPError as exc:
            raise Warp10Error(f"Warp 10 rejected the request: {exc}", exc.status_code) from exc
        except RetryableHTTPError as exc:
            raise Warp10Error(f"Warp 10 unavailable: {exc}") from exc
        except CircuitBreakerError as exc:
            raise Warp10Error(f"Warp 10 circuit open: {exc}") from exc
        except httpx.HTTPError as exc:
            raise Warp10Error(f"HTTP error from Warp 10: {exc}") from exc
