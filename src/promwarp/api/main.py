from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from promwarp import __version__
from promwarp.api.routes import health, prometheus
from promwarp.config import get_settings
from promwarp.discovery import DiscoveryError, StatusCategory
from promwarp.logging import configure_logging

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    configure_logging("DEBUG" if settings.debug else settings.log_level)
    logger.info("api_started", warp_endpoint=settings.warp_endpoint)
    yield


async def discovery_error_handler(request: Request, exc: DiscoveryError) -> JSONResponse:
    """Render discovery failures in the Prometheus error envelope."""
    if exc.category is StatusCategory.INTERNAL:
        logger.error("discovery_failed", path=request.url.path, error=exc.message)
    else:
        logger.info("discovery_rejected", path=request.url.path, error=exc.message)

    headers = {"WWW-Authenticate": "Basic"} if exc.category is StatusCategory.UNAUTHORIZED else None
    return JSONResponse(
        status_code=exc.category.http_status,
        content={
            "status": "error",
            "errorType": exc.category.error_type,
            "error": exc.message,
        },
        headers=headers,
    )


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title="promwarp",
        version=__version__,
        docs_url=f"{settings.api_prefix}/docs",
        openapi_url=f"{settings.api_prefix}/openapi.json",
        lifespan=lifespan,
    )

    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=[str(origin) for origin in settings.cors_origins],
            allow_methods=["*"],
            allow_headers=["*"],
            allow_credentials=True,
        )

    app.add_exception_handler(DiscoveryError, discovery_error_handler)
    app.include_router(prometheus.router, prefix=settings.api_prefix, tags=["prometheus"])
    app.include_router(health.router, tags=["health"])
    return app


app = create_app()
