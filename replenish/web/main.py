"""FastAPI application for the replenishment service."""

from __future__ import annotations

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from replenish import __version__
from replenish.core.config import Settings, get_settings
from replenish.core.errors import ReplenishError
from replenish.core.logging import get_logger, get_request_id, setup_logging
from replenish.core.metrics import app_info, app_uptime_seconds, errors_total
from replenish.web.middleware import PrometheusMiddleware, RequestIdMiddleware
from replenish.web.routers import (
    assistant,
    buffers,
    explain,
    healthcheck,
    ingest,
    kpi,
    recommendations,
    sales,
    warehouses,
)
from replenish.web.schemas import ErrorResponse

log = get_logger("replenish.web")

STARTED_AT = time.time()

API_ROUTERS = (ingest, sales, buffers, recommendations, kpi, explain, warehouses, assistant)


def _error_body(code: str, detail: str) -> dict:
    return ErrorResponse(error=code, detail=detail, request_id=get_request_id() or None).model_dump()


async def handle_domain_error(request: Request, exc: ReplenishError) -> JSONResponse:
    """Domain errors answer with their own status and a stable error code."""
    errors_total.labels(error_type=exc.code, component="web").inc()
    log.warning(
        "request_rejected",
        extra={
            "path": request.url.path,
            "method": request.method,
            "error_type": type(exc).__name__,
            "status": exc.status_code,
            "error": str(exc),
        },
    )
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc.code, str(exc)))


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    """Anything else is a bug: log the traceback, answer an opaque 500."""
    errors_total.labels(error_type=type(exc).__name__, component="web").inc()
    log.error(
        "unhandled_exception",
        extra={"path": request.url.path, "method": request.method},
        exc_info=exc,
    )
    return JSONResponse(
        status_code=500,
        content=_error_body("internal_server_error", "Report this request_id to support"),
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(level=settings.log_level, file_path=settings.log_file_path)
        app_info.labels(version=__version__, environment=settings.app_environment).set(1)
        log.info(
            "app_started",
            extra={"version": __version__, "environment": settings.app_environment},
        )
        yield
        log.info("app_stopped")

    app = FastAPI(
        title="Replenish API",
        version=__version__,
        description="TOC buffers, purchase recommendations and inventory KPIs",
        lifespan=lifespan,
    )

    # Last added runs first: request id must be bound before metrics and CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(PrometheusMiddleware)
    app.add_middleware(RequestIdMiddleware)

    app.add_exception_handler(ReplenishError, handle_domain_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    app.include_router(healthcheck.router, tags=["monitoring"])
    for module in API_ROUTERS:
        app.include_router(module.router)

    @app.get("/health", tags=["monitoring"])
    def health():
        return {"status": "healthy", "version": __version__}

    @app.get("/metrics", tags=["monitoring"])
    def metrics():
        app_uptime_seconds.set(time.time() - STARTED_AT)
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return app


app = create_app()
