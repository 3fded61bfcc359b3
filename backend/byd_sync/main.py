"""
ByD Delta Sync - FastAPI application.
API versioning (/api/v1), logging, health check, error handling.
"""

import logging
import os
import sys
from contextlib import asynccontextmanager
from typing import Callable

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request as StarletteRequest

from byd_sync.api.v1.routes import api_router
from byd_sync.core.config import get_settings
from byd_sync.schemas.common import HealthResponse
from byd_sync.services.byd_service import close_byd_service
from byd_sync.services.run_registry import get_run_registry

_settings = get_settings()

# Package-wide logging to stdout so sync runs show up in deploy logs
_log_handler = logging.StreamHandler(sys.stdout)
_log_handler.setFormatter(logging.Formatter("%(levelname)s:     %(message)s"))
_package_logger = logging.getLogger("byd_sync")
_package_logger.setLevel(_settings.LOG_LEVEL.upper())
if not _package_logger.handlers:
    _package_logger.addHandler(_log_handler)
_package_logger.propagate = True

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every request (method + path) so deploy logs show API traffic."""

    async def dispatch(self, request: StarletteRequest, call_next: Callable) -> Response:
        response = await call_next(request)
        logger.info("%s %s -> %s", request.method, request.url.path, response.status_code)
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    logger.info("Starting ByD Delta Sync API (environment=%s)", _settings.ENVIRONMENT)
    if _settings.is_local:
        logger.info("Local environment detected")
    else:
        try:
            _settings.validate_for_production()
        except ValueError as e:
            logger.warning("%s", e)
    logger.info("Configured entities: %s", [e.name for e in _settings.entities()])
    yield
    await get_run_registry().shutdown()
    close_byd_service()
    logger.info("Shutting down")


app = FastAPI(
    title="ByD Delta Sync API",
    version="1.0.0",
    description="Incremental sync of SAP ByD OData entities using a lastRun watermark.",
    lifespan=lifespan,
)

app.add_middleware(RequestLoggingMiddleware)


# Error handling middleware
@app.middleware("http")
async def catch_exceptions(request: Request, call_next):
    try:
        return await call_next(request)
    except Exception as exc:
        logger.exception("Unhandled error: %s", exc)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )


# Root and health (outside versioning)
@app.get("/")
def root():
    return {
        "message": "ByD Delta Sync API",
        "version": "1.0.0",
        "docs": "/docs",
        "endpoints": {
            "sync": "/api/v1/sync",
            "sync_logs": "/api/v1/sync-logs",
        },
    }


@app.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    return HealthResponse(
        status="healthy",
        environment=_settings.ENVIRONMENT,
        entities=[e.name for e in _settings.entities()],
    )


# API v1
app.include_router(api_router, prefix="/api/v1")


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", "8080"))
    uvicorn.run("byd_sync.main:app", host="0.0.0.0", port=port)
