"""
Storage Lifecycle API - Main Application
FastAPI application exposing erasure, cleanup, analytics, compliance and health.
"""
import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.exceptions import HTTPException as StarletteHTTPException

from storage_lifecycle.api.v1 import api_router
from storage_lifecycle.core.config import get_settings
from storage_lifecycle.core.exceptions import (
    InvalidJobTransitionError,
    LegalHoldError,
    NotFoundError,
    QuotaExceededError,
    StorageEngineError,
    TransientStoreError,
    ValidationError,
)
from storage_lifecycle.core.logging import setup_logging
from storage_lifecycle.db import check_db_connection
from storage_lifecycle.engine import LifecycleEngine, build_engine
from storage_lifecycle.metrics import app_info, app_uptime_seconds
from storage_lifecycle.middleware import MetricsMiddleware

logger = logging.getLogger(__name__)

_app_start_time = time.time()

# Domain error -> HTTP status; most specific classes first
ERROR_STATUS = [
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (QuotaExceededError, status.HTTP_413_REQUEST_ENTITY_TOO_LARGE),
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (InvalidJobTransitionError, status.HTTP_409_CONFLICT),
    (LegalHoldError, status.HTTP_409_CONFLICT),
    (TransientStoreError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def create_app(engine: Optional[LifecycleEngine] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        engine: Prebuilt engine (tests); built from settings at startup when omitted
    """
    settings = engine.settings if engine is not None else get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(settings.LOG_LEVEL, settings.LOG_JSON)

        logger.info(f"Starting {settings.APP_NAME}...")
        logger.info(f"Version: {settings.APP_VERSION}")
        app_info.labels(version=settings.APP_VERSION).set(1)

        app.state.engine = engine or build_engine(settings)
        logger.info("Application startup complete")

        yield

        logger.info(f"Shutting down {settings.APP_NAME}...")
        await app.state.engine.shutdown()

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="File classification, GDPR-style erasure, retention enforcement, "
                    "usage analytics, cost projections, compliance reports and health alerts.",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.add_middleware(MetricsMiddleware)

    @app.exception_handler(StorageEngineError)
    async def storage_engine_exception_handler(request: Request, exc: StorageEngineError):
        """Map domain errors to HTTP status codes."""
        status_code = next(
            (code for error_type, code in ERROR_STATUS if isinstance(exc, error_type)),
            status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
        if status_code >= 500:
            logger.error(f"{type(exc).__name__} on {request.url.path}: {exc}")
        return JSONResponse(
            status_code=status_code,
            content={"error": str(exc), "type": type(exc).__name__, "status_code": status_code},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions."""
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": exc.detail,
                "status_code": exc.status_code,
            },
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle request validation errors."""
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "error": "Validation error",
                "details": jsonable_errors(exc),
            },
        )

    @app.get("/health", tags=["health"])
    async def health_check(request: Request):
        """
        Basic health check endpoint.
        Returns the API status, database connectivity and the storage health summary.
        """
        current: LifecycleEngine = request.app.state.engine
        if current.db_engine is None:
            db_status = "unknown"
        else:
            db_status = "healthy" if check_db_connection(current.db_engine) else "unhealthy"
        storage = await current.health.system_health()

        return {
            "status": "healthy" if db_status != "unhealthy" else "degraded",
            "service": current.settings.APP_NAME,
            "version": current.settings.APP_VERSION,
            "database": db_status,
            "storage": storage,
        }

    app.include_router(api_router, prefix=settings.API_V1_PREFIX)

    @app.get("/metrics", tags=["monitoring"])
    async def metrics():
        """
        Prometheus metrics endpoint.

        Returns metrics in Prometheus text format for scraping.
        This endpoint is excluded from metrics collection to avoid feedback loops.
        """
        app_uptime_seconds.set(time.time() - _app_start_time)
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return app


def jsonable_errors(exc: RequestValidationError) -> list:
    """Validation errors without non-serializable context objects."""
    return [{key: value for key, value in error.items() if key != "ctx"} for error in exc.errors()]


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "storage_lifecycle.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
        log_level=get_settings().LOG_LEVEL.lower(),
    )
