"""
Main FastAPI application entry point.

This module sets up the FastAPI app with all middleware, routes, and lifecycle events.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .api import healthz_router, logs_router, metrics_router
from .config import get_settings
from .core.clients import build_buffer
from .core.exceptions import ConfigurationMissingError, LogRelayException
from .core.health import HealthChecker
from .core.metrics import MetricsCollector
from .core.normalizer import Normalizer
from .core.worker_service import WorkerService, build_worker_service
from .logging_setup import configure_logging

GENERIC_SERVER_ERROR = "Internal Server Error"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    FastAPI lifespan context manager.

    Builds the buffer client and normalizer once per process and, when
    enabled, starts the embedded worker loop.
    """
    logger = structlog.get_logger(__name__)
    settings = get_settings()
    logger.info("Starting LogRelay service", version=app.version)

    metrics_collector = MetricsCollector()
    app.state.metrics = metrics_collector

    buffer = build_buffer(settings.buffer)
    app.state.buffer = buffer
    app.state.normalizer = Normalizer(buffer=buffer, metrics=metrics_collector)

    worker_service: Optional[WorkerService] = None
    if settings.worker.embedded and buffer is not None:
        try:
            worker_service = build_worker_service(settings, buffer, metrics=metrics_collector)
        except ConfigurationMissingError as e:
            logger.error("Embedded worker disabled", error=str(e))
        else:
            await worker_service.start()
    app.state.worker_service = worker_service

    app.state.health_checker = HealthChecker(
        buffer=buffer,
        store=worker_service.worker.store if worker_service else None,
        worker_service=worker_service,
    )

    try:
        logger.info(
            "LogRelay service started successfully",
            buffer_backend=buffer.backend if buffer else None,
            embedded_worker=worker_service is not None,
        )
        yield
    finally:
        logger.info("Shutting down LogRelay service")

        if worker_service is not None:
            await worker_service.stop()

        logger.info("LogRelay service shutdown complete")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    This factory function ensures all configuration is applied
    whether running via uvicorn or direct execution.
    """
    settings = get_settings()

    configure_logging(settings.log_level)

    app = FastAPI(
        title="LogRelay",
        description="Buffered log ingestion with asynchronous redaction",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_exception_handler(LogRelayException, logrelay_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    app.include_router(logs_router, prefix="/v1", tags=["logs"])
    app.include_router(metrics_router, tags=["metrics"])
    app.include_router(healthz_router, tags=["health"])

    @app.get("/", include_in_schema=False)
    async def root() -> Dict[str, str]:
        """Root endpoint with service information."""
        return {
            "service": "LogRelay",
            "version": app.version,
            "description": "Buffered log ingestion with asynchronous redaction",
            "docs": "/docs",
        }

    return app


async def logrelay_exception_handler(request: Request, exc: Any) -> JSONResponse:
    """Handle LogRelay exceptions. Server errors never expose internal detail."""
    logger = structlog.get_logger(__name__)

    if exc.is_client_error:
        logger.info(
            "Request rejected",
            error=str(exc),
            status_code=exc.status_code,
            path=request.url.path,
            method=request.method,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": exc.error_code,
                "message": str(exc),
                "details": exc.details,
            },
        )

    logger.error(
        "LogRelay exception occurred",
        error=str(exc),
        error_code=exc.error_code,
        status_code=exc.status_code,
        path=request.url.path,
        method=request.method,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.error_code,
            "message": GENERIC_SERVER_ERROR,
        },
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger = structlog.get_logger(__name__)
    logger.error(
        "Unexpected exception occurred",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
        method=request.method,
        exc_info=True,
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_server_error",
            "message": GENERIC_SERVER_ERROR,
        },
    )


# Create the app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "logrelay.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=settings.debug,
    )
