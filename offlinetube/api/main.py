"""
FastAPI application for OfflineTube.
Provides the download executor endpoints, the queue API and its WebSocket feed.
"""

import time
import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from ..config import settings as default_settings
from ..config.logging_config import get_logger, setup_logging
from ..config.settings import Settings
from ..monitoring.metrics import QueueMetrics
from ..services.archive import ArchiveBuilder
from ..services.catalog import YouTubeCatalogClient
from ..services.download_executor import DownloadExecutor
from ..services.executor_client import DownloadExecutorClient
from ..services.queue_service import QueueService
from ..utils.constants import ERROR_CODES
from ..utils.exceptions import OfflineTubeError
from .middleware.logging import LoggingMiddleware
from .routes import (
    catalog_router, downloads_router, health_router, metrics_router, queue_router
)
from .websockets import websocket_router

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting OfflineTube application...")

    try:
        app.state.queue_service.start()
        if app.state.metrics is not None:
            app.state.metrics.bind(app.state.queue_service.store)
        logger.info("OfflineTube application startup completed")

    except Exception as e:
        logger.error(f"Failed to initialize application: {e}", exc_info=True)
        raise

    yield

    logger.info("Shutting down OfflineTube application...")

    try:
        if app.state.metrics is not None:
            app.state.metrics.unbind()
        await app.state.queue_service.stop()
        await app.state.download_executor.shutdown()
        await app.state.catalog_client.close()
        logger.info("OfflineTube application shutdown completed")

    except Exception as e:
        logger.error(f"Error during application shutdown: {e}", exc_info=True)


def create_app(
    app_settings: Optional[Settings] = None,
    executor_client: Optional[DownloadExecutorClient] = None,
    catalog_client: Optional[YouTubeCatalogClient] = None
) -> FastAPI:
    """Create and configure FastAPI application."""
    app_settings = app_settings or default_settings

    app = FastAPI(
        title=app_settings.APP_NAME,
        version=app_settings.APP_VERSION,
        description="Browse a YouTube channel and download videos through a managed queue",
        docs_url=app_settings.API_DOCS_URL if app_settings.DEBUG else None,
        openapi_url="/api/openapi.json" if app_settings.DEBUG else None,
        lifespan=lifespan
    )

    setup_services(app, app_settings, executor_client, catalog_client)
    setup_middleware(app, app_settings)
    setup_routes(app, app_settings)
    setup_exception_handlers(app)

    return app


def setup_services(
    app: FastAPI,
    app_settings: Settings,
    executor_client: Optional[DownloadExecutorClient] = None,
    catalog_client: Optional[YouTubeCatalogClient] = None
):
    """Create the application's services and store them in app state."""
    metrics = QueueMetrics() if app_settings.ENABLE_METRICS else None
    if metrics is not None:
        metrics.set_app_info(app_settings.APP_VERSION, app_settings.ENVIRONMENT.value)

    app.state.settings = app_settings
    app.state.metrics = metrics
    app.state.queue_service = QueueService.from_settings(
        app_settings,
        executor_client=executor_client,
        on_outcome=metrics.record_executor_outcome if metrics is not None else None,
    )
    app.state.download_executor = DownloadExecutor.from_settings(app_settings)
    app.state.archive_builder = ArchiveBuilder.from_settings(app_settings)
    app.state.catalog_client = catalog_client or YouTubeCatalogClient.from_settings(app_settings)


def setup_middleware(app: FastAPI, app_settings: Settings):
    """Setup application middleware."""

    # Trusted host middleware (security)
    if app_settings.ALLOWED_HOSTS and app_settings.ALLOWED_HOSTS != ["*"]:
        app.add_middleware(
            TrustedHostMiddleware,
            allowed_hosts=app_settings.ALLOWED_HOSTS
        )

    app.add_middleware(CORSMiddleware, **app_settings.cors_config)
    app.add_middleware(LoggingMiddleware)

    logger.info("Middleware setup completed")


def setup_routes(app: FastAPI, app_settings: Settings):
    """Setup application routes."""

    app.include_router(
        downloads_router,
        prefix=f"{app_settings.API_PREFIX}/downloads",
        tags=["Download Executor"]
    )

    app.include_router(
        queue_router,
        prefix=f"{app_settings.API_PREFIX}/queue",
        tags=["Download Queue"]
    )

    app.include_router(
        catalog_router,
        prefix=f"{app_settings.API_PREFIX}/catalog",
        tags=["Catalog"]
    )

    app.include_router(
        health_router,
        prefix="/health",
        tags=["Health Check"]
    )

    app.include_router(
        metrics_router,
        prefix="/metrics",
        tags=["Metrics"]
    )

    # WebSocket routes
    app.include_router(
        websocket_router,
        prefix="/ws"
    )

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "name": app_settings.APP_NAME,
            "version": app_settings.APP_VERSION,
            "status": "running",
            "docs_url": app_settings.API_DOCS_URL if app_settings.DEBUG else None,
            "api_prefix": app_settings.API_PREFIX
        }

    @app.get("/ping")
    async def ping():
        """Simple ping endpoint."""
        return {"status": "ok", "timestamp": time.time()}

    # Finished files, served under the download URLs handed out by the executor
    app.mount(
        app_settings.DOWNLOADS_URL_PATH,
        StaticFiles(directory=str(app_settings.DOWNLOADS_DIR)),
        name="downloads"
    )

    logger.info("Routes setup completed")


def setup_exception_handlers(app: FastAPI):
    """Setup global exception handlers."""

    @app.exception_handler(OfflineTubeError)
    async def offlinetube_exception_handler(request: Request, exc: OfflineTubeError):
        """Render application errors as ``{success: false, message, ...}``."""
        if exc.status_code >= 500:
            logger.error(f"{exc.__class__.__name__}: {exc}", extra={"path": str(request.url.path)})
        else:
            logger.warning(f"{exc.__class__.__name__}: {exc.message}", extra={"path": str(request.url.path)})
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle malformed request bodies with the same 400 shape as other input errors."""
        errors = [
            {"field": ".".join(str(part) for part in error.get("loc", ())), "message": error.get("msg")}
            for error in exc.errors()
        ]
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "error": "ValidationError",
                "message": "Invalid request parameters",
                "error_code": ERROR_CODES["VALIDATION_ERROR"],
                "context": {"errors": errors},
            }
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle general exceptions."""
        error_id = str(uuid.uuid4())

        logger.error(
            f"Unhandled exception {error_id}: {exc}",
            exc_info=True,
            extra={
                "error_id": error_id,
                "path": str(request.url.path),
                "method": request.method
            }
        )

        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": "InternalServerError",
                "message": "Internal server error",
                "error_code": ERROR_CODES["INTERNAL_ERROR"],
                "context": {"error_id": error_id},
            }
        )

    logger.info("Exception handlers setup completed")


setup_logging()

# Create the application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "offlinetube.api.main:app",
        host=default_settings.API_HOST,
        port=default_settings.API_PORT,
        reload=default_settings.DEBUG,
        log_level="info"
    )
