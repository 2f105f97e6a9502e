import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncGenerator

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from scene_composer.api import compose, storage
from scene_composer.config import Settings, get_settings
from scene_composer.exceptions import ComposerError, ValidationError
from scene_composer.jobs.registry import JobRegistry
from scene_composer.jobs.sweeper import JobSweeper
from scene_composer.render.engine import RenderEngine
from scene_composer.render.media_backend import MediaRenderer, create_media_renderer
from scene_composer.schemas.composition import HealthResponse
from scene_composer.services.asset_fetcher import AssetFetcher
from scene_composer.services.notifier import Notifier
from scene_composer.services.publisher import ArtifactPublisher
from scene_composer.services.storage_service import StorageService, create_storage_service
from scene_composer.tasks.compose_task import ComposeTask, cleanup_stale_scratch
from scene_composer.tasks.worker_pool import WorkerPool

logger = logging.getLogger(__name__)


def _http_error_code(status_code: int) -> str:
    mapping = {
        400: "VALIDATION_ERROR",
        401: "UNAUTHORIZED",
        404: "NOT_FOUND",
        405: "METHOD_NOT_ALLOWED",
    }
    return mapping.get(status_code, "HTTP_ERROR")


def create_app(
    settings: Settings | None = None,
    *,
    renderer: MediaRenderer | None = None,
    storage_service: StorageService | None = None,
    fetcher: AssetFetcher | None = None,
    notifier: Notifier | None = None,
) -> FastAPI:
    """Build the application.

    Collaborators left as None are created from settings at startup; tests
    inject fakes instead.
    """
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        # Startup
        if not settings.api_secret:
            logger.warning("[STARTUP] API_SECRET is not set; every authenticated request will be rejected")
        cleanup_stale_scratch(settings)

        media_renderer = renderer or create_media_renderer(settings)
        store = storage_service or create_storage_service(settings)
        registry = JobRegistry(retention_seconds=settings.job_retention_seconds)
        task = ComposeTask(
            registry=registry,
            fetcher=fetcher or AssetFetcher(settings),
            engine=RenderEngine(media_renderer, settings),
            publisher=ArtifactPublisher(store),
            notifier=notifier or Notifier(settings),
            settings=settings,
        )
        pool = WorkerPool(task, size=settings.worker_pool_size, max_queued=settings.max_queued_jobs)
        sweeper = JobSweeper(registry, interval_seconds=settings.sweep_interval_seconds)

        app.state.storage = store
        app.state.registry = registry
        app.state.worker_pool = pool
        app.state.sweeper = sweeper

        pool.start()
        sweeper.start()
        logger.info(
            f"[STARTUP] {settings.app_name} {settings.app_version} ({settings.git_hash}) "
            f"ready in {settings.environment}"
        )
        yield
        # Shutdown
        await sweeper.stop()
        await pool.stop()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )
    app.state.settings = settings

    @app.exception_handler(ComposerError)
    async def composer_exception_handler(request: Request, exc: ComposerError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"[API] {exc.code}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Report body validation failures as 400 with the first error."""
        errors = exc.errors()
        if errors:
            first_error = errors[0]
            loc = " -> ".join(str(x) for x in first_error.get("loc", []) if x != "body")
            msg = first_error.get("msg", "Validation error")
            message = f"{loc}: {msg}" if loc else msg
        else:
            message = "Request validation failed"
        return JSONResponse(status_code=400, content=ValidationError(message).to_dict())

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": str(exc.detail), "code": _http_error_code(exc.status_code)},
        )

    # Global exception handler to ensure errors return proper JSON
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"Unhandled exception: {exc}")
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "code": "INTERNAL_ERROR"},
        )

    # Routers
    app.include_router(compose.router, tags=["compose"])
    app.include_router(storage.router, tags=["storage"])

    @app.get("/health", response_model=HealthResponse, response_model_exclude_none=True)
    async def health_check() -> HealthResponse:
        return HealthResponse(timestamp=datetime.now(timezone.utc), version=settings.app_version)

    return app


def run() -> None:
    """Entry point for the ``scene-composer`` console script."""
    settings = get_settings()
    uvicorn.run(
        "scene_composer.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
