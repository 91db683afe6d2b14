from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from taskhub.config.logging import get_logger, setup_logging
from taskhub.config.settings import settings
from taskhub.infra.database import get_database
from taskhub.v1.core.exceptions import (
    RequestContextMiddleware,
    TaskHubException,
    general_exception_handler,
    http_exception_handler,
    taskhub_exception_handler,
)
from taskhub.v1.core.registries import executor_registry
from taskhub.v1.healthz import router as health_router
from taskhub.v1.infra.jobs.registry_init import register_job_executors
from taskhub.v1.infra.jobs.routes import router as jobs_router
from taskhub.v1.infra.jobs.worker import get_scheduler

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start and stop the in-process job scheduler when enabled."""
    scheduler = None
    if settings.job_scheduler_enabled:
        scheduler = get_scheduler(settings, get_database(settings), executor_registry)
        scheduler.start()

    yield

    if scheduler is not None:
        await scheduler.stop()
    await get_database(settings).close()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    # Initialize structured logging
    setup_logging()

    app = FastAPI(
        title=settings.app_name,
        description="Productivity suite backend with background job execution",
        version=settings.version,
        debug=settings.debug,
        lifespan=lifespan,
        # All endpoints are served under the /v1/ prefix
        openapi_url="/v1/openapi.json" if settings.debug else None,
        docs_url="/v1/docs" if settings.debug else None,
        redoc_url="/v1/redoc" if settings.debug else None,
    )

    # Add middleware
    app.add_middleware(RequestContextMiddleware)

    # Add CORS middleware for development
    if settings.debug:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    # Add exception handlers
    app.add_exception_handler(TaskHubException, taskhub_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    # Include routers with /v1 prefix
    app.include_router(health_router, prefix="/v1", tags=["health"])
    app.include_router(jobs_router, prefix="/v1")

    # Executors are registered once per process
    if not executor_registry.list():
        register_job_executors(executor_registry, settings)

    # Freeze registries in non-development environments to prevent runtime modifications
    if settings.environment != "development" and not executor_registry.is_frozen():
        executor_registry.freeze()
        logger.info("Executor registry frozen", executors=executor_registry.list())

    return app


# Create the app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "taskhub.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        workers=1 if settings.debug else settings.workers,
    )
