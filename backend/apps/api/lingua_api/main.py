"""
Lingua API - FastAPI application entry point.

This module initializes the FastAPI application and configures
middleware, routers, and lifecycle events.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from arq import create_pool
from arq.connections import RedisSettings
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from lingua_core import get_logger, init_logging
from lingua_database.session import close_database, init_database

from .config import settings
from .routers import templates, translations

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifecycle manager.

    Initializes logging, the database engine, and the arq pool used to queue
    coordinator and translation jobs.

    Args:
        app: The FastAPI application instance.

    Yields:
        None during application runtime.
    """
    init_logging(settings.log_level, settings.log_format)
    logger.info("Starting Lingua API", extra={"version": settings.version})
    init_database(settings.database_url, pool_pre_ping=True)

    # Redis pool for the task queue
    app.state.redis_pool = await create_pool(RedisSettings.from_dsn(settings.redis_url))
    logger.info("Redis pool initialized")

    yield

    redis_pool = getattr(app.state, "redis_pool", None)
    if redis_pool is not None:
        await redis_pool.close()
        logger.info("Redis pool closed")
    await close_database()
    logger.info("Shutting down Lingua API")


def create_app() -> FastAPI:
    """Build a FastAPI application with routers and middleware."""
    app = FastAPI(
        title="Lingua API",
        description="Lingua - Email template translation orchestration API",
        version=settings.version,
        lifespan=lifespan,
        docs_url="/api/docs" if settings.debug else None,
        redoc_url="/api/redoc" if settings.debug else None,
    )
    app.state.redis_pool = None

    # Configure CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register API routers
    app.include_router(translations.router, prefix="/api/translations", tags=["Translations"])
    app.include_router(templates.router, prefix="/api/templates", tags=["Templates"])

    @app.get("/api/health")
    async def health_check() -> dict[str, str]:
        """
        Health check endpoint.

        Returns:
            Dictionary containing service status and version.
        """
        return {"status": "healthy", "version": settings.version}

    return app


app = create_app()
