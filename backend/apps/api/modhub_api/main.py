"""
ModHub API - FastAPI application entry point.

This module initializes the FastAPI application and configures
middleware, error handlers, routers, and lifecycle events.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from arq import create_pool
from arq.connections import RedisSettings
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from modhub_core import get_logger, init_logging
from modhub_core.config import integration_config

from . import dependencies
from .config import settings
from .errors import http_exception_handler, validation_exception_handler
from .routers import (
    admin,
    api_keys,
    auth,
    catalog,
    github_settings,
    modules,
    ratings,
    search,
    submissions,
    users,
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifecycle manager.

    Handles startup and shutdown events for the application.

    Args:
        app: The FastAPI application instance.

    Yields:
        None during application runtime.
    """
    # Startup: Initialize resources
    from modhub_database.session import close_database, init_database

    init_logging(settings.log_level, settings.log_json)
    logger.info("Starting ModHub API", extra={"version": settings.version})
    init_database(settings.database_url)

    # Initialize Redis pool for task queue
    redis_settings = RedisSettings.from_dsn(settings.redis_url)
    dependencies.redis_pool = await create_pool(redis_settings)
    logger.info("Redis pool initialized")

    yield

    # Shutdown: Cleanup resources
    if dependencies.redis_pool:
        await dependencies.redis_pool.close()
        dependencies.redis_pool = None
        logger.info("Redis pool closed")
    await close_database()
    logger.info("Shutting down ModHub API")


app = FastAPI(
    title="ModHub API",
    description="ModHub - Android root module marketplace API",
    version=settings.version,
    lifespan=lifespan,
    docs_url="/api/docs" if settings.debug else None,
    redoc_url="/api/redoc" if settings.debug else None,
)

# Configure CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)

# Register API routers. Fixed module paths go before /api/modules/{module_id}.
app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(submissions.router, prefix="/api/modules", tags=["Submissions"])
app.include_router(modules.router, prefix="/api/modules", tags=["Modules"])
app.include_router(catalog.router, prefix="/api", tags=["Catalog"])
app.include_router(ratings.router, prefix="/api", tags=["Ratings"])
app.include_router(search.router, prefix="/api/search", tags=["Search"])
app.include_router(api_keys.router, prefix="/api/user/api-keys", tags=["API Keys"])
app.include_router(users.router, prefix="/api", tags=["Users"])
app.include_router(github_settings.router, prefix="/api/settings/github-pat", tags=["Settings"])
app.include_router(admin.router, prefix="/api/admin", tags=["Admin"])


@app.get("/api/health")
async def health_check() -> dict[str, str]:
    """
    Health check endpoint.

    Returns:
        Dictionary containing service status and version.
    """
    return {"status": "healthy", "version": settings.version}


@app.get("/api/config")
async def public_config() -> dict[str, str | bool | None]:
    """
    Public client configuration.

    Returns:
        Turnstile site key and whether captcha is enabled.
    """
    return {
        "turnstile_site_key": integration_config.turnstile_site_key,
        "captcha_enabled": integration_config.captcha_enabled,
    }
