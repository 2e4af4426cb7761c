"""FastAPI application entry point."""

import sqlite3
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from slowapi.errors import RateLimitExceeded

from src.api.chat import drain_background_suggestions
from src.api.chat import router as chat_router
from src.api.health import router as health_router
from src.api.rate_limit import limiter, rate_limit_exceeded_handler
from src.config import get_settings
from src.infrastructure.cache import CacheError, SQLiteKeyValueStore
from src.infrastructure.database import close_database, init_database
from src.infrastructure.observability import (
    configure_logging,
    init_observability,
    shutdown_observability,
)

logger = structlog.get_logger()
settings = get_settings()


async def _open_cache_database() -> None:
    """Open the SQLite cache, leaving the in-memory store in place on failure."""
    try:
        database = await init_database(settings.database_path)
    except (sqlite3.Error, OSError) as e:
        logger.warning(
            "cache_database_unavailable",
            path=settings.database_path,
            error=str(e),
            error_type=type(e).__name__,
        )
        return

    try:
        purged = await SQLiteKeyValueStore(database).purge_expired()
    except CacheError as e:
        logger.warning("cache_purge_failed", error=str(e))
    else:
        logger.info("cache_purged", removed=purged)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Application lifespan handler for startup/shutdown."""
    configure_logging(settings.log_level, json_logs=settings.log_json)
    init_observability(
        settings.app_name,
        settings.app_version,
        otlp_endpoint=settings.otlp_endpoint,
        console_export=settings.tracing_console_export,
        enabled=settings.tracing_enabled,
        sample_rate=settings.tracing_sample_rate,
        app=app,
    )

    if settings.cache_enabled:
        await _open_cache_database()
    else:
        logger.warning("cache_disabled")

    if settings.openrouter_api_key is None:
        logger.warning("llm_not_configured", reason="OPENROUTER_API_KEY not set")

    logger.info(
        "app_started",
        version=settings.app_version,
        model=settings.llm_model,
        reference_source=settings.reference_source,
    )

    yield

    # Cleanup on shutdown
    await drain_background_suggestions()
    await close_database()
    shutdown_observability()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(
    RateLimitExceeded,
    rate_limit_exceeded_handler,  # type: ignore[arg-type]
)

# Register routers
app.include_router(health_router, prefix="/health", tags=["health"])
app.include_router(chat_router, tags=["chat"])
