"""Health check endpoints."""

from typing import Annotated, Literal

import structlog
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from src.config import Settings, get_settings
from src.infrastructure.database import get_database

logger = structlog.get_logger()
router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response schema."""

    status: Literal["healthy", "unhealthy"]
    version: str
    cache_store: Literal["sqlite", "memory", "disabled"]


@router.get("", response_model=HealthResponse)
async def health_check(
    settings: Annotated[Settings, Depends(get_settings)],
) -> HealthResponse:
    """Health check endpoint with cache database verification.

    The cache is an optimisation, so running on the in-memory fallback
    is still healthy; a connected database that stops answering is not.

    Raises:
        HTTPException: 503 if the cache database is connected but unusable.
    """
    if not settings.cache_enabled:
        return HealthResponse(
            status="healthy", version=settings.app_version, cache_store="disabled"
        )

    try:
        db = get_database()
    except RuntimeError:
        return HealthResponse(
            status="healthy", version=settings.app_version, cache_store="memory"
        )

    try:
        await db.execute("SELECT 1")
        return HealthResponse(
            status="healthy", version=settings.app_version, cache_store="sqlite"
        )
    except Exception as e:
        logger.error("health_check_failed", error=str(e), error_type=type(e).__name__)
        raise HTTPException(
            status_code=503,
            detail=f"Service unhealthy: {type(e).__name__}",
        ) from e
