"""Health check endpoints.

Provides endpoints for monitoring service health and readiness.
"""

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from storefront.infrastructure.config import settings
from storefront.infrastructure.database import ping_database

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response schema."""

    status: str
    service: str
    version: str


class ReadinessResponse(BaseModel):
    """Readiness check response schema."""

    status: str
    database: str


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Check service health.

    Returns:
        Health status with service name and version.
    """
    return HealthResponse(
        status="healthy",
        service="storefront-api",
        version=settings.api_version,
    )


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    responses={503: {"model": ReadinessResponse}},
)
async def readiness_check():
    """Check if service is ready to accept requests.

    The database is only probed when ``database_check_enabled`` is set.

    Returns:
        Readiness status, 503 when the database cannot be reached.
    """
    if not settings.database_check_enabled:
        return ReadinessResponse(status="ready", database="skipped")

    if await ping_database():
        return ReadinessResponse(status="ready", database="ok")

    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=ReadinessResponse(status="unavailable", database="unavailable").model_dump(),
    )
