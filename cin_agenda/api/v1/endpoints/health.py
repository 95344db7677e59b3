"""Health check endpoints."""

from fastapi import APIRouter, Request, status
from pydantic import BaseModel

from cin_agenda.config import settings
from cin_agenda.core.redis_client import check_redis_connection
from cin_agenda.database import check_database_connection

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    environment: str


class DetailedHealthResponse(BaseModel):
    """Detailed health check response model."""

    status: str
    version: str
    environment: str
    store_backend: str
    database: str
    redis: str


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
)
async def health_check() -> HealthResponse:
    """
    Basic health check endpoint.

    Returns:
        Basic health status
    """
    return HealthResponse(
        status="healthy",
        version=settings.app_version,
        environment=settings.environment,
    )


@router.get(
    "/health/detailed",
    response_model=DetailedHealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Detailed health check",
)
async def detailed_health_check(request: Request) -> DetailedHealthResponse:
    """
    Detailed health check with database and Redis status.

    The in-memory store has no database; it reports ``not-configured``.

    Returns:
        Detailed health status including dependencies
    """
    engine = getattr(request.app.state, "engine", None)
    redis_healthy = check_redis_connection(getattr(request.app.state, "redis", None))

    if engine is None:
        database = "not-configured"
        db_healthy = True
    else:
        db_healthy = await check_database_connection(engine)
        database = "healthy" if db_healthy else "unhealthy"

    return DetailedHealthResponse(
        status="healthy" if db_healthy and redis_healthy else "degraded",
        version=settings.app_version,
        environment=settings.environment,
        store_backend=settings.store_backend,
        database=database,
        redis="healthy" if redis_healthy else "unhealthy",
    )


@router.get(
    "/ping",
    status_code=status.HTTP_200_OK,
    summary="Simple ping",
)
async def ping() -> dict[str, str]:
    """
    Simple ping endpoint.

    Returns:
        Pong response
    """
    return {"message": "pong"}
