"""FastAPI application entry point."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.exceptions import HTTPException as StarletteHTTPException

from cin_agenda.api.v1.router import api_router
from cin_agenda.config import settings
from cin_agenda.core.exceptions import AppException
from cin_agenda.core.redis_client import CacheManager, check_redis_connection, create_redis_client
from cin_agenda.database import check_database_connection, create_engine, create_session_factory
from cin_agenda.middleware.error_handler import (
    app_exception_handler,
    general_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from cin_agenda.middleware.logging import LoggingMiddleware, configure_logging
from cin_agenda.services.factory import build_services
from cin_agenda.store import AppointmentStore, MemoryAppointmentStore, SqlAppointmentStore

# Configure logging
configure_logging()
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Builds the store, the Redis cache and the scheduling services and keeps
    them on ``app.state``.
    """
    logger.info(
        "application_startup",
        environment=settings.environment,
        store_backend=settings.store_backend,
    )

    store: AppointmentStore
    engine = None
    if settings.store_backend == "memory":
        store = MemoryAppointmentStore()
    else:
        engine = create_engine(settings)
        store = SqlAppointmentStore(create_session_factory(engine))
        if await check_database_connection(engine):
            logger.info("database_connected")
        else:
            logger.error("database_connection_failed")

    redis_client = create_redis_client(settings)
    if check_redis_connection(redis_client):
        logger.info("redis_connected")
    else:
        logger.warning("redis_connection_failed", note="Location cache disabled until Redis is up")

    app.state.engine = engine
    app.state.redis = redis_client
    app.state.services = build_services(store, settings, cache=CacheManager(redis_client))

    yield

    logger.info("application_shutdown")

    await store.close()
    logger.info("store_closed")

    redis_client.close()
    logger.info("redis_connection_closed")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Multi-tenant appointment scheduling for CIN issuance",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(LoggingMiddleware)

app.add_exception_handler(AppException, app_exception_handler)  # type: ignore[arg-type]
app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore[arg-type]
app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
app.add_exception_handler(Exception, general_exception_handler)  # type: ignore[arg-type]

app.include_router(api_router, prefix=settings.api_v1_prefix)

# Setup Prometheus instrumentation
Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=False,
    should_instrument_requests_inprogress=True,
    excluded_handlers=["/docs", "/redoc", "/openapi.json"],
    inprogress_name="http_requests_inprogress",
    inprogress_labels=True,
).instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)


@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """
    Root endpoint.

    Returns:
        Service name and version
    """
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "cin_agenda.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        log_level=settings.log_level.lower(),
    )
