"""API v1 router configuration."""

from fastapi import APIRouter

from cin_agenda.api.v1.endpoints import appointments, blocked_dates, cpf_blocks, health, locations

TENANT_PREFIX = "/tenants/{tenant_id}"

api_router = APIRouter()

# Include routers
api_router.include_router(health.router, tags=["Health"])
api_router.include_router(locations.router, prefix=TENANT_PREFIX, tags=["Locations"])
api_router.include_router(locations.public_router, prefix=TENANT_PREFIX, tags=["Locations"])
api_router.include_router(appointments.router, prefix=TENANT_PREFIX, tags=["Appointments"])
api_router.include_router(
    appointments.public_router, prefix=TENANT_PREFIX, tags=["Public booking"]
)
api_router.include_router(blocked_dates.router, prefix=TENANT_PREFIX, tags=["Blocked dates"])
api_router.include_router(
    blocked_dates.public_router, prefix=TENANT_PREFIX, tags=["Blocked dates"]
)
api_router.include_router(cpf_blocks.public_router, prefix=TENANT_PREFIX, tags=["CPF blocks"])
