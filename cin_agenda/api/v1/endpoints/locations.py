"""Service location endpoints."""

from datetime import date

from fastapi import APIRouter, Query, status

from cin_agenda.dependencies import ServicesDep, TenantStaff
from cin_agenda.schemas.locations import DayAvailability, Location, LocationCreate

router = APIRouter()
public_router = APIRouter()


@router.post(
    "/locations",
    response_model=Location,
    status_code=status.HTTP_201_CREATED,
    summary="Create location",
)
async def create_location(
    tenant_id: int,
    data: LocationCreate,
    staff: TenantStaff,
    services: ServicesDep,
) -> Location:
    """
    Create a service location.

    Args:
        tenant_id: Tenant ID
        data: Name, address, slot capacity and working hours
        staff: Authenticated staff member
        services: Scheduling services

    Returns:
        Created location
    """
    return await services.locations.create_location(tenant_id, data)


@public_router.get(
    "/locations",
    response_model=list[Location],
    status_code=status.HTTP_200_OK,
    summary="List locations",
)
async def list_locations(tenant_id: int, services: ServicesDep) -> list[Location]:
    """List the tenant's service locations."""
    return await services.locations.list_locations(tenant_id)


@public_router.get(
    "/locations/{location_id}",
    response_model=Location,
    status_code=status.HTTP_200_OK,
    summary="Get location by ID",
)
async def get_location(tenant_id: int, location_id: int, services: ServicesDep) -> Location:
    """Get a specific service location."""
    return await services.locations.get_location(tenant_id, location_id)


@public_router.get(
    "/locations/{location_id}/availability",
    response_model=DayAvailability,
    status_code=status.HTTP_200_OK,
    summary="Slot availability for a date",
)
async def get_day_availability(
    tenant_id: int,
    location_id: int,
    services: ServicesDep,
    day: date = Query(..., alias="date"),
) -> DayAvailability:
    """
    Remaining capacity of each working-hours slot on a date.

    Args:
        tenant_id: Tenant ID
        location_id: Location ID
        services: Scheduling services
        day: Date to inspect

    Returns:
        Per-slot availability
    """
    return await services.locations.day_availability(tenant_id, location_id, day)
