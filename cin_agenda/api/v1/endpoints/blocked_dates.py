"""Calendar block endpoints."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Query, status

from cin_agenda.dependencies import ServicesDep, TenantStaff, staff_actor
from cin_agenda.schemas.blocked_dates import BlockedDate, BlockedDateCreate

router = APIRouter()
public_router = APIRouter()


@router.post(
    "/blocked-dates",
    response_model=BlockedDate,
    status_code=status.HTTP_201_CREATED,
    summary="Block a date or specific times",
)
async def create_blocked_date(
    tenant_id: int,
    data: BlockedDateCreate,
    staff: TenantStaff,
    services: ServicesDep,
) -> BlockedDate:
    """
    Block a date for every location of the tenant.

    Args:
        tenant_id: Tenant ID
        data: Date, block type, times and reason
        staff: Authenticated staff member
        services: Scheduling services

    Returns:
        Created block
    """
    return await services.blocked_dates.create_block(tenant_id, data, staff_actor(staff))


@router.delete(
    "/blocked-dates/{block_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove a calendar block",
)
async def delete_blocked_date(
    tenant_id: int,
    block_id: UUID,
    staff: TenantStaff,
    services: ServicesDep,
) -> None:
    """Remove a block; bookings on its date open up again."""
    await services.blocked_dates.delete_block(tenant_id, block_id, staff_actor(staff))


@public_router.get(
    "/blocked-dates",
    response_model=list[BlockedDate],
    status_code=status.HTTP_200_OK,
    summary="List calendar blocks",
)
async def list_blocked_dates(
    tenant_id: int,
    services: ServicesDep,
    from_date: date | None = Query(None),
    to_date: date | None = Query(None),
) -> list[BlockedDate]:
    """List the tenant's blocks so the booking calendar can grey them out."""
    return await services.blocked_dates.list_blocks(tenant_id, from_date, to_date)
