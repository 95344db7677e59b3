"""Appointment endpoints.

Staff routes require a bearer token for the tenant in the path; the public
routes back the citizen booking wizard.
"""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Query, status

from cin_agenda.core.exceptions import BadRequestException
from cin_agenda.dependencies import ServicesDep, TenantAdmin, TenantStaff, staff_actor
from cin_agenda.schemas.appointments import (
    Appointment,
    AppointmentCancel,
    AppointmentCreate,
    AppointmentDetailsUpdate,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentReschedule,
    AppointmentStatus,
    AppointmentStatusUpdate,
    CancellationRecord,
    CitizenBookingCreate,
    CitizenCancel,
)
from cin_agenda.services.collaborators import Actor

router = APIRouter()
public_router = APIRouter()


@router.post(
    "/appointments",
    response_model=Appointment,
    status_code=status.HTTP_201_CREATED,
    summary="Book an appointment on behalf of a citizen",
)
async def create_appointment(
    tenant_id: int,
    data: AppointmentCreate,
    staff: TenantStaff,
    services: ServicesDep,
) -> Appointment:
    """
    Book an appointment at the counter.

    Args:
        tenant_id: Tenant ID
        data: Citizen and slot data
        staff: Authenticated staff member
        services: Scheduling services

    Returns:
        Created appointment
    """
    return await services.appointments.create_appointment(tenant_id, data, staff_actor(staff))


@router.get(
    "/appointments",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    summary="List appointments",
)
async def list_appointments(
    tenant_id: int,
    staff: TenantStaff,
    services: ServicesDep,
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
    location_id: int | None = Query(None),
    cpf: str | None = Query(None),
    from_date: date | None = Query(None),
    to_date: date | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> AppointmentListResponse:
    """
    List the tenant's appointments with filtering.

    Args:
        tenant_id: Tenant ID
        staff: Authenticated staff member
        services: Scheduling services
        status_filter: Filter by status
        location_id: Filter by location
        cpf: Filter by citizen CPF
        from_date: Earliest appointment date
        to_date: Latest appointment date
        page: Page number
        page_size: Items per page

    Returns:
        Paginated list of appointments
    """
    try:
        filters = AppointmentFilters(
            status=status_filter,
            location_id=location_id,
            cpf=cpf,
            from_date=from_date,
            to_date=to_date,
            page=page,
            page_size=page_size,
        )
    except ValueError as e:
        raise BadRequestException(str(e)) from e

    return await services.appointments.list_appointments(tenant_id, filters)


@router.get(
    "/appointments/{appointment_id}",
    response_model=Appointment,
    status_code=status.HTTP_200_OK,
    summary="Get appointment by ID",
)
async def get_appointment(
    tenant_id: int,
    appointment_id: UUID,
    staff: TenantStaff,
    services: ServicesDep,
) -> Appointment:
    """Get a specific appointment with its status history."""
    return await services.appointments.get_appointment(tenant_id, appointment_id)


@router.patch(
    "/appointments/{appointment_id}",
    response_model=Appointment,
    status_code=status.HTTP_200_OK,
    summary="Update appointment details",
)
async def update_appointment(
    tenant_id: int,
    appointment_id: UUID,
    data: AppointmentDetailsUpdate,
    staff: TenantStaff,
    services: ServicesDep,
) -> Appointment:
    """
    Update contact data, priority or notes.

    Status, date and time have their own endpoints.
    """
    return await services.appointments.update_details(
        tenant_id, appointment_id, data, staff_actor(staff)
    )


@router.patch(
    "/appointments/{appointment_id}/status",
    response_model=Appointment,
    status_code=status.HTTP_200_OK,
    summary="Change appointment status",
)
async def update_appointment_status(
    tenant_id: int,
    appointment_id: UUID,
    data: AppointmentStatusUpdate,
    staff: TenantStaff,
    services: ServicesDep,
) -> Appointment:
    """
    Advance an appointment through the issuance workflow.

    Args:
        tenant_id: Tenant ID
        appointment_id: Appointment ID
        data: Target status, reason and metadata
        staff: Authenticated staff member
        services: Scheduling services

    Returns:
        Updated appointment
    """
    return await services.appointments.change_status(
        tenant_id, appointment_id, data, staff_actor(staff)
    )


@router.post(
    "/appointments/{appointment_id}/reschedule",
    response_model=Appointment,
    status_code=status.HTTP_200_OK,
    summary="Reschedule appointment",
)
async def reschedule_appointment(
    tenant_id: int,
    appointment_id: UUID,
    data: AppointmentReschedule,
    staff: TenantStaff,
    services: ServicesDep,
) -> Appointment:
    """Move an appointment to a new date and time; it returns to pending."""
    return await services.appointments.reschedule(
        tenant_id, appointment_id, data, staff_actor(staff)
    )


@router.post(
    "/appointments/{appointment_id}/cancel",
    response_model=Appointment,
    status_code=status.HTTP_200_OK,
    summary="Cancel appointment",
)
async def cancel_appointment(
    tenant_id: int,
    appointment_id: UUID,
    data: AppointmentCancel,
    staff: TenantStaff,
    services: ServicesDep,
) -> Appointment:
    """Cancel an appointment on the citizen's behalf or after a no-show."""
    return await services.appointments.cancel_by_staff(
        tenant_id, appointment_id, data, staff_actor(staff)
    )


@router.get(
    "/appointments/{appointment_id}/cancellation",
    response_model=CancellationRecord,
    status_code=status.HTTP_200_OK,
    summary="Get latest cancellation record",
)
async def get_cancellation(
    tenant_id: int,
    appointment_id: UUID,
    staff: TenantStaff,
    services: ServicesDep,
) -> CancellationRecord:
    """Latest cancellation ledger entry for an appointment."""
    return await services.appointments.get_cancellation(tenant_id, appointment_id)


@router.delete(
    "/appointments/{appointment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete appointment",
)
async def delete_appointment(
    tenant_id: int,
    appointment_id: UUID,
    admin: TenantAdmin,
    services: ServicesDep,
) -> None:
    """
    Permanently delete an appointment.

    Restricted to tenant administrators.
    """
    await services.appointments.delete_appointment(tenant_id, appointment_id, staff_actor(admin))


@public_router.post(
    "/public/appointments",
    response_model=Appointment,
    status_code=status.HTTP_201_CREATED,
    summary="Book an appointment",
)
async def book_appointment(
    tenant_id: int,
    data: CitizenBookingCreate,
    services: ServicesDep,
) -> Appointment:
    """
    Citizen self-service booking.

    Priority and notes are staff-only and always start at their defaults.

    Args:
        tenant_id: Tenant ID
        data: Citizen and slot data
        services: Scheduling services

    Returns:
        Created appointment with its protocol
    """
    return await services.appointments.create_appointment(
        tenant_id, AppointmentCreate.model_validate(data.model_dump())
    )


@public_router.post(
    "/public/appointments/{appointment_id}/cancel",
    response_model=Appointment,
    status_code=status.HTTP_200_OK,
    summary="Cancel own appointment",
)
async def citizen_cancel_appointment(
    tenant_id: int,
    appointment_id: UUID,
    data: CitizenCancel,
    services: ServicesDep,
) -> Appointment:
    """
    Citizen self-cancellation.

    The CPF must match the booking; a mismatch is reported as not found.
    """
    return await services.appointments.cancel(
        tenant_id,
        appointment_id,
        Actor.citizen(),
        reason=data.reason,
        expected_cpf=data.cpf,
    )

