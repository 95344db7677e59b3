"""Tests for slot capacity enforcement."""

from datetime import time

import pytest

from cin_agenda.core.exceptions import ErrorKind, SchedulingError
from cin_agenda.schemas.locations import Location, LocationCreate
from cin_agenda.services.collaborators import Actor
from cin_agenda.services.factory import Services
from cin_agenda.services.slot_availability import SlotAvailabilityCalculator
from tests.factories import (
    OTHER_TENANT_ID,
    SLOT_DATE,
    SLOT_TIME,
    TENANT_ID,
    cpf_for,
    make_booking,
)


async def remaining(services: Services, store, location_id: int, tenant_id: int = TENANT_ID):
    calculator = services.appointments.calculator
    async with store.transaction() as tx:
        return await calculator.remaining_capacity(
            tx, tenant_id, location_id, SLOT_DATE, SLOT_TIME
        )


def test_remaining_is_never_negative():
    assert SlotAvailabilityCalculator.remaining(2, 5) == 0
    assert SlotAvailabilityCalculator.remaining(2, 1) == 1


def test_capacity_falls_back_to_default():
    calculator = SlotAvailabilityCalculator(default_capacity=2, default_working_hours=[time(8)])
    location = Location(
        id=1,
        tenant_id=TENANT_ID,
        name="No limit configured",
        created_at="2025-03-01T00:00:00Z",
    )

    assert calculator.capacity_for(location) == 2
    assert calculator.working_hours_for(location) == [time(8)]


@pytest.mark.asyncio
async def test_capacity_scenario(services: Services, store, location: Location, staff: Actor):
    """Book A and B, C is rejected, cancelling A frees a place for D."""
    a = await services.appointments.create_appointment(
        TENANT_ID, make_booking(location.id, cpf=cpf_for(1))
    )
    assert await remaining(services, store, location.id) == 1

    await services.appointments.create_appointment(
        TENANT_ID, make_booking(location.id, cpf=cpf_for(2))
    )
    assert await remaining(services, store, location.id) == 0

    with pytest.raises(SchedulingError) as exc_info:
        await services.appointments.create_appointment(
            TENANT_ID, make_booking(location.id, cpf=cpf_for(3))
        )
    assert exc_info.value.kind == ErrorKind.SLOT_UNAVAILABLE
    assert exc_info.value.status_code == 409

    await services.appointments.cancel(TENANT_ID, a.id, staff, reason="Citizen asked")
    assert await remaining(services, store, location.id) == 1

    d = await services.appointments.create_appointment(
        TENANT_ID, make_booking(location.id, cpf=cpf_for(4))
    )
    assert d.status.value == "pending"
    assert await remaining(services, store, location.id) == 0


@pytest.mark.asyncio
async def test_other_slots_are_independent(services: Services, location: Location):
    for index in range(2):
        await services.appointments.create_appointment(
            TENANT_ID, make_booking(location.id, cpf=cpf_for(index))
        )

    later = await services.appointments.create_appointment(
        TENANT_ID, make_booking(location.id, cpf=cpf_for(9), slot_time=time(10, 0))
    )

    assert later.time == time(10, 0)


@pytest.mark.asyncio
async def test_tenants_do_not_share_capacity(
    services: Services,
    store,
    location: Location,
    other_location: Location,
):
    """Bookings of another tenant never count against this tenant's slot."""
    for index in range(2):
        await services.appointments.create_appointment(
            OTHER_TENANT_ID, make_booking(other_location.id, cpf=cpf_for(index))
        )

    assert await remaining(services, store, location.id) == 2


@pytest.mark.asyncio
async def test_unknown_location(services: Services, store):
    with pytest.raises(SchedulingError) as exc_info:
        await services.appointments.create_appointment(TENANT_ID, make_booking(999))

    assert exc_info.value.kind == ErrorKind.NOT_FOUND

    with pytest.raises(SchedulingError):
        await remaining(services, store, 999)


@pytest.mark.asyncio
async def test_booking_at_foreign_location(services: Services, other_location: Location):
    """A location id that belongs to another tenant is a tenant mismatch."""
    with pytest.raises(SchedulingError) as exc_info:
        await services.appointments.create_appointment(
            TENANT_ID, make_booking(other_location.id)
        )

    assert exc_info.value.kind == ErrorKind.TENANT_MISMATCH
    assert exc_info.value.status_code == 403


@pytest.mark.asyncio
async def test_day_availability(services: Services):
    location = await services.locations.create_location(
        TENANT_ID,
        LocationCreate(
            name="Small office",
            max_appointments_per_slot=1,
            working_hours=[time(10), time(9)],
        ),
    )
    await services.appointments.create_appointment(TENANT_ID, make_booking(location.id))

    availability = await services.locations.day_availability(TENANT_ID, location.id, SLOT_DATE)

    assert [slot.time for slot in availability.slots] == [time(9), time(10)]
    nine, ten = availability.slots
    assert (nine.booked, nine.remaining, nine.bookable) == (1, 0, False)
    assert (ten.booked, ten.remaining, ten.bookable) == (0, 1, True)
    assert availability.full_day_blocked is False
