"""Tests for repeated-cancellation blocking."""

from datetime import UTC, datetime, time

import pytest

from cin_agenda.core.exceptions import ErrorKind, SchedulingError
from cin_agenda.schemas.appointments import Appointment, CancelledBy
from cin_agenda.schemas.locations import Location
from cin_agenda.services.collaborators import Actor
from cin_agenda.services.factory import Services
from tests.factories import CPF, OTHER_TENANT_ID, TENANT_ID, make_booking

SLOTS = [time(8), time(9), time(10), time(11), time(13), time(14)]


def at(day: int, hour: int = 10) -> datetime:
    return datetime(2025, 3, day, hour, 0, tzinfo=UTC)


async def book(services: Services, location: Location, index: int, tenant_id: int = TENANT_ID):
    return await services.appointments.create_appointment(
        tenant_id, make_booking(location.id, slot_time=SLOTS[index])
    )


async def cancel(services: Services, appointment: Appointment, tenant_id: int = TENANT_ID):
    return await services.appointments.cancel(
        tenant_id, appointment.id, Actor.citizen(), reason="Cannot attend"
    )


@pytest.mark.asyncio
async def test_three_cancellations_in_window_block_cpf(
    services: Services,
    location: Location,
    clock,
):
    """Cancellations on 03-01, 03-03 and 03-05 block the CPF until 03-12."""
    for index, day in enumerate((1, 3, 5)):
        clock.set(at(day))
        await cancel(services, await book(services, location, index))

    clock.set(at(6))
    with pytest.raises(SchedulingError) as exc_info:
        await book(services, location, 3)

    error = exc_info.value
    assert error.kind == ErrorKind.CPF_BLOCKED
    assert error.status_code == 403
    assert error.details["blocked_until"] == at(12).isoformat()
    assert "3 cancellations" in error.details["reason"]

    status = await services.throttle.block_status(TENANT_ID, CPF)
    assert status.blocked is True
    assert status.blocked_until == at(12)
    assert status.cancellation_count == 3


@pytest.mark.asyncio
async def test_two_cancellations_do_not_block(services: Services, location: Location, clock):
    for index, day in enumerate((1, 2)):
        clock.set(at(day))
        await cancel(services, await book(services, location, index))

    created = await book(services, location, 2)

    assert created.status.value == "pending"
    status = await services.throttle.block_status(TENANT_ID, CPF)
    assert status.blocked is False
    assert status.recent_cancellations == 2


@pytest.mark.asyncio
async def test_cancellation_eight_days_old_is_outside_window(
    services: Services,
    location: Location,
    clock,
):
    """Only cancellations inside the trailing seven days count."""
    clock.set(at(1))
    await cancel(services, await book(services, location, 0))
    clock.set(at(9))
    await cancel(services, await book(services, location, 1))
    clock.set(at(10))
    await cancel(services, await book(services, location, 2))

    assert (await services.throttle.block_status(TENANT_ID, CPF)).blocked is False
    created = await book(services, location, 3)

    # A third cancellation inside the window does block
    clock.set(at(11))
    await cancel(services, created)
    status = await services.throttle.block_status(TENANT_ID, CPF)
    assert status.blocked is True
    assert status.cancellation_count == 3


@pytest.mark.asyncio
async def test_fourth_cancellation_refreshes_block(
    services: Services,
    location: Location,
    clock,
):
    """A qualifying cancellation while blocked replaces the block."""
    clock.set(at(1))
    appointments = [await book(services, location, index) for index in range(4)]

    for appointment, day in zip(appointments[:3], (1, 2, 3)):
        clock.set(at(day))
        await cancel(services, appointment)
    first = await services.throttle.block_status(TENANT_ID, CPF)
    assert first.blocked_until == at(10)

    clock.set(at(5))
    await cancel(services, appointments[3])

    refreshed = await services.throttle.block_status(TENANT_ID, CPF)
    assert refreshed.blocked_until == at(12)
    assert refreshed.cancellation_count == 4


@pytest.mark.asyncio
async def test_only_one_active_block(services: Services, store, location: Location, clock):
    clock.set(at(1))
    appointments = [await book(services, location, index) for index in range(4)]
    for appointment in appointments:
        clock.advance(hours=1)
        await cancel(services, appointment)

    async with store.transaction() as tx:
        active = await tx.get_active_cpf_block(TENANT_ID, CPF, clock.now)
        deactivated = await tx.deactivate_cpf_blocks(TENANT_ID, CPF)

    assert active.cancellation_count == 4
    assert deactivated == 1


@pytest.mark.asyncio
async def test_block_expires(services: Services, location: Location, clock):
    for index, day in enumerate((1, 2, 3)):
        clock.set(at(day))
        await cancel(services, await book(services, location, index))

    clock.set(at(10, hour=11))
    created = await book(services, location, 3)

    assert created.cpf == CPF
    assert (await services.throttle.block_status(TENANT_ID, CPF)).blocked is False


@pytest.mark.asyncio
async def test_staff_cancellations_count(
    services: Services,
    location: Location,
    staff: Actor,
):
    for index in range(3):
        appointment = await book(services, location, index)
        await services.appointments.cancel(TENANT_ID, appointment.id, staff, reason="No-show")

    status = await services.throttle.block_status(TENANT_ID, CPF)
    assert status.blocked is True


@pytest.mark.asyncio
async def test_repeated_cancel_is_recorded_once(services: Services, location: Location):
    appointment = await book(services, location, 0)

    first = await cancel(services, appointment)
    again = await cancel(services, appointment)

    assert again == first
    status = await services.throttle.block_status(TENANT_ID, CPF)
    assert status.recent_cancellations == 1


@pytest.mark.asyncio
async def test_cancellations_are_tenant_scoped(
    services: Services,
    location: Location,
    other_location: Location,
):
    for index in range(3):
        await cancel(
            services,
            await book(services, other_location, index, tenant_id=OTHER_TENANT_ID),
            tenant_id=OTHER_TENANT_ID,
        )

    assert (await services.throttle.block_status(OTHER_TENANT_ID, CPF)).blocked is True
    created = await book(services, location, 0)
    assert created.tenant_id == TENANT_ID


@pytest.mark.asyncio
async def test_cancel_records_who_cancelled(services: Services, location: Location, clock):
    appointment = await book(services, location, 0)

    cancelled = await cancel(services, appointment)
    record = await services.appointments.get_cancellation(TENANT_ID, appointment.id)

    assert cancelled.cancelled_by == CancelledBy.CITIZEN
    assert cancelled.cancellation_reason == "Cannot attend"
    assert record.cancelled_by == CancelledBy.CITIZEN
    assert record.cancelled_at == clock.now
    assert record.cpf == CPF


@pytest.mark.asyncio
async def test_cancellation_record_missing(services: Services, booked: Appointment):
    with pytest.raises(SchedulingError) as exc_info:
        await services.appointments.get_cancellation(TENANT_ID, booked.id)

    assert exc_info.value.kind == ErrorKind.NOT_FOUND
