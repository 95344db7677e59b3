"""Tests for rescheduling and its rate limit."""

from datetime import date, time, timedelta

import pytest

from cin_agenda.core.exceptions import ErrorKind, SchedulingError
from cin_agenda.schemas.appointments import (
    Appointment,
    AppointmentReschedule,
    AppointmentStatus,
    AppointmentStatusUpdate,
)
from cin_agenda.schemas.locations import Location
from cin_agenda.services.collaborators import Actor, TransitionKind
from cin_agenda.services.factory import Services
from tests.factories import SLOT_DATE, TENANT_ID, cpf_for, make_booking


def move(day_offset: int, hour: int = 9) -> AppointmentReschedule:
    return AppointmentReschedule(date=SLOT_DATE + timedelta(days=day_offset), time=time(hour))


@pytest.mark.asyncio
async def test_reschedule_moves_and_records_history(
    services: Services,
    booked: Appointment,
    staff: Actor,
    notifier,
):
    confirmed = await services.appointments.change_status(
        TENANT_ID, booked.id, AppointmentStatusUpdate(status=AppointmentStatus.CONFIRMED), staff
    )

    moved = await services.appointments.reschedule(TENANT_ID, confirmed.id, move(1, 14), staff)

    assert moved.status == AppointmentStatus.PENDING
    assert (moved.date, moved.time) == (date(2025, 3, 11), time(14))
    entry = moved.status_history[-1]
    assert entry.from_status == AppointmentStatus.CONFIRMED
    assert entry.to_status == AppointmentStatus.PENDING
    assert entry.metadata == {
        "old_date": "2025-03-10",
        "old_time": "09:00",
        "new_date": "2025-03-11",
        "new_time": "14:00",
    }
    assert entry.is_reschedule
    assert notifier.kinds == [TransitionKind.RESCHEDULED]


@pytest.mark.asyncio
async def test_limit_rejects_next_reschedule_without_changes(
    services: Services,
    booked: Appointment,
    staff: Actor,
):
    """After the maximum, the next attempt fails and nothing is modified."""
    current = booked
    for offset in (1, 2, 3):
        current = await services.appointments.reschedule(
            TENANT_ID, current.id, move(offset), staff
        )

    with pytest.raises(SchedulingError) as exc_info:
        await services.appointments.reschedule(TENANT_ID, current.id, move(4), staff)

    assert exc_info.value.kind == ErrorKind.RESCHEDULE_LIMIT_EXCEEDED
    assert exc_info.value.status_code == 429
    assert exc_info.value.details == {"limit": 3, "window_days": 7}
    assert await services.appointments.get_appointment(TENANT_ID, current.id) == current


@pytest.mark.asyncio
async def test_limit_counts_all_appointments_of_cpf(
    services: Services,
    location: Location,
    staff: Actor,
):
    first = await services.appointments.create_appointment(
        TENANT_ID, make_booking(location.id, slot_time=time(8))
    )
    second = await services.appointments.create_appointment(
        TENANT_ID, make_booking(location.id, slot_time=time(10))
    )

    await services.appointments.reschedule(TENANT_ID, first.id, move(1), staff)
    await services.appointments.reschedule(TENANT_ID, first.id, move(2), staff)
    await services.appointments.reschedule(TENANT_ID, second.id, move(3), staff)

    with pytest.raises(SchedulingError) as exc_info:
        await services.appointments.reschedule(TENANT_ID, second.id, move(4), staff)
    assert exc_info.value.kind == ErrorKind.RESCHEDULE_LIMIT_EXCEEDED

    # Another citizen is not affected
    other = await services.appointments.create_appointment(
        TENANT_ID, make_booking(location.id, cpf=cpf_for(7))
    )
    moved = await services.appointments.reschedule(TENANT_ID, other.id, move(5), staff)
    assert moved.date == SLOT_DATE + timedelta(days=5)


@pytest.mark.asyncio
async def test_limit_window_rolls(services: Services, booked: Appointment, staff: Actor, clock):
    current = booked
    for offset in (1, 2, 3):
        current = await services.appointments.reschedule(
            TENANT_ID, current.id, move(offset), staff
        )

    clock.advance(days=7, seconds=1)
    moved = await services.appointments.reschedule(TENANT_ID, current.id, move(4), staff)

    assert moved.date == SLOT_DATE + timedelta(days=4)


@pytest.mark.asyncio
async def test_limit_is_independent_of_cancellations(
    services: Services,
    location: Location,
    staff: Actor,
):
    """Cancellations never consume reschedule allowance."""
    for hour in (8, 10):
        appointment = await services.appointments.create_appointment(
            TENANT_ID, make_booking(location.id, slot_time=time(hour))
        )
        await services.appointments.cancel(TENANT_ID, appointment.id, staff, reason="x")

    current = await services.appointments.create_appointment(
        TENANT_ID, make_booking(location.id, slot_time=time(11))
    )
    for offset in (1, 2, 3):
        current = await services.appointments.reschedule(
            TENANT_ID, current.id, move(offset), staff
        )

    assert current.date == SLOT_DATE + timedelta(days=3)


@pytest.mark.asyncio
@pytest.mark.parametrize("terminal", [AppointmentStatus.CANCELLED, AppointmentStatus.CIN_DELIVERED])
async def test_terminal_appointment_cannot_be_rescheduled(
    services: Services,
    booked: Appointment,
    staff: Actor,
    terminal: AppointmentStatus,
):
    if terminal == AppointmentStatus.CANCELLED:
        current = await services.appointments.cancel(TENANT_ID, booked.id, staff, reason="x")
    else:
        current = booked
        for step in (
            AppointmentStatus.CONFIRMED,
            AppointmentStatus.COMPLETED,
            AppointmentStatus.CIN_READY,
            AppointmentStatus.CIN_DELIVERED,
        ):
            current = await services.appointments.change_status(
                TENANT_ID, current.id, AppointmentStatusUpdate(status=step), staff
            )

    with pytest.raises(SchedulingError) as exc_info:
        await services.appointments.reschedule(TENANT_ID, current.id, move(1), staff)

    assert exc_info.value.kind == ErrorKind.INVALID_TRANSITION
    assert exc_info.value.details == {"from": terminal.value, "to": "pending"}


@pytest.mark.asyncio
async def test_reschedule_into_full_slot(services: Services, location: Location, staff: Actor):
    for index in range(2):
        await services.appointments.create_appointment(
            TENANT_ID, make_booking(location.id, cpf=cpf_for(index), slot_time=time(10))
        )
    appointment = await services.appointments.create_appointment(
        TENANT_ID, make_booking(location.id, cpf=cpf_for(5))
    )

    with pytest.raises(SchedulingError) as exc_info:
        await services.appointments.reschedule(
            TENANT_ID,
            appointment.id,
            AppointmentReschedule(date=SLOT_DATE, time=time(10)),
            staff,
        )

    assert exc_info.value.kind == ErrorKind.SLOT_UNAVAILABLE
    assert await services.appointments.get_appointment(TENANT_ID, appointment.id) == appointment


@pytest.mark.asyncio
async def test_reschedule_within_own_full_slot(
    services: Services,
    location: Location,
    staff: Actor,
):
    """The appointment being moved does not count against its own slot."""
    appointment = await services.appointments.create_appointment(
        TENANT_ID, make_booking(location.id, cpf=cpf_for(1))
    )
    await services.appointments.create_appointment(
        TENANT_ID, make_booking(location.id, cpf=cpf_for(2))
    )

    moved = await services.appointments.reschedule(
        TENANT_ID,
        appointment.id,
        AppointmentReschedule(date=SLOT_DATE, time=time(9), reason="Confirmed same slot"),
        staff,
    )

    assert moved.status_history[-1].reason == "Confirmed same slot"
