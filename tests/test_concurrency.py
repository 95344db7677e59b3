"""Concurrent booking tests against the in-process store."""

import asyncio

import pytest

from cin_agenda.core.exceptions import ErrorKind, SchedulingError
from cin_agenda.schemas.appointments import AppointmentFilters
from cin_agenda.schemas.locations import LocationCreate
from cin_agenda.services.factory import Services
from tests.factories import SLOT_DATE, TENANT_ID, cpf_for, make_booking


@pytest.mark.asyncio
@pytest.mark.parametrize(("capacity", "extra"), [(1, 0), (2, 1), (2, 5), (5, 10)])
async def test_concurrent_bookings_never_exceed_capacity(
    services: Services,
    capacity: int,
    extra: int,
):
    """C + k simultaneous bookings give exactly C appointments and k rejections."""
    location = await services.locations.create_location(
        TENANT_ID, LocationCreate(name="Busy office", max_appointments_per_slot=capacity)
    )

    results = await asyncio.gather(
        *(
            services.appointments.create_appointment(
                TENANT_ID, make_booking(location.id, cpf=cpf_for(index))
            )
            for index in range(capacity + extra)
        ),
        return_exceptions=True,
    )

    rejected = [r for r in results if isinstance(r, SchedulingError)]
    assert len(results) - len(rejected) == capacity
    assert len(rejected) == extra
    assert all(r.kind == ErrorKind.SLOT_UNAVAILABLE for r in rejected)

    listing = await services.appointments.list_appointments(
        TENANT_ID, AppointmentFilters(location_id=location.id, from_date=SLOT_DATE)
    )
    assert listing.total == capacity


@pytest.mark.asyncio
async def test_failed_transaction_leaves_no_partial_writes(services: Services, store):
    """Writes staged before an error are discarded."""
    location = await services.locations.create_location(TENANT_ID, LocationCreate(name="Office"))

    with pytest.raises(RuntimeError):
        async with store.transaction() as tx:
            await tx.insert_location(TENANT_ID, LocationCreate(name="Ghost"), location.created_at)
            raise RuntimeError("boom")

    assert [loc.name for loc in await services.locations.list_locations(TENANT_ID)] == ["Office"]
