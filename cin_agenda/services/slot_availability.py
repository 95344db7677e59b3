"""Slot capacity calculation."""

from datetime import date, time
from uuid import UUID

from cin_agenda.core.exceptions import SchedulingError
from cin_agenda.schemas.locations import Location
from cin_agenda.store.base import StoreSession


class SlotAvailabilityCalculator:
    """
    Computes remaining booking capacity of a (tenant, location, date, time) slot.

    The calculator only reads; callers that act on the result hold the slot
    lock of the surrounding store transaction.
    """

    def __init__(self, default_capacity: int, default_working_hours: list[time]):
        """Initialize with the tenant-wide defaults."""
        self.default_capacity = default_capacity
        self.default_working_hours = sorted(default_working_hours)

    def capacity_for(self, location: Location) -> int:
        """Configured appointments per slot for a location."""
        return location.max_appointments_per_slot or self.default_capacity

    def working_hours_for(self, location: Location) -> list[time]:
        """Bookable times for a location."""
        return location.working_hours or self.default_working_hours

    @staticmethod
    def remaining(capacity: int, booked: int) -> int:
        """Remaining places, never negative."""
        return max(capacity - booked, 0)

    async def remaining_capacity(
        self,
        tx: StoreSession,
        tenant_id: int,
        location_id: int,
        day: date,
        slot_time: time,
        exclude_id: UUID | None = None,
    ) -> int:
        """
        Remaining capacity of a slot.

        Args:
            tx: Open store session
            tenant_id: Tenant scope
            location_id: Service location
            day: Slot date
            slot_time: Slot time
            exclude_id: Appointment to leave out of the count (the one being moved)

        Returns:
            Places left; a booking is allowed only when this is above zero

        Raises:
            SchedulingError: NOT_FOUND if the location is not in the tenant
        """
        location = await tx.get_location(tenant_id, location_id)
        if location is None:
            raise SchedulingError.not_found("Location")
        booked = await tx.count_active_in_slot(
            tenant_id, location_id, day, slot_time, exclude_id=exclude_id
        )
        return self.remaining(self.capacity_for(location), booked)
