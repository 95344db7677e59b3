"""In-process appointment store.

Used by the test suite and by ``STORE_BACKEND=memory`` for local development.
Transactions are serialised behind a single :class:`asyncio.Lock`, so the
``lock_*`` methods have nothing left to do. Writes are staged on a snapshot
and only become visible when the transaction block exits cleanly.
"""

import asyncio
import copy
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import date, datetime, time
from uuid import UUID

from cin_agenda.schemas.appointments import (
    Appointment,
    AppointmentFilters,
    AppointmentStatus,
    CancellationRecord,
)
from cin_agenda.schemas.blocked_dates import BlockedDate
from cin_agenda.schemas.cpf_blocks import CpfBlock
from cin_agenda.schemas.locations import Location, LocationCreate


@dataclass
class _State:
    locations: dict[int, Location] = field(default_factory=dict)
    appointments: dict[UUID, Appointment] = field(default_factory=dict)
    blocked_dates: dict[UUID, BlockedDate] = field(default_factory=dict)
    cancellations: list[CancellationRecord] = field(default_factory=list)
    cpf_blocks: list[CpfBlock] = field(default_factory=list)
    next_location_id: int = 1


class MemoryStoreSession:
    """Store operations over a staged copy of the in-process state."""

    def __init__(self, state: _State):
        self.state = state

    async def lock_citizen(self, tenant_id: int, cpf: str) -> None:
        return None

    async def lock_calendar_day(self, tenant_id: int, day: date, exclusive: bool = False) -> None:
        return None

    async def lock_slot(
        self, tenant_id: int, location_id: int, day: date, slot_time: time
    ) -> None:
        return None

    # Locations

    async def get_location(self, tenant_id: int, location_id: int) -> Location | None:
        location = self.state.locations.get(location_id)
        if location is None or location.tenant_id != tenant_id:
            return None
        return location.model_copy(deep=True)

    async def location_owner(self, location_id: int) -> int | None:
        location = self.state.locations.get(location_id)
        return location.tenant_id if location else None

    async def insert_location(
        self, tenant_id: int, data: LocationCreate, created_at: datetime
    ) -> Location:
        location = Location(
            id=self.state.next_location_id,
            tenant_id=tenant_id,
            created_at=created_at,
            **data.model_dump(),
        )
        self.state.next_location_id += 1
        self.state.locations[location.id] = location
        return location.model_copy(deep=True)

    async def list_locations(self, tenant_id: int) -> list[Location]:
        found = [loc for loc in self.state.locations.values() if loc.tenant_id == tenant_id]
        return [loc.model_copy(deep=True) for loc in sorted(found, key=lambda loc: loc.name)]

    # Appointments

    async def get_appointment(
        self, tenant_id: int, appointment_id: UUID, for_update: bool = False
    ) -> Appointment | None:
        appointment = self.state.appointments.get(appointment_id)
        if appointment is None or appointment.tenant_id != tenant_id:
            return None
        return appointment.model_copy(deep=True)

    async def appointment_owner(self, appointment_id: UUID) -> int | None:
        appointment = self.state.appointments.get(appointment_id)
        return appointment.tenant_id if appointment else None

    async def list_appointments(
        self, tenant_id: int, filters: AppointmentFilters
    ) -> tuple[int, list[Appointment]]:
        def matches(a: Appointment) -> bool:
            if a.tenant_id != tenant_id:
                return False
            if filters.status and a.status != filters.status:
                return False
            if filters.location_id and a.location_id != filters.location_id:
                return False
            if filters.cpf and a.cpf != filters.cpf:
                return False
            if filters.from_date and a.date < filters.from_date:
                return False
            if filters.to_date and a.date > filters.to_date:
                return False
            return True

        found = sorted(
            (a for a in self.state.appointments.values() if matches(a)),
            key=lambda a: (a.date, a.time),
        )
        offset = (filters.page - 1) * filters.page_size
        page = found[offset : offset + filters.page_size]
        return len(found), [a.model_copy(deep=True) for a in page]

    async def list_appointments_for_cpf(self, tenant_id: int, cpf: str) -> list[Appointment]:
        return [
            a.model_copy(deep=True)
            for a in self.state.appointments.values()
            if a.tenant_id == tenant_id and a.cpf == cpf
        ]

    async def count_active_in_slot(
        self,
        tenant_id: int,
        location_id: int,
        day: date,
        slot_time: time,
        exclude_id: UUID | None = None,
    ) -> int:
        return sum(
            1
            for a in self.state.appointments.values()
            if a.tenant_id == tenant_id
            and a.location_id == location_id
            and a.date == day
            and a.time == slot_time
            and a.status != AppointmentStatus.CANCELLED
            and a.id != exclude_id
        )

    async def count_active_by_time(
        self, tenant_id: int, location_id: int, day: date
    ) -> dict[time, int]:
        counts: dict[time, int] = {}
        for a in self.state.appointments.values():
            if (
                a.tenant_id == tenant_id
                and a.location_id == location_id
                and a.date == day
                and a.status != AppointmentStatus.CANCELLED
            ):
                counts[a.time] = counts.get(a.time, 0) + 1
        return counts

    async def insert_appointment(self, appointment: Appointment) -> Appointment:
        self.state.appointments[appointment.id] = appointment.model_copy(deep=True)
        return appointment

    async def update_appointment(self, appointment: Appointment) -> Appointment:
        self.state.appointments[appointment.id] = appointment.model_copy(deep=True)
        return appointment

    async def delete_appointment(self, tenant_id: int, appointment_id: UUID) -> bool:
        appointment = self.state.appointments.get(appointment_id)
        if appointment is None or appointment.tenant_id != tenant_id:
            return False
        del self.state.appointments[appointment_id]
        return True

    # Blocked dates

    async def list_blocked_dates(
        self, tenant_id: int, from_date: date | None = None, to_date: date | None = None
    ) -> list[BlockedDate]:
        found = [
            b
            for b in self.state.blocked_dates.values()
            if b.tenant_id == tenant_id
            and (from_date is None or b.date >= from_date)
            and (to_date is None or b.date <= to_date)
        ]
        return [b.model_copy(deep=True) for b in sorted(found, key=lambda b: b.date)]

    async def get_blocked_date(self, tenant_id: int, block_id: UUID) -> BlockedDate | None:
        block = self.state.blocked_dates.get(block_id)
        if block is None or block.tenant_id != tenant_id:
            return None
        return block.model_copy(deep=True)

    async def blocked_date_owner(self, block_id: UUID) -> int | None:
        block = self.state.blocked_dates.get(block_id)
        return block.tenant_id if block else None

    async def insert_blocked_date(self, block: BlockedDate) -> BlockedDate:
        self.state.blocked_dates[block.id] = block.model_copy(deep=True)
        return block

    async def delete_blocked_date(self, tenant_id: int, block_id: UUID) -> bool:
        block = self.state.blocked_dates.get(block_id)
        if block is None or block.tenant_id != tenant_id:
            return False
        del self.state.blocked_dates[block_id]
        return True

    # Cancellation ledger

    async def insert_cancellation(self, record: CancellationRecord) -> CancellationRecord:
        self.state.cancellations.append(record.model_copy(deep=True))
        return record

    async def count_cancellations_since(self, tenant_id: int, cpf: str, since: datetime) -> int:
        return sum(
            1
            for r in self.state.cancellations
            if r.tenant_id == tenant_id and r.cpf == cpf and r.cancelled_at >= since
        )

    async def latest_cancellation(
        self, tenant_id: int, appointment_id: UUID
    ) -> CancellationRecord | None:
        found = [
            r
            for r in self.state.cancellations
            if r.tenant_id == tenant_id and r.appointment_id == appointment_id
        ]
        if not found:
            return None
        return max(found, key=lambda r: r.cancelled_at).model_copy(deep=True)

    # CPF blocks

    async def get_active_cpf_block(
        self, tenant_id: int, cpf: str, now: datetime
    ) -> CpfBlock | None:
        found = [
            b
            for b in self.state.cpf_blocks
            if b.tenant_id == tenant_id and b.cpf == cpf and b.active and b.blocked_until > now
        ]
        if not found:
            return None
        return max(found, key=lambda b: b.blocked_at).model_copy(deep=True)

    async def deactivate_cpf_blocks(self, tenant_id: int, cpf: str) -> int:
        count = 0
        for block in self.state.cpf_blocks:
            if block.tenant_id == tenant_id and block.cpf == cpf and block.active:
                block.active = False
                count += 1
        return count

    async def insert_cpf_block(self, block: CpfBlock) -> CpfBlock:
        self.state.cpf_blocks.append(block.model_copy(deep=True))
        return block


class MemoryAppointmentStore:
    """Appointment store kept in process memory."""

    def __init__(self) -> None:
        self._state = _State()
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[MemoryStoreSession]:
        """Serialise the block and publish its writes only on success."""
        async with self._lock:
            staged = copy.deepcopy(self._state)
            yield MemoryStoreSession(staged)
            self._state = staged

    async def close(self) -> None:
        return None
