"""Appointment store interface.

Every method is scoped by ``tenant_id``; the only exceptions are the
``*_owner`` lookups, which return nothing but the owning tenant id so callers
can tell "not found" apart from "belongs to another tenant".

Mutating flows run inside :meth:`AppointmentStore.transaction`. The ``lock_*``
methods serialise competing transactions on the same citizen, calendar day or
slot until the transaction ends; callers acquire them in the order
appointment row, citizen, calendar day, slot.
"""

from contextlib import AbstractAsyncContextManager
from datetime import date, datetime, time
from typing import Protocol
from uuid import UUID

from cin_agenda.schemas.appointments import Appointment, AppointmentFilters, CancellationRecord
from cin_agenda.schemas.blocked_dates import BlockedDate
from cin_agenda.schemas.cpf_blocks import CpfBlock
from cin_agenda.schemas.locations import Location, LocationCreate


class StoreSession(Protocol):
    """Operations available inside one store transaction."""

    # Locks
    async def lock_citizen(self, tenant_id: int, cpf: str) -> None: ...

    async def lock_calendar_day(
        self, tenant_id: int, day: date, exclusive: bool = False
    ) -> None: ...

    async def lock_slot(
        self, tenant_id: int, location_id: int, day: date, slot_time: time
    ) -> None: ...

    # Locations
    async def get_location(self, tenant_id: int, location_id: int) -> Location | None: ...

    async def location_owner(self, location_id: int) -> int | None: ...

    async def insert_location(
        self, tenant_id: int, data: LocationCreate, created_at: datetime
    ) -> Location: ...

    async def list_locations(self, tenant_id: int) -> list[Location]: ...

    # Appointments
    async def get_appointment(
        self, tenant_id: int, appointment_id: UUID, for_update: bool = False
    ) -> Appointment | None: ...

    async def appointment_owner(self, appointment_id: UUID) -> int | None: ...

    async def list_appointments(
        self, tenant_id: int, filters: AppointmentFilters
    ) -> tuple[int, list[Appointment]]: ...

    async def list_appointments_for_cpf(self, tenant_id: int, cpf: str) -> list[Appointment]: ...

    async def count_active_in_slot(
        self,
        tenant_id: int,
        location_id: int,
        day: date,
        slot_time: time,
        exclude_id: UUID | None = None,
    ) -> int: ...

    async def count_active_by_time(
        self, tenant_id: int, location_id: int, day: date
    ) -> dict[time, int]: ...

    async def insert_appointment(self, appointment: Appointment) -> Appointment: ...

    async def update_appointment(self, appointment: Appointment) -> Appointment: ...

    async def delete_appointment(self, tenant_id: int, appointment_id: UUID) -> bool: ...

    # Blocked dates
    async def list_blocked_dates(
        self, tenant_id: int, from_date: date | None = None, to_date: date | None = None
    ) -> list[BlockedDate]: ...

    async def get_blocked_date(self, tenant_id: int, block_id: UUID) -> BlockedDate | None: ...

    async def blocked_date_owner(self, block_id: UUID) -> int | None: ...

    async def insert_blocked_date(self, block: BlockedDate) -> BlockedDate: ...

    async def delete_blocked_date(self, tenant_id: int, block_id: UUID) -> bool: ...

    # Cancellation ledger
    async def insert_cancellation(self, record: CancellationRecord) -> CancellationRecord: ...

    async def count_cancellations_since(
        self, tenant_id: int, cpf: str, since: datetime
    ) -> int: ...

    async def latest_cancellation(
        self, tenant_id: int, appointment_id: UUID
    ) -> CancellationRecord | None: ...

    # CPF blocks
    async def get_active_cpf_block(
        self, tenant_id: int, cpf: str, now: datetime
    ) -> CpfBlock | None: ...

    async def deactivate_cpf_blocks(self, tenant_id: int, cpf: str) -> int: ...

    async def insert_cpf_block(self, block: CpfBlock) -> CpfBlock: ...


class AppointmentStore(Protocol):
    """Transactional persistence for the scheduling core."""

    def transaction(self) -> AbstractAsyncContextManager[StoreSession]:
        """
        Open an atomic unit of work.

        Everything done through the yielded session commits together when the
        block exits normally and rolls back if it raises.
        """
        ...

    async def close(self) -> None:
        """Release resources held by the store."""
        ...
