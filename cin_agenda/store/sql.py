"""PostgreSQL appointment store built on SQLAlchemy Core."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import date, datetime, time
from enum import Enum
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import and_, delete, func, insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cin_agenda.core.exceptions import ErrorKind, SchedulingError
from cin_agenda.models.appointments import appointments
from cin_agenda.models.blocked_dates import blocked_dates
from cin_agenda.models.cancellations import cancellation_records, cpf_blocks
from cin_agenda.models.locations import locations
from cin_agenda.schemas.appointments import (
    Appointment,
    AppointmentFilters,
    AppointmentStatus,
    CancellationRecord,
)
from cin_agenda.schemas.blocked_dates import BlockedDate
from cin_agenda.schemas.cpf_blocks import CpfBlock
from cin_agenda.schemas.locations import Location, LocationCreate

logger = structlog.get_logger(__name__)


def _plain(values: dict[str, Any]) -> dict[str, Any]:
    """Replace enum members with their raw values."""
    return {k: v.value if isinstance(v, Enum) else v for k, v in values.items()}


def _hhmm(value: time) -> str:
    return value.strftime("%H:%M")


def _appointment_values(appointment: Appointment) -> dict[str, Any]:
    values = _plain(appointment.model_dump(exclude={"status_history"}))
    values["status_history"] = [
        entry.model_dump(mode="json") for entry in appointment.status_history
    ]
    return values


class SqlStoreSession:
    """Store operations bound to one database transaction."""

    def __init__(self, db: AsyncSession):
        """Initialize with a session that already has a transaction open."""
        self.db = db

    async def _advisory_lock(self, key: str, shared: bool = False) -> None:
        lock_fn = func.pg_advisory_xact_lock_shared if shared else func.pg_advisory_xact_lock
        await self.db.execute(select(lock_fn(func.hashtext(key))))

    # ------------------------------------------------------------------ locks

    async def lock_citizen(self, tenant_id: int, cpf: str) -> None:
        await self._advisory_lock(f"citizen:{tenant_id}:{cpf}")

    async def lock_calendar_day(self, tenant_id: int, day: date, exclusive: bool = False) -> None:
        await self._advisory_lock(f"calendar:{tenant_id}:{day.isoformat()}", shared=not exclusive)

    async def lock_slot(
        self, tenant_id: int, location_id: int, day: date, slot_time: time
    ) -> None:
        await self._advisory_lock(
            f"slot:{tenant_id}:{location_id}:{day.isoformat()}:{_hhmm(slot_time)}"
        )

    # -------------------------------------------------------------- locations

    async def get_location(self, tenant_id: int, location_id: int) -> Location | None:
        stmt = select(locations).where(
            and_(locations.c.id == location_id, locations.c.tenant_id == tenant_id)
        )
        row = (await self.db.execute(stmt)).mappings().first()
        return Location.model_validate(dict(row)) if row else None

    async def location_owner(self, location_id: int) -> int | None:
        stmt = select(locations.c.tenant_id).where(locations.c.id == location_id)
        return (await self.db.execute(stmt)).scalar()

    async def insert_location(
        self, tenant_id: int, data: LocationCreate, created_at: datetime
    ) -> Location:
        stmt = (
            insert(locations)
            .values(
                tenant_id=tenant_id,
                name=data.name,
                address=data.address,
                max_appointments_per_slot=data.max_appointments_per_slot,
                working_hours=[_hhmm(t) for t in data.working_hours]
                if data.working_hours is not None
                else None,
                created_at=created_at,
            )
            .returning(locations)
        )
        row = (await self.db.execute(stmt)).mappings().one()
        return Location.model_validate(dict(row))

    async def list_locations(self, tenant_id: int) -> list[Location]:
        stmt = (
            select(locations)
            .where(locations.c.tenant_id == tenant_id)
            .order_by(locations.c.name)
        )
        rows = (await self.db.execute(stmt)).mappings().all()
        return [Location.model_validate(dict(row)) for row in rows]

    # ----------------------------------------------------------- appointments

    async def get_appointment(
        self, tenant_id: int, appointment_id: UUID, for_update: bool = False
    ) -> Appointment | None:
        stmt = select(appointments).where(
            and_(
                appointments.c.id == appointment_id,
                appointments.c.tenant_id == tenant_id,
            )
        )
        if for_update:
            stmt = stmt.with_for_update()
        row = (await self.db.execute(stmt)).mappings().first()
        return Appointment.model_validate(dict(row)) if row else None

    async def appointment_owner(self, appointment_id: UUID) -> int | None:
        stmt = select(appointments.c.tenant_id).where(appointments.c.id == appointment_id)
        return (await self.db.execute(stmt)).scalar()

    async def list_appointments(
        self, tenant_id: int, filters: AppointmentFilters
    ) -> tuple[int, list[Appointment]]:
        conditions = [appointments.c.tenant_id == tenant_id]

        if filters.status:
            conditions.append(appointments.c.status == filters.status.value)

        if filters.location_id:
            conditions.append(appointments.c.location_id == filters.location_id)

        if filters.cpf:
            conditions.append(appointments.c.cpf == filters.cpf)

        if filters.from_date:
            conditions.append(appointments.c.date >= filters.from_date)

        if filters.to_date:
            conditions.append(appointments.c.date <= filters.to_date)

        count_stmt = select(func.count()).select_from(appointments).where(and_(*conditions))
        total = (await self.db.execute(count_stmt)).scalar() or 0

        offset = (filters.page - 1) * filters.page_size
        stmt = (
            select(appointments)
            .where(and_(*conditions))
            .order_by(appointments.c.date.asc(), appointments.c.time.asc())
            .limit(filters.page_size)
            .offset(offset)
        )
        rows = (await self.db.execute(stmt)).mappings().all()
        return total, [Appointment.model_validate(dict(row)) for row in rows]

    async def list_appointments_for_cpf(self, tenant_id: int, cpf: str) -> list[Appointment]:
        stmt = select(appointments).where(
            and_(appointments.c.tenant_id == tenant_id, appointments.c.cpf == cpf)
        )
        rows = (await self.db.execute(stmt)).mappings().all()
        return [Appointment.model_validate(dict(row)) for row in rows]

    async def count_active_in_slot(
        self,
        tenant_id: int,
        location_id: int,
        day: date,
        slot_time: time,
        exclude_id: UUID | None = None,
    ) -> int:
        conditions = [
            appointments.c.tenant_id == tenant_id,
            appointments.c.location_id == location_id,
            appointments.c.date == day,
            appointments.c.time == slot_time,
            appointments.c.status != AppointmentStatus.CANCELLED.value,
        ]
        if exclude_id is not None:
            conditions.append(appointments.c.id != exclude_id)
        stmt = select(func.count()).select_from(appointments).where(and_(*conditions))
        return (await self.db.execute(stmt)).scalar() or 0

    async def count_active_by_time(
        self, tenant_id: int, location_id: int, day: date
    ) -> dict[time, int]:
        stmt = (
            select(appointments.c.time, func.count())
            .where(
                and_(
                    appointments.c.tenant_id == tenant_id,
                    appointments.c.location_id == location_id,
                    appointments.c.date == day,
                    appointments.c.status != AppointmentStatus.CANCELLED.value,
                )
            )
            .group_by(appointments.c.time)
        )
        rows = (await self.db.execute(stmt)).all()
        return {row[0]: row[1] for row in rows}

    async def insert_appointment(self, appointment: Appointment) -> Appointment:
        stmt = (
            insert(appointments)
            .values(**_appointment_values(appointment))
            .returning(appointments)
        )
        row = (await self.db.execute(stmt)).mappings().one()
        return Appointment.model_validate(dict(row))

    async def update_appointment(self, appointment: Appointment) -> Appointment:
        values = _appointment_values(appointment)
        values.pop("id")
        values.pop("tenant_id")
        stmt = (
            update(appointments)
            .where(
                and_(
                    appointments.c.id == appointment.id,
                    appointments.c.tenant_id == appointment.tenant_id,
                )
            )
            .values(**values)
            .returning(appointments)
        )
        row = (await self.db.execute(stmt)).mappings().one()
        return Appointment.model_validate(dict(row))

    async def delete_appointment(self, tenant_id: int, appointment_id: UUID) -> bool:
        stmt = delete(appointments).where(
            and_(appointments.c.id == appointment_id, appointments.c.tenant_id == tenant_id)
        )
        result = await self.db.execute(stmt)
        return result.rowcount > 0

    # ---------------------------------------------------------- blocked dates

    @staticmethod
    def _blocked_date(row: Any) -> BlockedDate:
        return BlockedDate.model_validate(dict(row))

    async def list_blocked_dates(
        self, tenant_id: int, from_date: date | None = None, to_date: date | None = None
    ) -> list[BlockedDate]:
        conditions = [blocked_dates.c.tenant_id == tenant_id]
        if from_date:
            conditions.append(blocked_dates.c.date >= from_date)
        if to_date:
            conditions.append(blocked_dates.c.date <= to_date)
        stmt = select(blocked_dates).where(and_(*conditions)).order_by(blocked_dates.c.date.asc())
        rows = (await self.db.execute(stmt)).mappings().all()
        return [self._blocked_date(row) for row in rows]

    async def get_blocked_date(self, tenant_id: int, block_id: UUID) -> BlockedDate | None:
        stmt = select(blocked_dates).where(
            and_(blocked_dates.c.id == block_id, blocked_dates.c.tenant_id == tenant_id)
        )
        row = (await self.db.execute(stmt)).mappings().first()
        return self._blocked_date(row) if row else None

    async def blocked_date_owner(self, block_id: UUID) -> int | None:
        stmt = select(blocked_dates.c.tenant_id).where(blocked_dates.c.id == block_id)
        return (await self.db.execute(stmt)).scalar()

    async def insert_blocked_date(self, block: BlockedDate) -> BlockedDate:
        values = _plain(block.model_dump())
        values["blocked_slots"] = [_hhmm(t) for t in block.blocked_slots]
        stmt = insert(blocked_dates).values(**values).returning(blocked_dates)
        row = (await self.db.execute(stmt)).mappings().one()
        return self._blocked_date(row)

    async def delete_blocked_date(self, tenant_id: int, block_id: UUID) -> bool:
        stmt = delete(blocked_dates).where(
            and_(blocked_dates.c.id == block_id, blocked_dates.c.tenant_id == tenant_id)
        )
        result = await self.db.execute(stmt)
        return result.rowcount > 0

    # ----------------------------------------------------- cancellation ledger

    async def insert_cancellation(self, record: CancellationRecord) -> CancellationRecord:
        stmt = (
            insert(cancellation_records)
            .values(**_plain(record.model_dump()))
            .returning(cancellation_records)
        )
        row = (await self.db.execute(stmt)).mappings().one()
        return CancellationRecord.model_validate(dict(row))

    async def count_cancellations_since(self, tenant_id: int, cpf: str, since: datetime) -> int:
        stmt = (
            select(func.count())
            .select_from(cancellation_records)
            .where(
                and_(
                    cancellation_records.c.tenant_id == tenant_id,
                    cancellation_records.c.cpf == cpf,
                    cancellation_records.c.cancelled_at >= since,
                )
            )
        )
        return (await self.db.execute(stmt)).scalar() or 0

    async def latest_cancellation(
        self, tenant_id: int, appointment_id: UUID
    ) -> CancellationRecord | None:
        stmt = (
            select(cancellation_records)
            .where(
                and_(
                    cancellation_records.c.tenant_id == tenant_id,
                    cancellation_records.c.appointment_id == appointment_id,
                )
            )
            .order_by(cancellation_records.c.cancelled_at.desc())
            .limit(1)
        )
        row = (await self.db.execute(stmt)).mappings().first()
        return CancellationRecord.model_validate(dict(row)) if row else None

    # ------------------------------------------------------------- cpf blocks

    async def get_active_cpf_block(
        self, tenant_id: int, cpf: str, now: datetime
    ) -> CpfBlock | None:
        stmt = (
            select(cpf_blocks)
            .where(
                and_(
                    cpf_blocks.c.tenant_id == tenant_id,
                    cpf_blocks.c.cpf == cpf,
                    cpf_blocks.c.active.is_(True),
                    cpf_blocks.c.blocked_until > now,
                )
            )
            .order_by(cpf_blocks.c.blocked_at.desc())
            .limit(1)
        )
        row = (await self.db.execute(stmt)).mappings().first()
        return CpfBlock.model_validate(dict(row)) if row else None

    async def deactivate_cpf_blocks(self, tenant_id: int, cpf: str) -> int:
        stmt = (
            update(cpf_blocks)
            .where(
                and_(
                    cpf_blocks.c.tenant_id == tenant_id,
                    cpf_blocks.c.cpf == cpf,
                    cpf_blocks.c.active.is_(True),
                )
            )
            .values(active=False)
        )
        result = await self.db.execute(stmt)
        return result.rowcount

    async def insert_cpf_block(self, block: CpfBlock) -> CpfBlock:
        stmt = insert(cpf_blocks).values(**block.model_dump()).returning(cpf_blocks)
        row = (await self.db.execute(stmt)).mappings().one()
        return CpfBlock.model_validate(dict(row))


class SqlAppointmentStore:
    """Appointment store backed by PostgreSQL."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        """Initialize store with a session factory."""
        self.session_factory = session_factory

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[SqlStoreSession]:
        """Run the block in one database transaction."""
        async with self.session_factory() as session:
            try:
                async with session.begin():
                    yield SqlStoreSession(session)
            except SQLAlchemyError as e:
                logger.error("store_transaction_failed", error=str(e), exc_info=True)
                raise SchedulingError(ErrorKind.STORAGE_ERROR) from e

    async def close(self) -> None:
        """Dispose of the engine behind the session factory."""
        bind = self.session_factory.kw.get("bind")
        if bind is not None:
            await bind.dispose()
