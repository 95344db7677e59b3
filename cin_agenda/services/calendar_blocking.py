"""Tenant-wide calendar blocks."""

from datetime import date, time
from uuid import UUID, uuid4

import structlog

from cin_agenda.core.clock import Clock, utc_now
from cin_agenda.core.exceptions import ErrorKind, SchedulingError
from cin_agenda.schemas.blocked_dates import BlockedDate, BlockedDateCreate, BlockType
from cin_agenda.services.collaborators import Actor, AuditTrailRecorder
from cin_agenda.store.base import AppointmentStore, StoreSession

logger = structlog.get_logger(__name__)


class CalendarBlockingRegistry:
    """
    Full-day and specific-time blocks per tenant and date.

    Blocks apply to every location of the tenant. They are immutable: an edit
    is a delete followed by a create.
    """

    def __init__(
        self,
        store: AppointmentStore,
        audit: AuditTrailRecorder,
        clock: Clock = utc_now,
    ):
        """Initialize registry with its store and audit recorder."""
        self.store = store
        self.audit = audit
        self.clock = clock

    async def blocks_on(self, tx: StoreSession, tenant_id: int, day: date) -> list[BlockedDate]:
        """All blocks of a tenant on a date."""
        return await tx.list_blocked_dates(tenant_id, from_date=day, to_date=day)

    async def is_slot_blocked(
        self, tx: StoreSession, tenant_id: int, day: date, slot_time: time
    ) -> bool:
        """Whether any block of the tenant rejects bookings at this date and time."""
        blocks = await self.blocks_on(tx, tenant_id, day)
        return any(block.blocks(slot_time) for block in blocks)

    async def list_blocks(
        self,
        tenant_id: int,
        from_date: date | None = None,
        to_date: date | None = None,
    ) -> list[BlockedDate]:
        """List the tenant's blocks in date order."""
        async with self.store.transaction() as tx:
            return await tx.list_blocked_dates(tenant_id, from_date=from_date, to_date=to_date)

    async def create_block(
        self,
        tenant_id: int,
        data: BlockedDateCreate,
        actor: Actor,
    ) -> BlockedDate:
        """
        Create a block.

        Takes the calendar day exclusively so that no booking on that date can
        commit between its own block check and its insert.
        """
        async with self.store.transaction() as tx:
            await tx.lock_calendar_day(tenant_id, data.date, exclusive=True)
            block = BlockedDate(
                id=uuid4(),
                tenant_id=tenant_id,
                date=data.date,
                block_type=data.block_type,
                blocked_slots=data.blocked_slots if data.block_type == BlockType.SPECIFIC_TIMES else [],
                reason=data.reason,
                created_by=actor.name,
                created_at=self.clock(),
            )
            created = await tx.insert_blocked_date(block)

        logger.info(
            "blocked_date_created",
            tenant_id=tenant_id,
            block_id=str(created.id),
            date=created.date.isoformat(),
            block_type=created.block_type.value,
        )
        await self._audit(actor, "blocked_date_created", None, created)
        return created

    async def delete_block(self, tenant_id: int, block_id: UUID, actor: Actor) -> BlockedDate:
        """
        Delete a block.

        Raises:
            SchedulingError: NOT_FOUND, or TENANT_MISMATCH if the block belongs
                to another tenant
        """
        async with self.store.transaction() as tx:
            block = await tx.get_blocked_date(tenant_id, block_id)
            if block is None:
                owner = await tx.blocked_date_owner(block_id)
                if owner is not None:
                    raise SchedulingError(ErrorKind.TENANT_MISMATCH)
                raise SchedulingError.not_found("Blocked date")
            await tx.lock_calendar_day(tenant_id, block.date, exclusive=True)
            await tx.delete_blocked_date(tenant_id, block_id)

        logger.info("blocked_date_deleted", tenant_id=tenant_id, block_id=str(block_id))
        await self._audit(actor, "blocked_date_deleted", block, None)
        return block

    async def _audit(
        self,
        actor: Actor,
        action: str,
        before: BlockedDate | None,
        after: BlockedDate | None,
    ) -> None:
        try:
            await self.audit.record(
                actor,
                action,
                before.model_dump(mode="json") if before else None,
                after.model_dump(mode="json") if after else None,
            )
        except Exception as e:
            logger.warning("audit_record_failed", action=action, error=str(e))
