"""Temporary booking blocks for citizens who cancel repeatedly."""

from datetime import datetime, timedelta

import structlog

from cin_agenda.core.clock import Clock, utc_now
from cin_agenda.schemas.appointments import Appointment, CancellationRecord, CancelledBy
from cin_agenda.schemas.cpf_blocks import CpfBlock, CpfBlockStatus
from cin_agenda.store.base import AppointmentStore, StoreSession

logger = structlog.get_logger(__name__)


class CancellationThrottle:
    """
    Counts cancellations per (tenant, cpf) over a rolling window.

    Reaching the threshold inside the window replaces any active block of the
    citizen with a fresh one lasting ``block_days`` from the latest
    cancellation. Blocks expire on their own; there is no manual release.
    """

    def __init__(
        self,
        store: AppointmentStore,
        clock: Clock = utc_now,
        window_days: int = 7,
        threshold: int = 3,
        block_days: int = 7,
    ):
        """Initialize throttle with its window, threshold and block length."""
        self.store = store
        self.clock = clock
        self.window_days = window_days
        self.threshold = threshold
        self.block_days = block_days

    def window_start(self, now: datetime) -> datetime:
        """Earliest cancellation time still inside the window."""
        return now - timedelta(days=self.window_days)

    async def active_block(self, tx: StoreSession, tenant_id: int, cpf: str) -> CpfBlock | None:
        """The citizen's unexpired active block, if any."""
        return await tx.get_active_cpf_block(tenant_id, cpf, self.clock())

    async def count_recent(self, tx: StoreSession, tenant_id: int, cpf: str) -> int:
        """Cancellations of the citizen inside the window."""
        return await tx.count_cancellations_since(tenant_id, cpf, self.window_start(self.clock()))

    async def record_cancellation(
        self,
        tx: StoreSession,
        appointment: Appointment,
        cancelled_by: CancelledBy,
        reason: str | None,
        now: datetime,
    ) -> CpfBlock | None:
        """
        Append a cancellation to the ledger and block the citizen if needed.

        Must run in the same transaction as the status change to ``cancelled``.

        Returns:
            The new block when this cancellation reached the threshold
        """
        await tx.insert_cancellation(
            CancellationRecord(
                tenant_id=appointment.tenant_id,
                cpf=appointment.cpf,
                appointment_id=appointment.id,
                cancelled_at=now,
                cancelled_by=cancelled_by,
                reason=reason,
            )
        )

        count = await tx.count_cancellations_since(
            appointment.tenant_id, appointment.cpf, self.window_start(now)
        )
        if count < self.threshold:
            return None

        await tx.deactivate_cpf_blocks(appointment.tenant_id, appointment.cpf)
        block = await tx.insert_cpf_block(
            CpfBlock(
                tenant_id=appointment.tenant_id,
                cpf=appointment.cpf,
                blocked_at=now,
                blocked_until=now + timedelta(days=self.block_days),
                reason=(
                    f"Blocked automatically after {count} cancellations "
                    f"in {self.window_days} days"
                ),
                cancellation_count=count,
            )
        )
        logger.warning(
            "cpf_blocked",
            tenant_id=appointment.tenant_id,
            cancellation_count=count,
            blocked_until=block.blocked_until.isoformat(),
        )
        return block

    async def block_status(self, tenant_id: int, cpf: str) -> CpfBlockStatus:
        """Public block status of a citizen."""
        async with self.store.transaction() as tx:
            block = await self.active_block(tx, tenant_id, cpf)
            recent = await self.count_recent(tx, tenant_id, cpf)

        if block is None:
            return CpfBlockStatus(blocked=False, recent_cancellations=recent)
        return CpfBlockStatus(
            blocked=True,
            blocked_until=block.blocked_until,
            reason=block.reason,
            cancellation_count=block.cancellation_count,
            recent_cancellations=recent,
        )
