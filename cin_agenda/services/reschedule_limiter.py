"""Per-citizen reschedule rate limit."""

from datetime import timedelta

import structlog

from cin_agenda.core.clock import Clock, utc_now
from cin_agenda.core.exceptions import ErrorKind, SchedulingError
from cin_agenda.store.base import StoreSession

logger = structlog.get_logger(__name__)


class RescheduleLimiter:
    """
    Caps reschedules per (tenant, cpf) over a rolling window.

    Reschedules are counted from the status history of all the citizen's
    appointments, so the window is independent of the cancellation throttle.
    """

    def __init__(self, clock: Clock = utc_now, window_days: int = 7, max_per_window: int = 3):
        """Initialize limiter with its window and limit."""
        self.clock = clock
        self.window_days = window_days
        self.max_per_window = max_per_window

    async def count_recent(self, tx: StoreSession, tenant_id: int, cpf: str) -> int:
        """Reschedules of the citizen inside the window."""
        since = self.clock() - timedelta(days=self.window_days)
        appointments = await tx.list_appointments_for_cpf(tenant_id, cpf)
        return sum(
            1
            for appointment in appointments
            for entry in appointment.status_history
            if entry.is_reschedule and entry.changed_at >= since
        )

    async def ensure_allowed(self, tx: StoreSession, tenant_id: int, cpf: str) -> int:
        """
        Reject the reschedule when the citizen is already at the limit.

        Returns:
            Reschedules used inside the window

        Raises:
            SchedulingError: RESCHEDULE_LIMIT_EXCEEDED
        """
        count = await self.count_recent(tx, tenant_id, cpf)
        if count >= self.max_per_window:
            logger.info(
                "reschedule_limit_exceeded",
                tenant_id=tenant_id,
                reschedules=count,
                limit=self.max_per_window,
            )
            raise SchedulingError(
                ErrorKind.RESCHEDULE_LIMIT_EXCEEDED,
                f"At most {self.max_per_window} reschedules are allowed "
                f"every {self.window_days} days",
                {"limit": self.max_per_window, "window_days": self.window_days},
            )
        return count
