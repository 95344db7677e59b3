"""Appointment service: every appointment mutation goes through here."""

import secrets
from datetime import date, datetime, time
from typing import Any
from uuid import UUID, uuid4

import structlog

from cin_agenda.core.clock import Clock, utc_now
from cin_agenda.core.exceptions import ErrorKind, SchedulingError
from cin_agenda.schemas.appointments import (
    Appointment,
    AppointmentCancel,
    AppointmentCreate,
    AppointmentDetailsUpdate,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentReschedule,
    AppointmentStatus,
    AppointmentStatusUpdate,
    CancellationRecord,
    CancelledBy,
    StatusHistoryEntry,
)
from cin_agenda.services.calendar_blocking import CalendarBlockingRegistry
from cin_agenda.services.cancellation_throttle import CancellationThrottle
from cin_agenda.services.collaborators import (
    NOTIFIED_TRANSITIONS,
    Actor,
    ActorKind,
    AuditTrailRecorder,
    NotificationDispatcher,
    TransitionKind,
)
from cin_agenda.services.reschedule_limiter import RescheduleLimiter
from cin_agenda.services.slot_availability import SlotAvailabilityCalculator
from cin_agenda.services.status_transitions import (
    TERMINAL_STATUSES,
    check_reschedule,
    check_transition,
    next_changed_at,
)
from cin_agenda.store.base import AppointmentStore, StoreSession

logger = structlog.get_logger(__name__)

# Transition kind reported for each resting status reached by a status change
_TRANSITION_KINDS = {
    AppointmentStatus.CONFIRMED: TransitionKind.CONFIRMED,
    AppointmentStatus.AWAITING_ISSUANCE: TransitionKind.COMPLETED,
    AppointmentStatus.CIN_READY: TransitionKind.CIN_READY,
    AppointmentStatus.CIN_DELIVERED: TransitionKind.CIN_DELIVERED,
}


def generate_protocol(now: datetime) -> str:
    """Human-readable booking code, e.g. ``20250310-9F2A41C0``."""
    return f"{now:%Y%m%d}-{secrets.token_hex(4).upper()}"


class AppointmentService:
    """
    Service for managing appointments.

    Each mutating operation runs in one store transaction that takes its locks
    in the order appointment row, citizen, calendar day, slot, validates
    everything, and only then writes. Audit and notification calls happen after
    the commit and never fail the operation.
    """

    def __init__(
        self,
        store: AppointmentStore,
        calculator: SlotAvailabilityCalculator,
        registry: CalendarBlockingRegistry,
        throttle: CancellationThrottle,
        limiter: RescheduleLimiter,
        notifier: NotificationDispatcher,
        audit: AuditTrailRecorder,
        clock: Clock = utc_now,
    ):
        """Initialize service with its store and collaborators."""
        self.store = store
        self.calculator = calculator
        self.registry = registry
        self.throttle = throttle
        self.limiter = limiter
        self.notifier = notifier
        self.audit = audit
        self.clock = clock

    async def create_appointment(
        self,
        tenant_id: int,
        data: AppointmentCreate,
        actor: Actor | None = None,
    ) -> Appointment:
        """
        Book a new appointment.

        Args:
            tenant_id: Tenant scope
            data: Citizen and slot data
            actor: Who is booking; defaults to the citizen

        Returns:
            Created appointment with status ``pending``

        Raises:
            SchedulingError: NOT_FOUND / TENANT_MISMATCH for the location,
                CPF_BLOCKED, DATE_BLOCKED or SLOT_UNAVAILABLE
        """
        actor = actor or Actor.citizen(data.full_name)

        async with self.store.transaction() as tx:
            location = await tx.get_location(tenant_id, data.location_id)
            if location is None or not location.is_active:
                if location is None and await tx.location_owner(data.location_id) is not None:
                    raise SchedulingError(ErrorKind.TENANT_MISMATCH)
                raise SchedulingError.not_found("Location")

            await tx.lock_citizen(tenant_id, data.cpf)
            block = await self.throttle.active_block(tx, tenant_id, data.cpf)
            if block is not None:
                logger.info(
                    "booking_rejected_cpf_blocked",
                    tenant_id=tenant_id,
                    blocked_until=block.blocked_until.isoformat(),
                )
                raise SchedulingError(
                    ErrorKind.CPF_BLOCKED,
                    details={
                        "blocked_until": block.blocked_until.isoformat(),
                        "reason": block.reason,
                    },
                )

            await self._ensure_slot_bookable(
                tx, tenant_id, data.location_id, data.date, data.time
            )

            now = self.clock()
            appointment = Appointment(
                id=uuid4(),
                tenant_id=tenant_id,
                protocol=generate_protocol(now),
                status=AppointmentStatus.PENDING,
                status_history=[
                    StatusHistoryEntry(
                        from_status=None,
                        to_status=AppointmentStatus.PENDING,
                        changed_by=actor.name,
                        changed_at=now,
                        reason="Appointment created",
                    )
                ],
                created_at=now,
                last_modified=now,
                **data.model_dump(),
            )
            created = await tx.insert_appointment(appointment)

        logger.info(
            "appointment_created",
            tenant_id=tenant_id,
            appointment_id=str(created.id),
            protocol=created.protocol,
            location_id=created.location_id,
            date=created.date.isoformat(),
            time=created.time.strftime("%H:%M"),
        )
        await self._after_commit(actor, "appointment_created", None, created, TransitionKind.CREATED)
        return created

    async def get_appointment(self, tenant_id: int, appointment_id: UUID) -> Appointment:
        """
        Get appointment by ID.

        Raises:
            SchedulingError: NOT_FOUND or TENANT_MISMATCH
        """
        async with self.store.transaction() as tx:
            return await self._require_appointment(tx, tenant_id, appointment_id)

    async def list_appointments(
        self,
        tenant_id: int,
        filters: AppointmentFilters,
    ) -> AppointmentListResponse:
        """List a tenant's appointments with filtering and pagination."""
        async with self.store.transaction() as tx:
            total, items = await tx.list_appointments(tenant_id, filters)

        return AppointmentListResponse(
            total=total,
            page=filters.page,
            page_size=filters.page_size,
            items=items,
        )

    async def change_status(
        self,
        tenant_id: int,
        appointment_id: UUID,
        data: AppointmentStatusUpdate,
        actor: Actor,
    ) -> Appointment:
        """
        Advance an appointment through the issuance workflow.

        A ``completed`` (or ``awaiting-issuance``) request is stored as
        ``awaiting-issuance`` with two chained history entries. A ``cancelled``
        request goes through :meth:`cancel` so the throttle sees it.

        Raises:
            SchedulingError: INVALID_TRANSITION, NOT_FOUND or TENANT_MISMATCH
        """
        if data.status == AppointmentStatus.CANCELLED:
            return await self.cancel(
                tenant_id,
                appointment_id,
                actor,
                reason=data.reason,
                cancelled_by=CancelledBy.STAFF,
                metadata=data.metadata,
                idempotent=False,
            )

        async with self.store.transaction() as tx:
            appointment = await self._require_appointment(
                tx, tenant_id, appointment_id, for_update=True
            )
            before = appointment.model_copy(deep=True)
            target = check_transition(appointment.status, data.status)
            now = self.clock()
            metadata = dict(data.metadata or {})

            if target == AppointmentStatus.COMPLETED:
                self._append_history(
                    appointment, AppointmentStatus.COMPLETED, actor, now, data.reason, metadata
                )
                self._append_history(
                    appointment,
                    AppointmentStatus.AWAITING_ISSUANCE,
                    actor,
                    now,
                    data.reason,
                    {**metadata, "completed": True},
                )
                appointment.status = AppointmentStatus.AWAITING_ISSUANCE
                appointment.completed_at = now
                appointment.completed_by = actor.name
            else:
                self._append_history(appointment, target, actor, now, data.reason, metadata)
                appointment.status = target

            appointment.last_modified = now
            updated = await tx.update_appointment(appointment)

        logger.info(
            "appointment_status_changed",
            tenant_id=tenant_id,
            appointment_id=str(appointment_id),
            from_status=before.status.value,
            to_status=updated.status.value,
        )
        await self._after_commit(
            actor,
            "appointment_status_changed",
            before,
            updated,
            _TRANSITION_KINDS.get(updated.status),
        )
        return updated

    async def reschedule(
        self,
        tenant_id: int,
        appointment_id: UUID,
        data: AppointmentReschedule,
        actor: Actor,
    ) -> Appointment:
        """
        Move an appointment to a new date and time.

        The appointment returns to ``pending`` and the history entry records the
        old and new date/time. Nothing is modified when any check fails.

        Raises:
            SchedulingError: INVALID_TRANSITION for terminal appointments,
                RESCHEDULE_LIMIT_EXCEEDED, DATE_BLOCKED, SLOT_UNAVAILABLE,
                NOT_FOUND or TENANT_MISMATCH
        """
        async with self.store.transaction() as tx:
            appointment = await self._require_appointment(
                tx, tenant_id, appointment_id, for_update=True
            )
            check_reschedule(appointment.status)
            before = appointment.model_copy(deep=True)

            await tx.lock_citizen(tenant_id, appointment.cpf)
            await self.limiter.ensure_allowed(tx, tenant_id, appointment.cpf)
            await self._ensure_slot_bookable(
                tx,
                tenant_id,
                appointment.location_id,
                data.date,
                data.time,
                exclude_id=appointment.id,
            )

            now = self.clock()
            self._append_history(
                appointment,
                AppointmentStatus.PENDING,
                actor,
                now,
                data.reason or "Appointment rescheduled",
                {
                    "old_date": appointment.date.isoformat(),
                    "old_time": appointment.time.strftime("%H:%M"),
                    "new_date": data.date.isoformat(),
                    "new_time": data.time.strftime("%H:%M"),
                },
            )
            appointment.status = AppointmentStatus.PENDING
            appointment.date = data.date
            appointment.time = data.time
            appointment.last_modified = now
            updated = await tx.update_appointment(appointment)

        logger.info(
            "appointment_rescheduled",
            tenant_id=tenant_id,
            appointment_id=str(appointment_id),
            old_date=before.date.isoformat(),
            new_date=updated.date.isoformat(),
        )
        await self._after_commit(
            actor, "appointment_rescheduled", before, updated, TransitionKind.RESCHEDULED
        )
        return updated

    async def cancel(
        self,
        tenant_id: int,
        appointment_id: UUID,
        actor: Actor,
        reason: str | None = None,
        cancelled_by: CancelledBy | None = None,
        metadata: dict[str, Any] | None = None,
        expected_cpf: str | None = None,
        idempotent: bool = True,
    ) -> Appointment:
        """
        Cancel an appointment and feed the cancellation throttle.

        Cancelling an already cancelled appointment returns it unchanged and
        records nothing, unless ``idempotent`` is off.

        Args:
            tenant_id: Tenant scope
            appointment_id: Appointment to cancel
            actor: Who is cancelling
            reason: Free-form reason
            cancelled_by: Citizen or staff; derived from the actor when omitted
            metadata: Extra history metadata (e.g. cancellation category)
            expected_cpf: For self-service cancels, the CPF the citizen typed;
                a mismatch is reported as NOT_FOUND
            idempotent: Return an already cancelled appointment as is; when
                off it is an INVALID_TRANSITION like any other terminal state

        Raises:
            SchedulingError: INVALID_TRANSITION for delivered appointments,
                NOT_FOUND or TENANT_MISMATCH
        """
        if cancelled_by is None:
            cancelled_by = (
                CancelledBy.CITIZEN if actor.kind == ActorKind.CITIZEN else CancelledBy.STAFF
            )

        async with self.store.transaction() as tx:
            try:
                appointment = await self._require_appointment(
                    tx, tenant_id, appointment_id, for_update=True
                )
            except SchedulingError as e:
                # Self-service callers never learn that an id exists elsewhere
                if expected_cpf is not None and e.kind == ErrorKind.TENANT_MISMATCH:
                    raise SchedulingError.not_found("Appointment") from None
                raise
            if expected_cpf is not None and appointment.cpf != expected_cpf:
                raise SchedulingError.not_found("Appointment")
            if appointment.status == AppointmentStatus.CANCELLED and idempotent:
                return appointment
            if appointment.status in TERMINAL_STATUSES:
                raise SchedulingError.invalid_transition(
                    appointment.status.value, AppointmentStatus.CANCELLED.value
                )

            before = appointment.model_copy(deep=True)
            await tx.lock_citizen(tenant_id, appointment.cpf)

            now = self.clock()
            self._append_history(
                appointment,
                AppointmentStatus.CANCELLED,
                actor,
                now,
                reason,
                {**(metadata or {}), "cancelled_by": cancelled_by.value},
            )
            appointment.status = AppointmentStatus.CANCELLED
            appointment.cancelled_by = cancelled_by
            appointment.cancellation_reason = reason
            appointment.last_modified = now
            updated = await tx.update_appointment(appointment)
            block = await self.throttle.record_cancellation(
                tx, updated, cancelled_by, reason, updated.last_modified
            )

        logger.info(
            "appointment_cancelled",
            tenant_id=tenant_id,
            appointment_id=str(appointment_id),
            cancelled_by=cancelled_by.value,
            cpf_blocked=block is not None,
        )
        await self._after_commit(
            actor, "appointment_cancelled", before, updated, TransitionKind.CANCELLED
        )
        return updated

    async def cancel_by_staff(
        self,
        tenant_id: int,
        appointment_id: UUID,
        data: AppointmentCancel,
        actor: Actor,
    ) -> Appointment:
        """Staff cancellation with a categorised reason."""
        return await self.cancel(
            tenant_id,
            appointment_id,
            actor,
            reason=data.reason,
            cancelled_by=CancelledBy.STAFF,
            metadata={"category": data.category.value},
        )

    async def update_details(
        self,
        tenant_id: int,
        appointment_id: UUID,
        data: AppointmentDetailsUpdate,
        actor: Actor,
    ) -> Appointment:
        """
        Edit contact data, priority or notes.

        Status, date and time are never touched here.
        """
        changes = data.model_dump(exclude_unset=True)

        async with self.store.transaction() as tx:
            appointment = await self._require_appointment(
                tx, tenant_id, appointment_id, for_update=True
            )
            if not changes:
                return appointment
            before = appointment.model_copy(deep=True)
            updated = Appointment.model_validate(
                {**appointment.model_dump(), **changes, "last_modified": self.clock()}
            )
            updated = await tx.update_appointment(updated)

        logger.info(
            "appointment_updated",
            tenant_id=tenant_id,
            appointment_id=str(appointment_id),
            fields=sorted(changes),
        )
        await self._after_commit(actor, "appointment_updated", before, updated)
        return updated

    async def delete_appointment(
        self,
        tenant_id: int,
        appointment_id: UUID,
        actor: Actor,
    ) -> None:
        """
        Permanently delete an appointment.

        The cancellation ledger is kept, so a deleted appointment still counts
        towards the citizen's throttle.
        """
        async with self.store.transaction() as tx:
            appointment = await self._require_appointment(
                tx, tenant_id, appointment_id, for_update=True
            )
            await tx.delete_appointment(tenant_id, appointment_id)

        logger.info("appointment_deleted", tenant_id=tenant_id, appointment_id=str(appointment_id))
        await self._after_commit(actor, "appointment_deleted", appointment, None)

    async def get_cancellation(
        self,
        tenant_id: int,
        appointment_id: UUID,
    ) -> CancellationRecord:
        """
        Latest cancellation record of an appointment.

        Raises:
            SchedulingError: NOT_FOUND when the appointment was never cancelled
        """
        async with self.store.transaction() as tx:
            record = await tx.latest_cancellation(tenant_id, appointment_id)
        if record is None:
            raise SchedulingError.not_found("Cancellation record")
        return record

    async def _require_appointment(
        self,
        tx: StoreSession,
        tenant_id: int,
        appointment_id: UUID,
        for_update: bool = False,
    ) -> Appointment:
        appointment = await tx.get_appointment(tenant_id, appointment_id, for_update=for_update)
        if appointment is None:
            if await tx.appointment_owner(appointment_id) is not None:
                raise SchedulingError(ErrorKind.TENANT_MISMATCH)
            raise SchedulingError.not_found("Appointment")
        return appointment

    async def _ensure_slot_bookable(
        self,
        tx: StoreSession,
        tenant_id: int,
        location_id: int,
        day: date,
        slot_time: time,
        exclude_id: UUID | None = None,
    ) -> None:
        """Calendar block and capacity checks under the day and slot locks."""
        await tx.lock_calendar_day(tenant_id, day)
        if await self.registry.is_slot_blocked(tx, tenant_id, day, slot_time):
            logger.info(
                "booking_rejected_date_blocked",
                tenant_id=tenant_id,
                date=day.isoformat(),
                time=slot_time.strftime("%H:%M"),
            )
            raise SchedulingError(
                ErrorKind.DATE_BLOCKED,
                details={"date": day.isoformat(), "time": slot_time.strftime("%H:%M")},
            )

        await tx.lock_slot(tenant_id, location_id, day, slot_time)
        remaining = await self.calculator.remaining_capacity(
            tx, tenant_id, location_id, day, slot_time, exclude_id=exclude_id
        )
        if remaining <= 0:
            logger.info(
                "slot_unavailable",
                tenant_id=tenant_id,
                location_id=location_id,
                date=day.isoformat(),
                time=slot_time.strftime("%H:%M"),
            )
            raise SchedulingError(ErrorKind.SLOT_UNAVAILABLE)

    @staticmethod
    def _append_history(
        appointment: Appointment,
        to_status: AppointmentStatus,
        actor: Actor,
        now: datetime,
        reason: str | None,
        metadata: dict[str, Any],
    ) -> None:
        from_status = (
            appointment.status_history[-1].to_status
            if appointment.status_history
            else appointment.status
        )
        appointment.status_history.append(
            StatusHistoryEntry(
                from_status=from_status,
                to_status=to_status,
                changed_by=actor.name,
                changed_at=next_changed_at(appointment.status_history, now),
                reason=reason,
                metadata=metadata,
            )
        )

    async def _after_commit(
        self,
        actor: Actor,
        action: str,
        before: Appointment | None,
        after: Appointment | None,
        kind: TransitionKind | None = None,
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

        if after is None or kind not in NOTIFIED_TRANSITIONS:
            return
        try:
            await self.notifier.notify(after, kind)
        except Exception as e:
            # Notification failures never affect the stored appointment
            logger.warning(
                "failed_to_send_appointment_notification",
                appointment_id=str(after.id),
                kind=kind.value,
                error=str(e),
            )
