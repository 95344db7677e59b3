"""Narrow interfaces to the audit trail and notification collaborators.

Delivery (e-mail, WhatsApp) and audit-log storage live outside this service.
The default implementations emit structured log events that the log pipeline
ships to those systems.
"""

from enum import Enum
from typing import Any, Protocol

import structlog
from pydantic import BaseModel

from cin_agenda.schemas.appointments import Appointment

logger = structlog.get_logger(__name__)


class ActorKind(str, Enum):
    """Who performed an operation."""

    CITIZEN = "citizen"
    STAFF = "staff"
    SYSTEM = "system"


class Actor(BaseModel):
    """Identity recorded in status history and audit events."""

    name: str
    kind: ActorKind = ActorKind.STAFF
    user_id: str | None = None

    @classmethod
    def citizen(cls, name: str = "citizen") -> "Actor":
        """Actor for self-service operations."""
        return cls(name=name, kind=ActorKind.CITIZEN)


class TransitionKind(str, Enum):
    """Kinds of appointment transitions reported to collaborators."""

    CREATED = "created"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CIN_READY = "cin-ready"
    CIN_DELIVERED = "cin-delivered"
    CANCELLED = "cancelled"
    RESCHEDULED = "rescheduled"


# Transitions the citizen is told about
NOTIFIED_TRANSITIONS = frozenset(
    {
        TransitionKind.COMPLETED,
        TransitionKind.CIN_READY,
        TransitionKind.CIN_DELIVERED,
        TransitionKind.CANCELLED,
        TransitionKind.RESCHEDULED,
    }
)


class NotificationDispatcher(Protocol):
    """Sends citizen notifications about appointment transitions."""

    async def notify(self, appointment: Appointment, kind: TransitionKind) -> None: ...


class AuditTrailRecorder(Protocol):
    """Records who changed what."""

    async def record(
        self,
        actor: Actor,
        action: str,
        before: dict[str, Any] | None,
        after: dict[str, Any] | None,
    ) -> None: ...


class LogNotificationDispatcher:
    """Publishes notification requests as structured log events."""

    async def notify(self, appointment: Appointment, kind: TransitionKind) -> None:
        logger.info(
            "appointment_notification_requested",
            tenant_id=appointment.tenant_id,
            appointment_id=str(appointment.id),
            protocol=appointment.protocol,
            kind=kind.value,
            has_email=bool(appointment.email),
        )


class LogAuditTrailRecorder:
    """Publishes audit events as structured log events."""

    async def record(
        self,
        actor: Actor,
        action: str,
        before: dict[str, Any] | None,
        after: dict[str, Any] | None,
    ) -> None:
        logger.info(
            "audit_event",
            action=action,
            actor=actor.name,
            actor_kind=actor.kind.value,
            actor_id=actor.user_id,
            before=before,
            after=after,
        )
