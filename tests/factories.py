"""Shared test doubles and request builders."""

from datetime import date, datetime, time, timedelta
from typing import Any

from cin_agenda.core.security import create_access_token
from cin_agenda.schemas.appointments import Appointment, AppointmentCreate
from cin_agenda.services.collaborators import Actor, TransitionKind

TENANT_ID = 1
OTHER_TENANT_ID = 2
CPF = "11122233344"
SLOT_DATE = date(2025, 3, 10)
SLOT_TIME = time(9, 0)


class FixedClock:
    """Controllable time source."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, now: datetime) -> None:
        self.now = now

    def advance(self, **kwargs: Any) -> None:
        self.now += timedelta(**kwargs)


class RecordingNotifier:
    """Notification dispatcher that remembers what it was asked to send."""

    def __init__(self) -> None:
        self.sent: list[tuple[Appointment, TransitionKind]] = []

    async def notify(self, appointment: Appointment, kind: TransitionKind) -> None:
        self.sent.append((appointment, kind))

    @property
    def kinds(self) -> list[TransitionKind]:
        return [kind for _, kind in self.sent]


class FailingNotifier:
    """Notification dispatcher whose delivery always fails."""

    async def notify(self, appointment: Appointment, kind: TransitionKind) -> None:
        raise ConnectionError("SMTP unreachable")


class RecordingAudit:
    """Audit recorder that remembers every event."""

    def __init__(self) -> None:
        self.events: list[tuple[Actor, str, dict | None, dict | None]] = []

    async def record(
        self,
        actor: Actor,
        action: str,
        before: dict | None,
        after: dict | None,
    ) -> None:
        self.events.append((actor, action, before, after))

    @property
    def actions(self) -> list[str]:
        return [action for _, action, _, _ in self.events]


def make_booking(
    location_id: int,
    cpf: str = CPF,
    day: date = SLOT_DATE,
    slot_time: time = SLOT_TIME,
    full_name: str = "Maria da Silva",
) -> AppointmentCreate:
    """Booking request for a citizen."""
    return AppointmentCreate(
        full_name=full_name,
        cpf=cpf,
        phone="(11) 98765-4321",
        email="maria@example.com",
        location_id=location_id,
        date=day,
        time=slot_time,
    )


def booking_payload(location_id: int, **overrides: Any) -> dict:
    """JSON body for the booking endpoints."""
    payload = {
        "full_name": "Maria da Silva",
        "cpf": "111.222.333-44",
        "phone": "(11) 98765-4321",
        "email": "maria@example.com",
        "location_id": location_id,
        "date": SLOT_DATE.isoformat(),
        "time": "09:00",
    }
    payload.update(overrides)
    return payload


def cpf_for(index: int) -> str:
    """Distinct 11-digit CPF per index."""
    return f"{index:011d}"


def token_headers(tenant_id: int = TENANT_ID, role: str = "secretary") -> dict:
    """Bearer headers for a staff member of a tenant."""
    token = create_access_token(
        data={
            "sub": f"staff-{tenant_id}",
            "name": "Ana Secretaria",
            "tenant_id": tenant_id,
            "role": role,
        },
        expires_delta=timedelta(minutes=30),
    )
    return {"Authorization": f"Bearer {token}"}
