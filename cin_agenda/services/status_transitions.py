"""Appointment status state machine.

This module is the single place that decides which status changes are legal.

    pending            -> confirmed, cancelled
    confirmed          -> completed (stored as awaiting-issuance), cancelled
    awaiting-issuance  -> cin-ready, cancelled
    cin-ready          -> cin-delivered, cancelled
    cin-delivered      -> (terminal)
    cancelled          -> (terminal)
    any non-terminal   -> pending, only through a reschedule
"""

from datetime import datetime, timedelta

from cin_agenda.core.exceptions import SchedulingError
from cin_agenda.schemas.appointments import AppointmentStatus, StatusHistoryEntry

S = AppointmentStatus

TERMINAL_STATUSES = frozenset({S.CIN_DELIVERED, S.CANCELLED})

ALLOWED_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    S.PENDING: frozenset({S.CONFIRMED, S.CANCELLED}),
    S.CONFIRMED: frozenset({S.COMPLETED, S.CANCELLED}),
    S.AWAITING_ISSUANCE: frozenset({S.CIN_READY, S.CANCELLED}),
    S.CIN_READY: frozenset({S.CIN_DELIVERED, S.CANCELLED}),
    S.CIN_DELIVERED: frozenset(),
    S.CANCELLED: frozenset(),
}

# Statuses that can be persisted
RESTING_STATUSES = frozenset(ALLOWED_TRANSITIONS)


def normalize_target(target: AppointmentStatus) -> AppointmentStatus:
    """Treat a direct request for awaiting-issuance as the completion input."""
    if target == S.AWAITING_ISSUANCE:
        return S.COMPLETED
    return target


def check_transition(current: AppointmentStatus, target: AppointmentStatus) -> AppointmentStatus:
    """
    Validate a status change requested through the status endpoint.

    Args:
        current: Persisted status
        target: Requested status

    Returns:
        The normalized target (``completed`` for completions)

    Raises:
        SchedulingError: INVALID_TRANSITION when the edge is not in the table
    """
    resolved = normalize_target(target)
    if resolved not in ALLOWED_TRANSITIONS.get(current, frozenset()):
        raise SchedulingError.invalid_transition(current.value, target.value)
    return resolved


def check_reschedule(current: AppointmentStatus) -> None:
    """Reschedules move any non-terminal appointment back to pending."""
    if current in TERMINAL_STATUSES:
        raise SchedulingError.invalid_transition(current.value, S.PENDING.value)


def next_changed_at(history: list[StatusHistoryEntry], now: datetime) -> datetime:
    """Timestamp for a new history entry, strictly after the last one."""
    if history and history[-1].changed_at >= now:
        return history[-1].changed_at + timedelta(microseconds=1)
    return now
