"""Custom application exceptions."""

from enum import Enum
from typing import Any


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, status_code: int = 500):
        """Initialize exception with message and status code."""
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class BadRequestException(AppException):
    """Bad request exception."""

    def __init__(self, message: str = "Bad request"):
        """Initialize with 400 status code."""
        super().__init__(message, status_code=400)


class ErrorKind(str, Enum):
    """Closed set of scheduling error tags."""

    SLOT_UNAVAILABLE = "slot_unavailable"
    DATE_BLOCKED = "date_blocked"
    CPF_BLOCKED = "cpf_blocked"
    INVALID_TRANSITION = "invalid_transition"
    RESCHEDULE_LIMIT_EXCEEDED = "reschedule_limit_exceeded"
    NOT_FOUND = "not_found"
    TENANT_MISMATCH = "tenant_mismatch"
    STORAGE_ERROR = "storage_error"


ERROR_STATUS_CODES: dict[ErrorKind, int] = {
    ErrorKind.SLOT_UNAVAILABLE: 409,
    ErrorKind.DATE_BLOCKED: 409,
    ErrorKind.CPF_BLOCKED: 403,
    ErrorKind.INVALID_TRANSITION: 409,
    ErrorKind.RESCHEDULE_LIMIT_EXCEEDED: 429,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.TENANT_MISMATCH: 403,
    ErrorKind.STORAGE_ERROR: 503,
}

DEFAULT_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.SLOT_UNAVAILABLE: "The selected time slot has no remaining capacity",
    ErrorKind.DATE_BLOCKED: "The selected date or time is blocked for bookings",
    ErrorKind.CPF_BLOCKED: "CPF temporarily blocked after repeated cancellations",
    ErrorKind.INVALID_TRANSITION: "Status transition not allowed",
    ErrorKind.RESCHEDULE_LIMIT_EXCEEDED: "Reschedule limit reached for this period",
    ErrorKind.NOT_FOUND: "Resource not found",
    ErrorKind.TENANT_MISMATCH: "Resource belongs to a different tenant",
    ErrorKind.STORAGE_ERROR: "Service temporarily unavailable, please try again later",
}


class SchedulingError(AppException):
    """
    Tagged scheduling failure.

    A single exception type carries every scheduling error; callers branch on
    ``kind`` instead of on subclasses. ``details`` holds the kind-specific
    payload (``blocked_until``/``reason`` for CPF blocks, ``from``/``to`` for
    invalid transitions).
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        """Initialize with the HTTP status mapped from the error kind."""
        self.kind = kind
        self.details = details or {}
        super().__init__(message or DEFAULT_MESSAGES[kind], status_code=ERROR_STATUS_CODES[kind])

    @classmethod
    def not_found(cls, entity: str = "Resource") -> "SchedulingError":
        """Build a NOT_FOUND error for the named entity."""
        return cls(ErrorKind.NOT_FOUND, f"{entity} not found")

    @classmethod
    def invalid_transition(cls, from_status: str, to_status: str) -> "SchedulingError":
        """Build an INVALID_TRANSITION error."""
        return cls(
            ErrorKind.INVALID_TRANSITION,
            f"Cannot change status from '{from_status}' to '{to_status}'",
            {"from": from_status, "to": to_status},
        )
