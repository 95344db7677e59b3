"""Appointment schemas for request/response validation."""

import re
from datetime import date, datetime, time
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, field_validator, model_validator


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    AWAITING_ISSUANCE = "awaiting-issuance"
    CIN_READY = "cin-ready"
    CIN_DELIVERED = "cin-delivered"
    CANCELLED = "cancelled"
    # Input only: always rewritten to AWAITING_ISSUANCE before persisting.
    COMPLETED = "completed"


class AppointmentPriority(str, Enum):
    """Appointment priority enumeration."""

    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class CinType(str, Enum):
    """Requested document copy."""

    FIRST_COPY = "first-copy"
    SECOND_COPY = "second-copy"


class CancelledBy(str, Enum):
    """Who cancelled an appointment."""

    CITIZEN = "citizen"
    STAFF = "staff"


class CancellationCategory(str, Enum):
    """Cancellation category recorded in history metadata."""

    USER_REQUEST = "user-request"
    NO_SHOW = "no-show"
    OTHER = "other"


def normalize_cpf(value: str) -> str:
    """Strip formatting from a CPF and check it has 11 digits."""
    digits = re.sub(r"\D", "", value or "")
    if len(digits) != 11:
        raise ValueError("CPF must contain 11 digits")
    return digits


class StatusHistoryEntry(BaseModel):
    """One entry of the append-only status history."""

    id: UUID = Field(default_factory=uuid4)
    from_status: AppointmentStatus | None
    to_status: AppointmentStatus
    changed_by: str
    changed_at: datetime
    reason: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_reschedule(self) -> bool:
        """Whether this entry records a date/time change."""
        return bool(self.metadata.get("old_date") and self.metadata.get("new_date"))


class CitizenFields(BaseModel):
    """Citizen data attached to an appointment."""

    full_name: str = Field(..., min_length=1, max_length=200)
    cpf: str
    phone: str = Field(..., min_length=8, max_length=20)
    email: str | None = Field(None, max_length=200)
    gender: str | None = Field(None, max_length=30)
    street: str | None = Field(None, max_length=200)
    number: str | None = Field(None, max_length=20)
    neighborhood: str | None = Field(None, max_length=120)
    region_type: str | None = Field(None, max_length=30)
    region_name: str | None = Field(None, max_length=120)

    @field_validator("cpf")
    @classmethod
    def validate_cpf(cls, v: str) -> str:
        """Normalize CPF to digits only."""
        return normalize_cpf(v)

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: str) -> str:
        """Keep digits only."""
        cleaned = re.sub(r"\D", "", v)
        if len(cleaned) < 8:
            raise ValueError("Phone number must have at least 8 digits")
        return cleaned


class CitizenBookingCreate(CitizenFields):
    """Schema for citizen self-service booking; staff-only fields are not accepted."""

    location_id: int
    date: date
    time: time
    cin_type: CinType = CinType.FIRST_COPY


class AppointmentCreate(CitizenBookingCreate):
    """Schema for booking a new appointment at the counter."""

    priority: AppointmentPriority = AppointmentPriority.NORMAL
    notes: str | None = Field(None, max_length=2000)


class AppointmentDetailsUpdate(BaseModel):
    """Schema for editing appointment data that does not affect scheduling."""

    full_name: str | None = Field(None, min_length=1, max_length=200)
    phone: str | None = Field(None, min_length=8, max_length=20)
    email: str | None = Field(None, max_length=200)
    street: str | None = Field(None, max_length=200)
    number: str | None = Field(None, max_length=20)
    neighborhood: str | None = Field(None, max_length=120)
    region_type: str | None = Field(None, max_length=30)
    region_name: str | None = Field(None, max_length=120)
    priority: AppointmentPriority | None = None
    notes: str | None = Field(None, max_length=2000)

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: str | None) -> str | None:
        """Keep digits only."""
        if v is None:
            return v
        cleaned = re.sub(r"\D", "", v)
        if len(cleaned) < 8:
            raise ValueError("Phone number must have at least 8 digits")
        return cleaned

    @model_validator(mode="after")
    def reject_cleared_required_fields(self) -> "AppointmentDetailsUpdate":
        """Required appointment fields may be changed but never cleared."""
        for name in ("full_name", "phone", "priority"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self


class AppointmentStatusUpdate(BaseModel):
    """Schema for changing appointment status."""

    status: AppointmentStatus
    reason: str | None = Field(None, max_length=500)
    metadata: dict[str, Any] | None = None


class AppointmentReschedule(BaseModel):
    """Schema for moving an appointment to a new date/time."""

    date: date
    time: time
    reason: str | None = Field(None, max_length=500)


class AppointmentCancel(BaseModel):
    """Schema for staff cancellation."""

    reason: str = Field(..., min_length=1, max_length=500)
    category: CancellationCategory = CancellationCategory.USER_REQUEST


class CitizenCancel(BaseModel):
    """Schema for citizen self-cancellation; the CPF must match the booking."""

    cpf: str
    reason: str | None = Field(None, max_length=500)

    @field_validator("cpf")
    @classmethod
    def validate_cpf(cls, v: str) -> str:
        """Normalize CPF to digits only."""
        return normalize_cpf(v)


class Appointment(CitizenFields):
    """Full appointment record."""

    id: UUID
    tenant_id: int
    location_id: int
    protocol: str
    date: date
    time: time
    status: AppointmentStatus
    priority: AppointmentPriority = AppointmentPriority.NORMAL
    cin_type: CinType = CinType.FIRST_COPY
    notes: str | None = None
    status_history: list[StatusHistoryEntry] = Field(default_factory=list)
    created_at: datetime
    last_modified: datetime
    completed_at: datetime | None = None
    completed_by: str | None = None
    cancelled_by: CancelledBy | None = None
    cancellation_reason: str | None = None

    model_config = {"from_attributes": True}

    @property
    def is_active(self) -> bool:
        """Whether the appointment still occupies its slot."""
        return self.status != AppointmentStatus.CANCELLED


class AppointmentListResponse(BaseModel):
    """Schema for paginated appointment list response."""

    total: int
    page: int
    page_size: int
    items: list[Appointment]


class AppointmentFilters(BaseModel):
    """Schema for appointment filtering."""

    status: AppointmentStatus | None = None
    location_id: int | None = None
    cpf: str | None = None
    from_date: date | None = None
    to_date: date | None = None
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100)

    @field_validator("cpf")
    @classmethod
    def validate_cpf(cls, v: str | None) -> str | None:
        """Normalize CPF to digits only."""
        return normalize_cpf(v) if v else v


class CancellationRecord(BaseModel):
    """One row of the append-only cancellation ledger."""

    id: UUID = Field(default_factory=uuid4)
    tenant_id: int
    cpf: str
    appointment_id: UUID
    cancelled_at: datetime
    cancelled_by: CancelledBy
    reason: str | None = None
