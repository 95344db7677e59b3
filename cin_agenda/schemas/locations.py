"""Service location schemas for request/response validation."""

from datetime import date, datetime, time

from pydantic import BaseModel, Field, field_validator


class LocationBase(BaseModel):
    """Base schema for a service location."""

    name: str = Field(..., min_length=1, max_length=255)
    address: str | None = Field(None, max_length=500)
    max_appointments_per_slot: int | None = Field(
        None, ge=1, le=100, description="Falls back to the tenant default when empty"
    )
    working_hours: list[time] | None = Field(
        None, description="Bookable times; falls back to the default schedule when empty"
    )

    @field_validator("working_hours")
    @classmethod
    def sort_hours(cls, v: list[time] | None) -> list[time] | None:
        """Deduplicate and sort working hours."""
        if v is None:
            return v
        return sorted(set(v))


class LocationCreate(LocationBase):
    """Schema for creating a location."""


class Location(LocationBase):
    """Location record."""

    id: int
    tenant_id: int
    is_active: bool = True
    created_at: datetime

    model_config = {"from_attributes": True}


class SlotAvailability(BaseModel):
    """Remaining capacity of one time slot."""

    time: time
    capacity: int
    booked: int
    remaining: int
    blocked: bool = False

    @property
    def bookable(self) -> bool:
        """Whether a booking could currently succeed."""
        return not self.blocked and self.remaining > 0


class DayAvailability(BaseModel):
    """Availability of every working-hours slot of a location on a date."""

    location_id: int
    date: date
    full_day_blocked: bool = False
    slots: list[SlotAvailability]
