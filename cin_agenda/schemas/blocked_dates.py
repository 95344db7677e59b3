"""Blocked date schemas for request/response validation."""

from datetime import date, datetime, time
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, model_validator


class BlockType(str, Enum):
    """Calendar block type enumeration."""

    FULL_DAY = "full-day"
    SPECIFIC_TIMES = "specific-times"


class BlockedDateCreate(BaseModel):
    """Schema for creating a calendar block."""

    date: date
    block_type: BlockType = BlockType.FULL_DAY
    blocked_slots: list[time] = Field(default_factory=list)
    reason: str = Field(..., min_length=1, max_length=500)

    @model_validator(mode="after")
    def validate_slots(self) -> "BlockedDateCreate":
        """Specific-time blocks need slots; full-day blocks carry none."""
        if self.block_type == BlockType.SPECIFIC_TIMES:
            if not self.blocked_slots:
                raise ValueError("specific-times blocks require at least one blocked slot")
            self.blocked_slots = sorted(set(self.blocked_slots))
        else:
            self.blocked_slots = []
        return self


class BlockedDate(BaseModel):
    """Calendar block record."""

    id: UUID
    tenant_id: int
    date: date
    block_type: BlockType
    blocked_slots: list[time] = Field(default_factory=list)
    reason: str
    created_by: str
    created_at: datetime

    model_config = {"from_attributes": True}

    def blocks(self, slot_time: time) -> bool:
        """Whether this block rejects the given time on its date."""
        if self.block_type == BlockType.FULL_DAY:
            return True
        return slot_time.replace(second=0, microsecond=0) in {
            t.replace(second=0, microsecond=0) for t in self.blocked_slots
        }
