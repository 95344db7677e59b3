"""CPF block schemas."""

from datetime import datetime
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class CpfBlock(BaseModel):
    """Temporary booking block issued after repeated cancellations."""

    id: UUID = Field(default_factory=uuid4)
    tenant_id: int
    cpf: str
    blocked_at: datetime
    blocked_until: datetime
    reason: str
    cancellation_count: int
    active: bool = True

    model_config = {"from_attributes": True}


class CpfBlockStatus(BaseModel):
    """Public view of a CPF's booking block status."""

    blocked: bool
    blocked_until: datetime | None = None
    reason: str | None = None
    cancellation_count: int | None = None
    recent_cancellations: int = 0
