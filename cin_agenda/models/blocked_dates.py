"""Blocked dates table model using SQLAlchemy Core."""

from sqlalchemy import CheckConstraint, Column, Date, Index, Integer, Table, Text, text
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP, UUID

from cin_agenda.models.appointments import metadata

blocked_dates = Table(
    "blocked_dates",
    metadata,
    Column("id", UUID(as_uuid=True), primary_key=True),
    Column("tenant_id", Integer, nullable=False),
    Column("date", Date, nullable=False),
    Column("block_type", Text, nullable=False, server_default="full-day"),
    # Example: ["09:00", "10:30"]; empty for full-day blocks
    Column("blocked_slots", JSONB, nullable=False, server_default=text("'[]'::jsonb")),
    Column("reason", Text, nullable=False),
    Column("created_by", Text, nullable=False),
    Column("created_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    CheckConstraint(
        "block_type IN ('full-day', 'specific-times')",
        name="blocked_dates_block_type_check",
    ),
)

Index("idx_blocked_dates_tenant_date", blocked_dates.c.tenant_id, blocked_dates.c.date)
