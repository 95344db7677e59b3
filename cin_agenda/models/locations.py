"""Service location table model using SQLAlchemy Core."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Index,
    Integer,
    String,
    Table,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB

from cin_agenda.models.appointments import metadata

locations = Table(
    "locations",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("tenant_id", Integer, nullable=False),
    Column("name", String(255), nullable=False),
    Column("address", Text),
    # NULL means the tenant default applies
    Column("max_appointments_per_slot", Integer, nullable=True),
    # Example: ["08:00", "08:30", "09:00"]
    Column("working_hours", JSONB, nullable=True),
    Column("is_active", Boolean, nullable=False, server_default=text("true")),
    Column(
        "created_at",
        DateTime(timezone=True),
        nullable=False,
        server_default=text("NOW()"),
    ),
    CheckConstraint(
        "max_appointments_per_slot IS NULL OR max_appointments_per_slot > 0",
        name="locations_capacity_check",
    ),
)

Index("idx_locations_tenant", locations.c.tenant_id)
