"""Appointments table model using SQLAlchemy Core."""

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Table,
    Text,
    Time,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP, UUID, VARCHAR

# Metadata for all tables
metadata = MetaData()

# Appointments table
appointments = Table(
    "appointments",
    metadata,
    Column("id", UUID(as_uuid=True), primary_key=True),
    # Tenant scoping
    Column("tenant_id", Integer, nullable=False),
    Column(
        "location_id",
        Integer,
        ForeignKey("locations.id", ondelete="RESTRICT"),
        nullable=False,
    ),
    Column("protocol", VARCHAR(32), nullable=False, unique=True),
    # Citizen
    Column("full_name", Text, nullable=False),
    Column("cpf", VARCHAR(11), nullable=False),
    Column("phone", VARCHAR(20), nullable=False),
    Column("email", Text, nullable=True),
    Column("gender", Text, nullable=True),
    Column("street", Text, nullable=True),
    Column("number", VARCHAR(20), nullable=True),
    Column("neighborhood", Text, nullable=True),
    Column("region_type", Text, nullable=True),
    Column("region_name", Text, nullable=True),
    # Slot
    Column("date", Date, nullable=False),
    Column("time", Time, nullable=False),
    # Workflow
    Column("status", Text, nullable=False, server_default="pending"),
    Column("priority", Text, nullable=False, server_default="normal"),
    Column("cin_type", Text, nullable=False, server_default="first-copy"),
    Column("notes", Text, nullable=True),
    Column("status_history", JSONB, nullable=False, server_default=text("'[]'::jsonb")),
    # Audit fields
    Column("created_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    Column("last_modified", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    Column("completed_at", TIMESTAMP(timezone=True), nullable=True),
    Column("completed_by", Text, nullable=True),
    Column("cancelled_by", Text, nullable=True),
    Column("cancellation_reason", Text, nullable=True),
    # Constraints
    CheckConstraint(
        "status IN ('pending', 'confirmed', 'awaiting-issuance', 'cin-ready', "
        "'cin-delivered', 'cancelled')",
        name="appointments_status_check",
    ),
    CheckConstraint(
        "priority IN ('normal', 'high', 'urgent')",
        name="appointments_priority_check",
    ),
)

Index(
    "idx_appointments_slot",
    appointments.c.tenant_id,
    appointments.c.location_id,
    appointments.c.date,
    appointments.c.time,
)
Index("idx_appointments_tenant_cpf", appointments.c.tenant_id, appointments.c.cpf)
