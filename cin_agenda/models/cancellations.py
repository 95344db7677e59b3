"""Cancellation ledger and CPF block tables using SQLAlchemy Core."""

from sqlalchemy import Boolean, Column, Index, Integer, Table, Text, text
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID, VARCHAR

from cin_agenda.models.appointments import metadata

# Append-only: one row per cancellation event
cancellation_records = Table(
    "cancellation_records",
    metadata,
    Column("id", UUID(as_uuid=True), primary_key=True),
    Column("tenant_id", Integer, nullable=False),
    Column("cpf", VARCHAR(11), nullable=False),
    # No FK: the ledger outlives administrative deletes of appointments
    Column("appointment_id", UUID(as_uuid=True), nullable=False),
    Column("cancelled_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    Column("cancelled_by", Text, nullable=False),
    Column("reason", Text, nullable=True),
)

Index(
    "idx_cancellation_records_tenant_cpf",
    cancellation_records.c.tenant_id,
    cancellation_records.c.cpf,
    cancellation_records.c.cancelled_at,
)

cpf_blocks = Table(
    "cpf_blocks",
    metadata,
    Column("id", UUID(as_uuid=True), primary_key=True),
    Column("tenant_id", Integer, nullable=False),
    Column("cpf", VARCHAR(11), nullable=False),
    Column("blocked_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    Column("blocked_until", TIMESTAMP(timezone=True), nullable=False),
    Column("reason", Text, nullable=False),
    Column("cancellation_count", Integer, nullable=False),
    Column("active", Boolean, nullable=False, server_default=text("true")),
)

# At most one active block per (tenant, cpf)
Index(
    "uq_cpf_blocks_active",
    cpf_blocks.c.tenant_id,
    cpf_blocks.c.cpf,
    unique=True,
    postgresql_where=cpf_blocks.c.active.is_(True),
)
