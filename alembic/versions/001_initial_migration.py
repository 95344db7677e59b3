"""Initial migration - create scheduling tables.

Revision ID: 001
Revises:
Create Date: 2025-03-01 00:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamp(name: str, nullable: bool = False, default: bool = True) -> sa.Column:
    return sa.Column(
        name,
        postgresql.TIMESTAMP(timezone=True),
        server_default=sa.text("NOW()") if default else None,
        nullable=nullable,
    )


def upgrade() -> None:
    """Upgrade database schema."""
    # Enable pgcrypto extension
    op.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto"')

    op.create_table(
        "locations",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("max_appointments_per_slot", sa.Integer(), nullable=True),
        sa.Column("working_hours", postgresql.JSONB(), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        _timestamp("created_at"),
        sa.CheckConstraint(
            "max_appointments_per_slot IS NULL OR max_appointments_per_slot > 0",
            name="locations_capacity_check",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_locations_tenant", "locations", ["tenant_id"])

    op.create_table(
        "appointments",
        sa.Column(
            "id", postgresql.UUID(), server_default=sa.text("gen_random_uuid()"), nullable=False
        ),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("location_id", sa.Integer(), nullable=False),
        sa.Column("protocol", sa.VARCHAR(length=32), nullable=False),
        sa.Column("full_name", sa.Text(), nullable=False),
        sa.Column("cpf", sa.VARCHAR(length=11), nullable=False),
        sa.Column("phone", sa.VARCHAR(length=20), nullable=False),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("gender", sa.Text(), nullable=True),
        sa.Column("street", sa.Text(), nullable=True),
        sa.Column("number", sa.VARCHAR(length=20), nullable=True),
        sa.Column("neighborhood", sa.Text(), nullable=True),
        sa.Column("region_type", sa.Text(), nullable=True),
        sa.Column("region_name", sa.Text(), nullable=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("time", sa.Time(), nullable=False),
        sa.Column("status", sa.Text(), server_default="pending", nullable=False),
        sa.Column("priority", sa.Text(), server_default="normal", nullable=False),
        sa.Column("cin_type", sa.Text(), server_default="first-copy", nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column(
            "status_history",
            postgresql.JSONB(),
            server_default=sa.text("'[]'::jsonb"),
            nullable=False,
        ),
        _timestamp("created_at"),
        _timestamp("last_modified"),
        _timestamp("completed_at", nullable=True, default=False),
        sa.Column("completed_by", sa.Text(), nullable=True),
        sa.Column("cancelled_by", sa.Text(), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'awaiting-issuance', 'cin-ready', "
            "'cin-delivered', 'cancelled')",
            name="appointments_status_check",
        ),
        sa.CheckConstraint(
            "priority IN ('normal', 'high', 'urgent')",
            name="appointments_priority_check",
        ),
        sa.ForeignKeyConstraint(["location_id"], ["locations.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("protocol"),
    )
    op.create_index(
        "idx_appointments_slot", "appointments", ["tenant_id", "location_id", "date", "time"]
    )
    op.create_index("idx_appointments_tenant_cpf", "appointments", ["tenant_id", "cpf"])

    op.create_table(
        "blocked_dates",
        sa.Column(
            "id", postgresql.UUID(), server_default=sa.text("gen_random_uuid()"), nullable=False
        ),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("block_type", sa.Text(), server_default="full-day", nullable=False),
        sa.Column(
            "blocked_slots",
            postgresql.JSONB(),
            server_default=sa.text("'[]'::jsonb"),
            nullable=False,
        ),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("created_by", sa.Text(), nullable=False),
        _timestamp("created_at"),
        sa.CheckConstraint(
            "block_type IN ('full-day', 'specific-times')",
            name="blocked_dates_block_type_check",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_blocked_dates_tenant_date", "blocked_dates", ["tenant_id", "date"])

    op.create_table(
        "cancellation_records",
        sa.Column(
            "id", postgresql.UUID(), server_default=sa.text("gen_random_uuid()"), nullable=False
        ),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("cpf", sa.VARCHAR(length=11), nullable=False),
        sa.Column("appointment_id", postgresql.UUID(), nullable=False),
        _timestamp("cancelled_at"),
        sa.Column("cancelled_by", sa.Text(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_cancellation_records_tenant_cpf",
        "cancellation_records",
        ["tenant_id", "cpf", "cancelled_at"],
    )

    op.create_table(
        "cpf_blocks",
        sa.Column(
            "id", postgresql.UUID(), server_default=sa.text("gen_random_uuid()"), nullable=False
        ),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("cpf", sa.VARCHAR(length=11), nullable=False),
        _timestamp("blocked_at"),
        _timestamp("blocked_until", default=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("cancellation_count", sa.Integer(), nullable=False),
        sa.Column("active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "uq_cpf_blocks_active",
        "cpf_blocks",
        ["tenant_id", "cpf"],
        unique=True,
        postgresql_where=sa.text("active"),
    )


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_index("uq_cpf_blocks_active", table_name="cpf_blocks")
    op.drop_table("cpf_blocks")

    op.drop_index("idx_cancellation_records_tenant_cpf", table_name="cancellation_records")
    op.drop_table("cancellation_records")

    op.drop_index("idx_blocked_dates_tenant_date", table_name="blocked_dates")
    op.drop_table("blocked_dates")

    op.drop_index("idx_appointments_tenant_cpf", table_name="appointments")
    op.drop_index("idx_appointments_slot", table_name="appointments")
    op.drop_table("appointments")

    op.drop_index("idx_locations_tenant", table_name="locations")
    op.drop_table("locations")
