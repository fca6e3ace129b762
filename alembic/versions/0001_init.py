"""vehicles, scan records and otp sessions

Revision ID: 0001_init
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "vehicles",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("car_id", sa.String(length=64), nullable=False),
        sa.Column("plate_number", sa.String(length=20), nullable=False),
        sa.Column("owner_name", sa.String(length=200), nullable=False),
        sa.Column("owner_phone", sa.String(length=20), nullable=False),
        sa.Column("owner_email", sa.String(length=255), nullable=True),
        sa.Column("qr_payload_url", sa.String(length=500), nullable=True),
        sa.Column("qr_image", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.create_index("ix_vehicles_car_id", "vehicles", ["car_id"], unique=True)
    op.create_index("ix_vehicles_plate_number", "vehicles", ["plate_number"], unique=True)
    op.create_index("ix_vehicles_owner_phone", "vehicles", ["owner_phone"])
    op.alter_column("vehicles", "is_active", server_default=None)

    op.create_table(
        "scan_records",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "vehicle_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("vehicles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("car_id", sa.String(length=64), nullable=False),
        sa.Column("session_id", sa.String(length=64), nullable=True),
        sa.Column("attempt", sa.Integer(), nullable=True),
        sa.Column("scanner_name", sa.String(length=200), nullable=False),
        sa.Column("scanner_phone", sa.String(length=30), nullable=False),
        sa.Column("reason", sa.String(length=500), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("source_address", sa.String(length=64), nullable=True),
        sa.UniqueConstraint("session_id", "attempt", name="uq_scan_records_session_attempt"),
    )
    op.create_index("ix_scan_records_vehicle_id", "scan_records", ["vehicle_id"])
    op.create_index("ix_scan_records_car_id", "scan_records", ["car_id"])
    op.create_index("ix_scan_records_timestamp", "scan_records", ["timestamp"])
    op.alter_column("scan_records", "verified", server_default=None)

    op.create_table(
        "otp_sessions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("session_id", sa.String(length=64), nullable=False),
        sa.Column("car_id", sa.String(length=64), nullable=False),
        sa.Column("passcode_hash", sa.String(length=255), nullable=False),
        sa.Column("scanner_name", sa.String(length=200), nullable=False),
        sa.Column("scanner_phone", sa.String(length=30), nullable=False),
        sa.Column("reason", sa.String(length=500), nullable=False, server_default=""),
        sa.Column("source_address", sa.String(length=64), nullable=True),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="PENDING"),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_otp_sessions_session_id", "otp_sessions", ["session_id"], unique=True)
    op.create_index("ix_otp_sessions_car_id", "otp_sessions", ["car_id"])
    op.create_index("ix_otp_sessions_scanner_phone", "otp_sessions", ["scanner_phone"])
    op.create_index("ix_otp_sessions_status", "otp_sessions", ["status"])
    op.create_index("ix_otp_sessions_expires_at", "otp_sessions", ["expires_at"])
    op.create_index(
        "uq_otp_sessions_pending_pair",
        "otp_sessions",
        ["car_id", "scanner_phone"],
        unique=True,
        postgresql_where=sa.text("status = 'PENDING'"),
    )
    op.alter_column("otp_sessions", "reason", server_default=None)
    op.alter_column("otp_sessions", "attempts", server_default=None)
    op.alter_column("otp_sessions", "status", server_default=None)


def downgrade():
    op.drop_index("uq_otp_sessions_pending_pair", table_name="otp_sessions")
    op.drop_index("ix_otp_sessions_expires_at", table_name="otp_sessions")
    op.drop_index("ix_otp_sessions_status", table_name="otp_sessions")
    op.drop_index("ix_otp_sessions_scanner_phone", table_name="otp_sessions")
    op.drop_index("ix_otp_sessions_car_id", table_name="otp_sessions")
    op.drop_index("ix_otp_sessions_session_id", table_name="otp_sessions")
    op.drop_table("otp_sessions")
    op.drop_index("ix_scan_records_timestamp", table_name="scan_records")
    op.drop_index("ix_scan_records_car_id", table_name="scan_records")
    op.drop_index("ix_scan_records_vehicle_id", table_name="scan_records")
    op.drop_table("scan_records")
    op.drop_index("ix_vehicles_owner_phone", table_name="vehicles")
    op.drop_index("ix_vehicles_plate_number", table_name="vehicles")
    op.drop_index("ix_vehicles_car_id", table_name="vehicles")
    op.drop_table("vehicles")
