"""Initial schema: profiles, batches and the per-batch journey tables.

Revision ID: 0001
Revises: (none)
Create Date: 2026-10-17

Run with:
    cd backend && alembic upgrade head
"""

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

from alembic import op
import sqlalchemy as sa

APP_ROLE = sa.Enum("farmer", "transporter", "vendor", name="app_role")
BATCH_STATUS = sa.Enum(
    "created", "assigned_transporter", "picked_up", "in_transit",
    "delivered", "received", "analyzed",
    name="batch_status",
)


def upgrade() -> None:
    op.create_table(
        "profiles",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(255)),
        sa.Column("phone", sa.String(20)),
        sa.Column("role", APP_ROLE, nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_profiles_email", "profiles", ["email"], unique=True)

    op.create_table(
        "batches",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("farmer_id", sa.String(36), sa.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False),
        sa.Column("crop_type", sa.String(100), nullable=False),
        sa.Column("harvest_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expected_quality", sa.String(100), nullable=False),
        sa.Column("quantity_kg", sa.Float(), nullable=False),
        sa.Column("farm_gps_lat", sa.Float()),
        sa.Column("farm_gps_lng", sa.Float()),
        sa.Column("farm_address", sa.Text()),
        sa.Column("status", BATCH_STATUS, nullable=False, server_default="created"),
        sa.Column("notes", sa.Text()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_batches_farmer_id", "batches", ["farmer_id"])
    op.create_index("ix_batches_status", "batches", ["status"])
    op.create_index("ix_batches_created_at", "batches", ["created_at"])

    op.create_table(
        "transport_logs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("batch_id", sa.String(36), sa.ForeignKey("batches.id", ondelete="CASCADE"), nullable=False),
        sa.Column("transporter_id", sa.String(36), sa.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False),
        sa.Column("pickup_time", sa.DateTime(timezone=True)),
        sa.Column("pickup_gps_lat", sa.Float()),
        sa.Column("pickup_gps_lng", sa.Float()),
        sa.Column("drop_time", sa.DateTime(timezone=True)),
        sa.Column("drop_gps_lat", sa.Float()),
        sa.Column("drop_gps_lng", sa.Float()),
        sa.Column("transport_type", sa.String(100)),
        sa.Column("vehicle_info", sa.String(255)),
        sa.Column("delay_reason", sa.Text()),
        sa.Column("temperature_maintained", sa.String(100)),
        sa.Column("notes", sa.Text()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    # One carrier per batch
    op.create_index("ix_transport_logs_batch_id", "transport_logs", ["batch_id"], unique=True)
    op.create_index("ix_transport_logs_transporter_id", "transport_logs", ["transporter_id"])

    op.create_table(
        "vendor_receipts",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("batch_id", sa.String(36), sa.ForeignKey("batches.id", ondelete="CASCADE"), nullable=False),
        sa.Column("vendor_id", sa.String(36), sa.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False),
        sa.Column("received_at", sa.DateTime(timezone=True)),
        sa.Column("receipt_gps_lat", sa.Float()),
        sa.Column("receipt_gps_lng", sa.Float()),
        sa.Column("quality_grade", sa.String(50)),
        sa.Column("spoilage_percentage", sa.Float()),
        sa.Column("weight_loss_percentage", sa.Float()),
        sa.Column("received_quantity_kg", sa.Float()),
        sa.Column("notes", sa.Text()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_vendor_receipts_batch_id", "vendor_receipts", ["batch_id"], unique=True)
    op.create_index("ix_vendor_receipts_vendor_id", "vendor_receipts", ["vendor_id"])

    op.create_table(
        "environmental_data",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("batch_id", sa.String(36), sa.ForeignKey("batches.id", ondelete="CASCADE"), nullable=False),
        sa.Column("stage", sa.String(30), nullable=False),
        sa.Column("recorded_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("gps_lat", sa.Float()),
        sa.Column("gps_lng", sa.Float()),
        sa.Column("temperature_celsius", sa.Float()),
        sa.Column("humidity_percentage", sa.Float()),
        sa.Column("weather_condition", sa.String(100)),
        sa.Column("air_quality_index", sa.Integer()),
        sa.Column("uv_index", sa.Float()),
        sa.Column("precipitation_mm", sa.Float()),
        sa.Column("wind_speed_kmh", sa.Float()),
        sa.Column("raw_api_response", sa.JSON()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("batch_id", "stage", name="uq_environmental_data_batch_stage"),
    )
    op.create_index("ix_environmental_data_batch_id", "environmental_data", ["batch_id"])
    op.create_index("ix_environmental_data_recorded_at", "environmental_data", ["recorded_at"])

    op.create_table(
        "ai_analysis",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("batch_id", sa.String(36), sa.ForeignKey("batches.id", ondelete="CASCADE"), nullable=False),
        sa.Column("analyzed_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("degradation_point", sa.Text()),
        sa.Column("environmental_impact", sa.Text()),
        sa.Column("confidence_level", sa.Text()),
        sa.Column("farmer_suggestions", sa.Text()),
        sa.Column("transporter_suggestions", sa.Text()),
        sa.Column("vendor_suggestions", sa.Text()),
        sa.Column("full_analysis", sa.JSON()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_ai_analysis_batch_id", "ai_analysis", ["batch_id"], unique=True)


def downgrade() -> None:
    op.drop_table("ai_analysis")
    op.drop_table("environmental_data")
    op.drop_table("vendor_receipts")
    op.drop_table("transport_logs")
    op.drop_table("batches")
    op.drop_table("profiles")
    BATCH_STATUS.drop(op.get_bind(), checkfirst=True)
    APP_ROLE.drop(op.get_bind(), checkfirst=True)
