"""Batch: one harvested crop lot moving from farm to vendor.

Created by a farmer and advanced through the status order by transporter
and vendor actions (see ``croptrail.lifecycle``).  Batches are never
deleted by the application.

Lifecycle:  created → assigned_transporter → picked_up → in_transit
            → delivered → received → analyzed
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum as SAEnum, Float, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from croptrail.database import Base
from croptrail.utils.clock import utcnow


class BatchStatus(str, enum.Enum):
    CREATED = "created"
    ASSIGNED_TRANSPORTER = "assigned_transporter"
    PICKED_UP = "picked_up"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    RECEIVED = "received"
    ANALYZED = "analyzed"


class Batch(Base):
    __tablename__ = "batches"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    farmer_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # ── Crop details ─────────────────────────────────────────
    crop_type: Mapped[str] = mapped_column(String(100), nullable=False)
    harvest_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expected_quality: Mapped[str] = mapped_column(String(100), nullable=False)
    quantity_kg: Mapped[float] = mapped_column(Float, nullable=False)

    # ── Origin ───────────────────────────────────────────────
    farm_gps_lat: Mapped[float | None] = mapped_column(Float)
    farm_gps_lng: Mapped[float | None] = mapped_column(Float)
    farm_address: Mapped[str | None] = mapped_column(Text)

    # ── Status ───────────────────────────────────────────────
    status: Mapped[BatchStatus] = mapped_column(
        SAEnum(
            BatchStatus,
            name="batch_status",
            values_callable=lambda e: [m.value for m in e],
        ),
        default=BatchStatus.CREATED,
        nullable=False,
        index=True,
    )

    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    # ── Relationships ────────────────────────────────────────
    # Lazy by default; aggregation loads related rows in bulk by batch_id.
    farmer = relationship("Profile")
