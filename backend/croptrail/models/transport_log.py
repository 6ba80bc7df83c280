import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from croptrail.database import Base
from croptrail.utils.clock import utcnow


class TransportLog(Base):
    """One transporter's handling record for a batch.

    Created when a transporter claims the batch, then filled in at pickup
    and at delivery.  ``batch_id`` is unique: a batch has one carrier.
    """

    __tablename__ = "transport_logs"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    batch_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("batches.id", ondelete="CASCADE"),
        unique=True, nullable=False, index=True,
    )
    transporter_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # ── Pickup ───────────────────────────────────────────────
    pickup_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    pickup_gps_lat: Mapped[float | None] = mapped_column(Float)
    pickup_gps_lng: Mapped[float | None] = mapped_column(Float)

    # ── Drop ─────────────────────────────────────────────────
    drop_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    drop_gps_lat: Mapped[float | None] = mapped_column(Float)
    drop_gps_lng: Mapped[float | None] = mapped_column(Float)

    # ── Handling details ─────────────────────────────────────
    transport_type: Mapped[str | None] = mapped_column(String(100))
    vehicle_info: Mapped[str | None] = mapped_column(String(255))
    delay_reason: Mapped[str | None] = mapped_column(Text)
    temperature_maintained: Mapped[str | None] = mapped_column(String(100))
    notes: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )
