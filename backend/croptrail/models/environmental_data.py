"""EnvironmentalData: append-only weather / air-quality snapshots.

One row per (batch, stage).  Rows are never updated; a stage that already
has a snapshot is rejected rather than overwritten.

``raw_api_response`` keeps the upstream payloads.  When the weather API
was unavailable and placeholder values were stored instead, it carries
``{"source": "fallback", ...}`` so the substitution stays visible.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Integer, JSON, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from croptrail.database import Base
from croptrail.utils.clock import utcnow


class EnvironmentalStage(str, enum.Enum):
    HARVEST = "harvest"
    TRANSPORT_PICKUP = "transport_pickup"
    TRANSPORT_DELIVERY = "transport_delivery"
    RECEIPT = "receipt"


class EnvironmentalData(Base):
    __tablename__ = "environmental_data"
    __table_args__ = (
        UniqueConstraint("batch_id", "stage", name="uq_environmental_data_batch_stage"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    batch_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("batches.id", ondelete="CASCADE"), nullable=False, index=True
    )
    stage: Mapped[str] = mapped_column(String(30), nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False, index=True
    )
    gps_lat: Mapped[float | None] = mapped_column(Float)
    gps_lng: Mapped[float | None] = mapped_column(Float)

    # ── Conditions ───────────────────────────────────────────
    temperature_celsius: Mapped[float | None] = mapped_column(Float)
    humidity_percentage: Mapped[float | None] = mapped_column(Float)
    weather_condition: Mapped[str | None] = mapped_column(String(100))
    air_quality_index: Mapped[int | None] = mapped_column(Integer)
    uv_index: Mapped[float | None] = mapped_column(Float)
    precipitation_mm: Mapped[float | None] = mapped_column(Float)
    wind_speed_kmh: Mapped[float | None] = mapped_column(Float)

    raw_api_response: Mapped[dict | None] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
