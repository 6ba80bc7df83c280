import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from croptrail.database import Base
from croptrail.utils.clock import utcnow


class VendorReceipt(Base):
    """One vendor's receiving record for a batch (unique per batch)."""

    __tablename__ = "vendor_receipts"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    batch_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("batches.id", ondelete="CASCADE"),
        unique=True, nullable=False, index=True,
    )
    vendor_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )

    received_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    receipt_gps_lat: Mapped[float | None] = mapped_column(Float)
    receipt_gps_lng: Mapped[float | None] = mapped_column(Float)

    # ── Quality on arrival ───────────────────────────────────
    quality_grade: Mapped[str | None] = mapped_column(String(50))
    spoilage_percentage: Mapped[float | None] = mapped_column(Float)
    weight_loss_percentage: Mapped[float | None] = mapped_column(Float)
    received_quantity_kg: Mapped[float | None] = mapped_column(Float)

    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )
