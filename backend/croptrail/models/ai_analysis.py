import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from croptrail.database import Base
from croptrail.utils.clock import utcnow


class AIAnalysis(Base):
    """LLM-produced quality assessment, upserted once per batch."""

    __tablename__ = "ai_analysis"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    batch_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("batches.id", ondelete="CASCADE"),
        unique=True, nullable=False, index=True,
    )
    analyzed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    degradation_point: Mapped[str | None] = mapped_column(Text)
    environmental_impact: Mapped[str | None] = mapped_column(Text)
    # Free text, e.g. "Medium - transport temperature data missing"
    confidence_level: Mapped[str | None] = mapped_column(Text)
    farmer_suggestions: Mapped[str | None] = mapped_column(Text)
    transporter_suggestions: Mapped[str | None] = mapped_column(Text)
    vendor_suggestions: Mapped[str | None] = mapped_column(Text)
    # The whole structured result, including the summary
    full_analysis: Mapped[dict | None] = mapped_column(JSON)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
