"""Pydantic schemas for batches and the aggregated batch view."""

from datetime import datetime

from pydantic import BaseModel, Field, model_validator

from croptrail.models.batch import BatchStatus
from croptrail.schemas.analysis import AIAnalysisOut
from croptrail.schemas.environment import EnvironmentalDataOut, SnapshotOutcome
from croptrail.schemas.receipt import VendorReceiptOut
from croptrail.schemas.transport import TransportLogOut


# ── Create ───────────────────────────────────────────────────

class BatchCreate(BaseModel):
    """Payload for POST /api/batches.

    GPS is optional, but latitude and longitude must be given together.
    Without them no harvest snapshot is taken.
    """
    crop_type: str = Field(..., min_length=1, max_length=100)
    harvest_time: datetime
    expected_quality: str = Field(..., min_length=1, max_length=100)
    quantity_kg: float = Field(..., gt=0)

    farm_gps_lat: float | None = Field(None, ge=-90, le=90)
    farm_gps_lng: float | None = Field(None, ge=-180, le=180)
    farm_address: str | None = None
    notes: str | None = None

    @model_validator(mode="after")
    def gps_pair(self):
        if (self.farm_gps_lat is None) != (self.farm_gps_lng is None):
            raise ValueError("farm_gps_lat and farm_gps_lng must be provided together")
        return self


# ── Update (partial) ─────────────────────────────────────────

class BatchUpdate(BaseModel):
    expected_quality: str | None = Field(None, min_length=1, max_length=100)
    farm_address: str | None = None
    notes: str | None = None

    model_config = {"extra": "forbid"}


# ── Response ─────────────────────────────────────────────────

class BatchOut(BaseModel):
    id: str
    farmer_id: str
    crop_type: str
    harvest_time: datetime
    expected_quality: str
    quantity_kg: float
    farm_gps_lat: float | None
    farm_gps_lng: float | None
    farm_address: str | None
    status: BatchStatus
    notes: str | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class BatchCreateResponse(BaseModel):
    batch: BatchOut
    harvest_snapshot: SnapshotOutcome


# ── Aggregated view ──────────────────────────────────────────

class BatchView(BatchOut):
    """A batch joined with every related row the caller may see."""
    transport_log: TransportLogOut | None = None
    vendor_receipt: VendorReceiptOut | None = None
    environmental_data: list[EnvironmentalDataOut] = []
    ai_analysis: AIAnalysisOut | None = None
