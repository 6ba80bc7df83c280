"""Pydantic schemas for vendor receipts."""

from datetime import datetime

from pydantic import BaseModel, Field, model_validator

from croptrail.models.batch import BatchStatus
from croptrail.schemas.analysis import AIAnalysisOut
from croptrail.schemas.environment import SnapshotOutcome


class ReceiptConfirmRequest(BaseModel):
    """Payload for POST /api/batches/{id}/receipt/confirm."""
    quality_grade: str | None = Field(None, max_length=50)
    received_quantity_kg: float | None = Field(None, ge=0)
    spoilage_percentage: float | None = Field(None, ge=0, le=100)
    weight_loss_percentage: float | None = Field(None, ge=0, le=100)
    notes: str | None = None

    latitude: float | None = Field(None, ge=-90, le=90)
    longitude: float | None = Field(None, ge=-180, le=180)

    @model_validator(mode="after")
    def location_pair(self):
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude must be provided together")
        return self


class VendorReceiptOut(BaseModel):
    id: str
    batch_id: str
    vendor_id: str
    received_at: datetime | None
    receipt_gps_lat: float | None
    receipt_gps_lng: float | None
    quality_grade: str | None
    spoilage_percentage: float | None
    weight_loss_percentage: float | None
    received_quantity_kg: float | None
    notes: str | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ReceiptClaimResponse(BaseModel):
    batch_id: str
    status: BatchStatus
    vendor_receipt: VendorReceiptOut


class ReceiptConfirmResponse(BaseModel):
    """Receipt confirmation plus the outcome of the follow-up analysis.

    ``analysis`` is set when it succeeded; otherwise ``analysis_error``
    carries the reason and the batch stays ``received``.
    """
    batch_id: str
    status: BatchStatus
    vendor_receipt: VendorReceiptOut
    snapshot: SnapshotOutcome | None = None
    analysis: AIAnalysisOut | None = None
    analysis_error: str | None = None
