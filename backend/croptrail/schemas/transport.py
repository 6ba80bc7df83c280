"""Pydantic schemas for transporter actions."""

from datetime import datetime

from pydantic import BaseModel, Field, model_validator

from croptrail.models.batch import BatchStatus
from croptrail.schemas.environment import SnapshotOutcome


class _OptionalLocation(BaseModel):
    latitude: float | None = Field(None, ge=-90, le=90)
    longitude: float | None = Field(None, ge=-180, le=180)

    @model_validator(mode="after")
    def location_pair(self):
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude must be provided together")
        return self


class PickupRequest(_OptionalLocation):
    transport_type: str | None = Field(None, max_length=100)
    vehicle_info: str | None = Field(None, max_length=255)
    temperature_maintained: str | None = Field(None, max_length=100)
    notes: str | None = None


class DeliveryRequest(_OptionalLocation):
    delay_reason: str | None = None
    notes: str | None = None


class TransportLogOut(BaseModel):
    id: str
    batch_id: str
    transporter_id: str
    pickup_time: datetime | None
    pickup_gps_lat: float | None
    pickup_gps_lng: float | None
    drop_time: datetime | None
    drop_gps_lat: float | None
    drop_gps_lng: float | None
    transport_type: str | None
    vehicle_info: str | None
    delay_reason: str | None
    temperature_maintained: str | None
    notes: str | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class TransportActionResponse(BaseModel):
    """Result of any transporter action on a batch."""
    batch_id: str
    status: BatchStatus
    transport_log: TransportLogOut
    snapshot: SnapshotOutcome | None = None
