"""Pydantic schemas for environmental snapshots."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from croptrail.models.environmental_data import EnvironmentalStage


class WeatherSnapshot(BaseModel):
    """Conditions at one point in time, before they are tied to a batch."""
    temperature_celsius: float | None = None
    humidity_percentage: float | None = None
    weather_condition: str | None = None
    air_quality_index: int | None = None
    uv_index: float | None = None
    precipitation_mm: float | None = None
    wind_speed_kmh: float | None = None
    raw: dict = Field(default_factory=dict)


# Stored when the weather API cannot be reached.
FALLBACK_SNAPSHOT = WeatherSnapshot(
    temperature_celsius=25,
    humidity_percentage=60,
    weather_condition="Unknown",
    air_quality_index=50,
    uv_index=5,
    precipitation_mm=0,
    wind_speed_kmh=10,
)


class EnvironmentalFetchRequest(BaseModel):
    """Payload for POST /api/environmental-data."""
    batch_id: str = Field(..., min_length=1)
    stage: EnvironmentalStage
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class EnvironmentalDataOut(BaseModel):
    id: str
    batch_id: str
    stage: str
    recorded_at: datetime
    gps_lat: float | None
    gps_lng: float | None
    temperature_celsius: float | None
    humidity_percentage: float | None
    weather_condition: str | None
    air_quality_index: int | None
    uv_index: float | None
    precipitation_mm: float | None
    wind_speed_kmh: float | None
    raw_api_response: dict | None
    created_at: datetime

    model_config = {"from_attributes": True}


class EnvironmentalFetchResponse(BaseModel):
    success: bool = True
    fallback: bool
    data: EnvironmentalDataOut


class SnapshotOutcome(BaseModel):
    """Result of a best-effort snapshot taken alongside another action."""
    status: Literal["captured", "skipped", "failed"]
    stage: EnvironmentalStage
    detail: str | None = None
    data: EnvironmentalDataOut | None = None
