"""Pydantic schemas for route calculation."""

from pydantic import BaseModel, Field


class Coordinates(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class RouteRequest(BaseModel):
    origin: Coordinates
    destination: Coordinates


class RouteResponse(BaseModel):
    distance_meters: int
    distance_km: float
    duration_seconds: int
    duration_text: str
    encoded_polyline: str | None = None
