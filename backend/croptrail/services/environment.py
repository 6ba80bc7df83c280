"""Environmental snapshots: weather plus best-effort air quality per stage.

Two entry points:

  record_environmental_data  explicit request; substitutes fallback values
                             when the weather API fails and says so.
  capture_snapshot           taken alongside another action (batch creation,
                             pickup, delivery, receipt); never substitutes
                             values and never raises for upstream failures.
"""

import logging

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from croptrail.auth.policies import Actor, Operation, Table, enforce
from croptrail.clients.weather import fetch_air_quality, fetch_weather
from croptrail.middleware.exceptions import ConflictError, UpstreamServiceError
from croptrail.models.environmental_data import EnvironmentalData, EnvironmentalStage
from croptrail.schemas.environment import (
    FALLBACK_SNAPSHOT,
    EnvironmentalDataOut,
    EnvironmentalFetchRequest,
    SnapshotOutcome,
    WeatherSnapshot,
)
from croptrail.services.access import load_batch_context

logger = logging.getLogger(__name__)


async def _stage_recorded(db: AsyncSession, batch_id: str, stage: EnvironmentalStage) -> bool:
    existing = await db.execute(
        select(EnvironmentalData.id).where(
            EnvironmentalData.batch_id == batch_id,
            EnvironmentalData.stage == stage.value,
        )
    )
    return existing.first() is not None


async def _lookup_conditions(
    client: httpx.AsyncClient,
    latitude: float,
    longitude: float,
) -> WeatherSnapshot:
    """Weather first, then air quality.  Raises only for weather failures."""
    snapshot = await fetch_weather(client, latitude, longitude)
    aqi, aqi_raw = await fetch_air_quality(client, latitude, longitude)
    snapshot.air_quality_index = aqi
    if aqi_raw is not None:
        snapshot.raw["air_quality"] = aqi_raw
    return snapshot


def _to_row(
    batch_id: str,
    stage: EnvironmentalStage,
    latitude: float,
    longitude: float,
    snapshot: WeatherSnapshot,
) -> EnvironmentalData:
    return EnvironmentalData(
        batch_id=batch_id,
        stage=stage.value,
        gps_lat=latitude,
        gps_lng=longitude,
        temperature_celsius=snapshot.temperature_celsius,
        humidity_percentage=snapshot.humidity_percentage,
        weather_condition=snapshot.weather_condition,
        air_quality_index=snapshot.air_quality_index,
        uv_index=snapshot.uv_index,
        precipitation_mm=snapshot.precipitation_mm,
        wind_speed_kmh=snapshot.wind_speed_kmh,
        raw_api_response=snapshot.raw,
    )


async def record_environmental_data(
    db: AsyncSession,
    client: httpx.AsyncClient,
    actor: Actor,
    body: EnvironmentalFetchRequest,
) -> tuple[EnvironmentalData, bool]:
    """Fetch and store conditions for one stage of a batch.

    Returns (row, fallback).  ``fallback`` is True when the weather API
    failed and the placeholder values were stored instead.

    Raises:
        ResourceNotFoundError: batch unknown or not visible to the caller
        PermissionDeniedError: caller is not a participant of the batch
        ConflictError: the stage already has a snapshot
    """
    ctx = await load_batch_context(db, actor, body.batch_id)
    enforce(
        Table.ENVIRONMENTAL_DATA, Operation.INSERT, actor,
        {"batch_id": body.batch_id}, ctx.participants,
        message="Only participants of a batch can record its environmental data",
    )

    if await _stage_recorded(db, body.batch_id, body.stage):
        raise ConflictError(
            f"Environmental data for stage '{body.stage.value}' is already recorded",
            error_code="STAGE_ALREADY_RECORDED",
        )

    fallback = False
    try:
        snapshot = await _lookup_conditions(client, body.latitude, body.longitude)
    except UpstreamServiceError as exc:
        logger.warning(
            f"Weather lookup failed for batch {body.batch_id} ({body.stage.value}), "
            f"storing fallback values: {exc.message}"
        )
        snapshot = FALLBACK_SNAPSHOT.model_copy(
            update={"raw": {"source": "fallback", "reason": exc.message}}
        )
        fallback = True

    row = _to_row(body.batch_id, body.stage, body.latitude, body.longitude, snapshot)
    db.add(row)
    await db.flush()

    logger.info(
        f"Recorded {body.stage.value} conditions for batch {body.batch_id}"
        f"{' (fallback)' if fallback else ''}"
    )
    return row, fallback


async def capture_snapshot(
    db: AsyncSession,
    client: httpx.AsyncClient,
    batch_id: str,
    stage: EnvironmentalStage,
    latitude: float | None,
    longitude: float | None,
) -> SnapshotOutcome:
    """Best-effort snapshot taken as a side effect of another action.

    The caller has already authorized the action.  Upstream failures are
    logged and reported in the outcome; nothing is stored for them.
    """
    if latitude is None or longitude is None:
        return SnapshotOutcome(
            status="skipped", stage=stage, detail="No GPS coordinates provided"
        )

    if await _stage_recorded(db, batch_id, stage):
        return SnapshotOutcome(
            status="skipped", stage=stage, detail="Stage already recorded"
        )

    try:
        snapshot = await _lookup_conditions(client, latitude, longitude)
    except UpstreamServiceError as exc:
        logger.warning(f"Skipping {stage.value} snapshot for batch {batch_id}: {exc.message}")
        return SnapshotOutcome(status="failed", stage=stage, detail=exc.message)

    row = _to_row(batch_id, stage, latitude, longitude, snapshot)
    db.add(row)
    await db.flush()
    return SnapshotOutcome(
        status="captured",
        stage=stage,
        data=EnvironmentalDataOut.model_validate(row),
    )
