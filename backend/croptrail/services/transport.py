"""Transporter actions on a batch.

    accept      created               → assigned_transporter  (creates the log)
    pickup      assigned_transporter  → picked_up             (+ pickup snapshot)
    in_transit  picked_up             → in_transit
    deliver     picked_up|in_transit  → delivered             (+ delivery snapshot)

Only the transporter named on the batch's log may perform the last three.
"""

import logging

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from croptrail.auth.policies import Actor, Operation, Table, enforce
from croptrail.lifecycle import apply_transition, check_transition
from croptrail.middleware.exceptions import ConflictError, PermissionDeniedError
from croptrail.models.environmental_data import EnvironmentalStage
from croptrail.models.profile import UserRole
from croptrail.models.transport_log import TransportLog
from croptrail.schemas.environment import SnapshotOutcome
from croptrail.schemas.transport import DeliveryRequest, PickupRequest
from croptrail.services.access import BatchContext, load_batch_context
from croptrail.services.environment import capture_snapshot
from croptrail.utils.clock import utcnow

logger = logging.getLogger(__name__)


def _require_transporter(actor: Actor) -> None:
    if actor.role != UserRole.TRANSPORTER:
        raise PermissionDeniedError("Only transporters can handle batch transport")


async def _load_assigned(db: AsyncSession, actor: Actor, batch_id: str) -> BatchContext:
    """Load the batch and check the caller is its assigned transporter."""
    _require_transporter(actor)
    ctx = await load_batch_context(db, actor, batch_id)
    if ctx.transport_log is None:
        raise ConflictError("Batch has not been accepted by a transporter")
    enforce(
        Table.TRANSPORT_LOGS, Operation.UPDATE, actor, ctx.transport_log,
        message="Only the assigned transporter can update this batch",
    )
    return ctx


async def accept_transport(
    db: AsyncSession,
    actor: Actor,
    batch_id: str,
) -> BatchContext:
    _require_transporter(actor)
    ctx = await load_batch_context(db, actor, batch_id)

    if ctx.transport_log is not None:
        raise ConflictError(
            "Batch already has a transporter", error_code="BATCH_ALREADY_CLAIMED"
        )
    check_transition(ctx.batch.status, "accept_transport")

    log = TransportLog(batch_id=batch_id, transporter_id=actor.user_id)
    enforce(Table.TRANSPORT_LOGS, Operation.INSERT, actor, log)
    db.add(log)
    apply_transition(ctx.batch, "accept_transport", actor.role)
    await db.flush()

    logger.info(f"Transporter {actor.user_id} accepted batch {batch_id}")
    ctx.transport_log = log
    return ctx


async def record_pickup(
    db: AsyncSession,
    client: httpx.AsyncClient,
    actor: Actor,
    batch_id: str,
    body: PickupRequest,
) -> tuple[BatchContext, SnapshotOutcome]:
    ctx = await _load_assigned(db, actor, batch_id)
    apply_transition(ctx.batch, "record_pickup", actor.role)

    log = ctx.transport_log
    log.pickup_time = utcnow()
    log.pickup_gps_lat = body.latitude
    log.pickup_gps_lng = body.longitude
    log.transport_type = body.transport_type
    log.vehicle_info = body.vehicle_info
    log.temperature_maintained = body.temperature_maintained
    if body.notes is not None:
        log.notes = body.notes
    await db.flush()

    # Without a device location the pickup happens at the farm.
    lat, lng = body.latitude, body.longitude
    if lat is None:
        lat, lng = ctx.batch.farm_gps_lat, ctx.batch.farm_gps_lng

    outcome = await capture_snapshot(
        db, client, batch_id, EnvironmentalStage.TRANSPORT_PICKUP, lat, lng
    )
    logger.info(f"Batch {batch_id} picked up by {actor.user_id}")
    return ctx, outcome


async def mark_in_transit(
    db: AsyncSession,
    actor: Actor,
    batch_id: str,
) -> BatchContext:
    ctx = await _load_assigned(db, actor, batch_id)
    apply_transition(ctx.batch, "mark_in_transit", actor.role)
    await db.flush()
    return ctx


async def record_delivery(
    db: AsyncSession,
    client: httpx.AsyncClient,
    actor: Actor,
    batch_id: str,
    body: DeliveryRequest,
) -> tuple[BatchContext, SnapshotOutcome]:
    ctx = await _load_assigned(db, actor, batch_id)
    apply_transition(ctx.batch, "record_delivery", actor.role)

    log = ctx.transport_log
    log.drop_time = utcnow()
    log.drop_gps_lat = body.latitude
    log.drop_gps_lng = body.longitude
    log.delay_reason = body.delay_reason
    if body.notes is not None:
        log.notes = body.notes
    await db.flush()

    outcome = await capture_snapshot(
        db, client, batch_id, EnvironmentalStage.TRANSPORT_DELIVERY,
        body.latitude, body.longitude,
    )
    logger.info(f"Batch {batch_id} delivered by {actor.user_id}")
    return ctx, outcome
