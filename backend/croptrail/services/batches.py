"""Batch creation and farmer edits.

Creating a batch:
  - checks the batches INSERT policy (role=farmer, farmer_id == caller)
  - stores the batch with status ``created``
  - takes a best-effort harvest snapshot when farm GPS is given
"""

import json
import logging

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from croptrail.auth.policies import Actor, Operation, Table, enforce
from croptrail.models.batch import Batch, BatchStatus
from croptrail.models.environmental_data import EnvironmentalStage
from croptrail.schemas.batch import BatchCreate, BatchUpdate
from croptrail.schemas.environment import SnapshotOutcome
from croptrail.services.access import load_batch_context
from croptrail.services.environment import capture_snapshot

logger = logging.getLogger(__name__)


async def create_batch(
    db: AsyncSession,
    client: httpx.AsyncClient,
    actor: Actor,
    body: BatchCreate,
) -> tuple[Batch, SnapshotOutcome]:
    enforce(
        Table.BATCHES, Operation.INSERT, actor, {"farmer_id": actor.user_id},
        message="Only farmers can create batches",
    )

    batch = Batch(
        farmer_id=actor.user_id,
        crop_type=body.crop_type,
        harvest_time=body.harvest_time,
        expected_quality=body.expected_quality,
        quantity_kg=body.quantity_kg,
        farm_gps_lat=body.farm_gps_lat,
        farm_gps_lng=body.farm_gps_lng,
        farm_address=body.farm_address,
        notes=body.notes,
        status=BatchStatus.CREATED,
    )
    db.add(batch)
    await db.flush()  # populate batch.id
    logger.info(f"Batch {batch.id} created by farmer {actor.user_id} ({batch.crop_type})")

    outcome = await capture_snapshot(
        db, client, batch.id, EnvironmentalStage.HARVEST,
        body.farm_gps_lat, body.farm_gps_lng,
    )
    return batch, outcome


async def update_batch(
    db: AsyncSession,
    actor: Actor,
    batch_id: str,
    body: BatchUpdate,
) -> Batch:
    """Apply a farmer's partial edit.  Status is never writable here."""
    ctx = await load_batch_context(db, actor, batch_id)
    enforce(
        Table.BATCHES, Operation.UPDATE, actor, ctx.batch,
        message="Only the farmer who created this batch can edit it",
    )

    for field, value in body.model_dump(exclude_unset=True).items():
        setattr(ctx.batch, field, value)
    await db.flush()
    return ctx.batch


def qr_payload(batch: Batch) -> str:
    """Compact JSON encoded into the batch QR code."""
    return json.dumps({
        "batch_id": batch.id,
        "crop": batch.crop_type,
        "quantity_kg": batch.quantity_kg,
        "harvest_time": batch.harvest_time.isoformat() if batch.harvest_time else None,
        "status": BatchStatus(batch.status).value,
    }, separators=(",", ":"))
