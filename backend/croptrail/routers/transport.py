"""Transporter actions, mounted under /api/batches.

    POST /{batch_id}/transport/accept      claim a created batch
    POST /{batch_id}/transport/pickup      record pickup
    POST /{batch_id}/transport/in-transit  mark the batch on the road
    POST /{batch_id}/transport/deliver     record delivery
"""

import httpx
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from croptrail.auth.deps import get_actor
from croptrail.auth.policies import Actor
from croptrail.clients.http import get_http_client
from croptrail.database import get_db
from croptrail.schemas.environment import SnapshotOutcome
from croptrail.schemas.transport import (
    DeliveryRequest,
    PickupRequest,
    TransportActionResponse,
    TransportLogOut,
)
from croptrail.services import transport
from croptrail.services.access import BatchContext

router = APIRouter()


def _response(ctx: BatchContext, snapshot: SnapshotOutcome | None = None) -> TransportActionResponse:
    return TransportActionResponse(
        batch_id=ctx.batch.id,
        status=ctx.batch.status,
        transport_log=TransportLogOut.model_validate(ctx.transport_log),
        snapshot=snapshot,
    )


@router.post("/{batch_id}/transport/accept", response_model=TransportActionResponse)
async def accept(
    batch_id: str,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    ctx = await transport.accept_transport(db, actor, batch_id)
    return _response(ctx)


@router.post("/{batch_id}/transport/pickup", response_model=TransportActionResponse)
async def pickup(
    batch_id: str,
    body: PickupRequest,
    db: AsyncSession = Depends(get_db),
    client: httpx.AsyncClient = Depends(get_http_client),
    actor: Actor = Depends(get_actor),
):
    ctx, outcome = await transport.record_pickup(db, client, actor, batch_id, body)
    return _response(ctx, outcome)


@router.post("/{batch_id}/transport/in-transit", response_model=TransportActionResponse)
async def in_transit(
    batch_id: str,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    ctx = await transport.mark_in_transit(db, actor, batch_id)
    return _response(ctx)


@router.post("/{batch_id}/transport/deliver", response_model=TransportActionResponse)
async def deliver(
    batch_id: str,
    body: DeliveryRequest,
    db: AsyncSession = Depends(get_db),
    client: httpx.AsyncClient = Depends(get_http_client),
    actor: Actor = Depends(get_actor),
):
    ctx, outcome = await transport.record_delivery(db, client, actor, batch_id, body)
    return _response(ctx, outcome)
