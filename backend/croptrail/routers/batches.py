"""Batch router: creation, views and farmer edits.

Endpoints:
    POST   /api/batches                Create batch (+ harvest snapshot)
    GET    /api/batches                List visible batches as full views
    GET    /api/batches/{batch_id}     Single batch view
    PATCH  /api/batches/{batch_id}     Farmer edits quality / address / notes
    GET    /api/batches/{batch_id}/qr  QR code SVG for the batch
"""

import io

import httpx
import segno
from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from croptrail.auth.deps import get_actor
from croptrail.auth.policies import Actor
from croptrail.clients.http import get_http_client
from croptrail.database import get_db
from croptrail.models.batch import BatchStatus
from croptrail.schemas.batch import (
    BatchCreate,
    BatchCreateResponse,
    BatchOut,
    BatchUpdate,
    BatchView,
)
from croptrail.services.access import load_batch_context
from croptrail.services.aggregation import collect_batch_views, get_batch_view
from croptrail.services.batches import create_batch, qr_payload, update_batch

router = APIRouter()


# ── Create ───────────────────────────────────────────────────

@router.post("", response_model=BatchCreateResponse, status_code=status.HTTP_201_CREATED)
async def create(
    body: BatchCreate,
    db: AsyncSession = Depends(get_db),
    client: httpx.AsyncClient = Depends(get_http_client),
    actor: Actor = Depends(get_actor),
):
    """Create a batch in status ``created``.

    When farm GPS is given the harvest conditions are looked up too; the
    outcome of that lookup is reported in ``harvest_snapshot`` and never
    fails the request.
    """
    batch, outcome = await create_batch(db, client, actor, body)
    return BatchCreateResponse(batch=BatchOut.model_validate(batch), harvest_snapshot=outcome)


# ── List / detail ────────────────────────────────────────────

@router.get("", response_model=list[BatchView])
async def list_batches(
    batch_status: BatchStatus | None = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    # Newest first
    return await collect_batch_views(db, actor, status=batch_status)


@router.get("/{batch_id}", response_model=BatchView)
async def get_batch(
    batch_id: str,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return await get_batch_view(db, actor, batch_id)


# ── Update ───────────────────────────────────────────────────

@router.patch("/{batch_id}", response_model=BatchOut)
async def update(
    batch_id: str,
    body: BatchUpdate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    batch = await update_batch(db, actor, batch_id, body)
    return BatchOut.model_validate(batch)


# ── QR code ──────────────────────────────────────────────────

@router.get("/{batch_id}/qr")
async def get_batch_qr(
    batch_id: str,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    """Return an SVG QR code encoding the batch's traceability summary."""
    ctx = await load_batch_context(db, actor, batch_id)

    qr = segno.make(qr_payload(ctx.batch))
    buf = io.BytesIO()
    qr.save(buf, kind="svg", scale=4, dark="#15803d")
    return Response(content=buf.getvalue(), media_type="image/svg+xml")
