"""Vendor actions, mounted under /api/batches.

    POST /{batch_id}/receipt/accept   claim an incoming batch
    POST /{batch_id}/receipt/confirm  confirm arrival, then analyze
"""

import httpx
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from croptrail.auth.deps import get_actor
from croptrail.auth.policies import Actor
from croptrail.clients.http import get_http_client
from croptrail.database import get_db
from croptrail.schemas.analysis import AIAnalysisOut
from croptrail.schemas.receipt import (
    ReceiptClaimResponse,
    ReceiptConfirmRequest,
    ReceiptConfirmResponse,
    VendorReceiptOut,
)
from croptrail.services.receipts import accept_receipt, confirm_receipt

router = APIRouter()


@router.post("/{batch_id}/receipt/accept", response_model=ReceiptClaimResponse)
async def accept(
    batch_id: str,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    ctx = await accept_receipt(db, actor, batch_id)
    return ReceiptClaimResponse(
        batch_id=ctx.batch.id,
        status=ctx.batch.status,
        vendor_receipt=VendorReceiptOut.model_validate(ctx.vendor_receipt),
    )


@router.post("/{batch_id}/receipt/confirm", response_model=ReceiptConfirmResponse)
async def confirm(
    batch_id: str,
    body: ReceiptConfirmRequest,
    db: AsyncSession = Depends(get_db),
    client: httpx.AsyncClient = Depends(get_http_client),
    actor: Actor = Depends(get_actor),
):
    """Confirm arrival quality.

    The analysis runs right after; if it fails the receipt is still
    recorded and ``analysis_error`` says why.
    """
    ctx, outcome, analysis, analysis_error = await confirm_receipt(
        db, client, actor, batch_id, body
    )
    return ReceiptConfirmResponse(
        batch_id=ctx.batch.id,
        status=ctx.batch.status,
        vendor_receipt=VendorReceiptOut.model_validate(ctx.vendor_receipt),
        snapshot=outcome,
        analysis=AIAnalysisOut.model_validate(analysis) if analysis else None,
        analysis_error=analysis_error,
    )
