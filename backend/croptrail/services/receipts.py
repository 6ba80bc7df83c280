"""Vendor claim and receipt confirmation.

A vendor claims an incoming batch (in_transit or delivered) by creating
its receipt row; the status does not change.  Confirming receipt moves
a delivered batch to ``received``, stores the arrival quality, takes a
receipt snapshot and then runs the analysis.  When the analysis fails
the receipt still stands and the batch stays ``received``.
"""

import logging

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from croptrail.auth.policies import Actor, Operation, Table, enforce
from croptrail.lifecycle import VENDOR_CLAIMABLE, apply_transition
from croptrail.middleware.exceptions import (
    ConflictError,
    CropTrailException,
    InvalidTransitionError,
    PermissionDeniedError,
)
from croptrail.models.ai_analysis import AIAnalysis
from croptrail.models.batch import BatchStatus
from croptrail.models.environmental_data import EnvironmentalStage
from croptrail.models.profile import UserRole
from croptrail.models.vendor_receipt import VendorReceipt
from croptrail.schemas.environment import SnapshotOutcome
from croptrail.schemas.receipt import ReceiptConfirmRequest
from croptrail.services.access import BatchContext, load_batch_context
from croptrail.services.analysis import run_analysis
from croptrail.services.environment import capture_snapshot
from croptrail.utils.clock import utcnow

logger = logging.getLogger(__name__)


def _require_vendor(actor: Actor) -> None:
    if actor.role != UserRole.VENDOR:
        raise PermissionDeniedError("Only vendors can receive batches")


async def accept_receipt(
    db: AsyncSession,
    actor: Actor,
    batch_id: str,
) -> BatchContext:
    _require_vendor(actor)
    ctx = await load_batch_context(db, actor, batch_id)

    if ctx.vendor_receipt is not None:
        raise ConflictError(
            "Batch already has a receiving vendor", error_code="BATCH_ALREADY_CLAIMED"
        )
    if BatchStatus(ctx.batch.status) not in VENDOR_CLAIMABLE:
        allowed = ", ".join(sorted(s.value for s in VENDOR_CLAIMABLE))
        raise InvalidTransitionError(
            f"Cannot accept a batch in status '{BatchStatus(ctx.batch.status).value}' "
            f"(expected: {allowed})"
        )

    receipt = VendorReceipt(batch_id=batch_id, vendor_id=actor.user_id)
    enforce(Table.VENDOR_RECEIPTS, Operation.INSERT, actor, receipt)
    db.add(receipt)
    await db.flush()

    logger.info(f"Vendor {actor.user_id} accepted batch {batch_id}")
    ctx.vendor_receipt = receipt
    return ctx


async def confirm_receipt(
    db: AsyncSession,
    client: httpx.AsyncClient,
    actor: Actor,
    batch_id: str,
    body: ReceiptConfirmRequest,
) -> tuple[BatchContext, SnapshotOutcome, AIAnalysis | None, str | None]:
    """Confirm arrival and analyze.

    Returns (context, snapshot outcome, analysis row or None, analysis error or None).
    """
    _require_vendor(actor)
    ctx = await load_batch_context(db, actor, batch_id)
    if ctx.vendor_receipt is None:
        raise ConflictError("Batch has not been accepted by a vendor")
    enforce(
        Table.VENDOR_RECEIPTS, Operation.UPDATE, actor, ctx.vendor_receipt,
        message="Only the vendor who accepted this batch can confirm receipt",
    )

    apply_transition(ctx.batch, "confirm_receipt", actor.role)

    receipt = ctx.vendor_receipt
    receipt.received_at = utcnow()
    receipt.receipt_gps_lat = body.latitude
    receipt.receipt_gps_lng = body.longitude
    receipt.quality_grade = body.quality_grade
    receipt.received_quantity_kg = body.received_quantity_kg
    receipt.spoilage_percentage = body.spoilage_percentage
    receipt.weight_loss_percentage = body.weight_loss_percentage
    if body.notes is not None:
        receipt.notes = body.notes
    await db.flush()
    logger.info(f"Vendor {actor.user_id} confirmed receipt of batch {batch_id}")

    outcome = await capture_snapshot(
        db, client, batch_id, EnvironmentalStage.RECEIPT, body.latitude, body.longitude
    )

    analysis: AIAnalysis | None = None
    analysis_error: str | None = None
    try:
        analysis, _ = await run_analysis(db, client, actor, batch_id)
    except CropTrailException as exc:
        logger.warning(f"Automatic analysis of batch {batch_id} failed: {exc.message}")
        analysis_error = exc.message

    return ctx, outcome, analysis, analysis_error
