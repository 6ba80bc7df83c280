"""Denormalized batch views.

    1. select the batches the caller may see (SQL form of the policy)
    2. select every related row for those batch IDs, one query per table
    3. compute participants per batch
    4. drop related rows the caller's SELECT policy denies
    5. join by batch_id

The view is rebuilt from the database on every call.
"""

from collections import defaultdict

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from croptrail.auth.policies import (
    Actor,
    BatchParticipants,
    Operation,
    Table,
    is_allowed,
    visible_batches_clause,
)
from croptrail.middleware.exceptions import ResourceNotFoundError
from croptrail.models.ai_analysis import AIAnalysis
from croptrail.models.batch import Batch, BatchStatus
from croptrail.models.environmental_data import EnvironmentalData
from croptrail.models.transport_log import TransportLog
from croptrail.models.vendor_receipt import VendorReceipt
from croptrail.schemas.analysis import AIAnalysisOut
from croptrail.schemas.batch import BatchOut, BatchView
from croptrail.schemas.environment import EnvironmentalDataOut
from croptrail.schemas.receipt import VendorReceiptOut
from croptrail.schemas.transport import TransportLogOut


async def _rows_for(db: AsyncSession, model, batch_ids: list[str], order_by=None):
    stmt = select(model).where(model.batch_id.in_(batch_ids))
    if order_by is not None:
        stmt = stmt.order_by(order_by)
    return (await db.execute(stmt)).scalars().all()


async def collect_batch_views(
    db: AsyncSession,
    actor: Actor,
    status: BatchStatus | None = None,
    batch_id: str | None = None,
) -> list[BatchView]:
    stmt = select(Batch).where(visible_batches_clause(actor))
    if status is not None:
        stmt = stmt.where(Batch.status == status)
    if batch_id is not None:
        stmt = stmt.where(Batch.id == batch_id)
    batches = (
        await db.execute(stmt.order_by(Batch.created_at.desc(), Batch.id))
    ).scalars().all()
    if not batches:
        return []

    ids = [b.id for b in batches]
    logs = await _rows_for(db, TransportLog, ids)
    receipts = await _rows_for(db, VendorReceipt, ids)
    env_rows = await _rows_for(db, EnvironmentalData, ids, EnvironmentalData.recorded_at.asc())
    analyses = await _rows_for(db, AIAnalysis, ids)

    logs_by_batch = defaultdict(list)
    for log in logs:
        logs_by_batch[log.batch_id].append(log)
    receipts_by_batch = defaultdict(list)
    for receipt in receipts:
        receipts_by_batch[receipt.batch_id].append(receipt)
    env_by_batch = defaultdict(list)
    for env in env_rows:
        env_by_batch[env.batch_id].append(env)
    analysis_by_batch = {a.batch_id: a for a in analyses}

    views: list[BatchView] = []
    for batch in batches:
        participants = BatchParticipants.build(
            batch, logs_by_batch[batch.id], receipts_by_batch[batch.id]
        )

        def visible(table: Table, row) -> bool:
            return is_allowed(table, Operation.SELECT, actor, row, participants)

        log = next(
            (r for r in logs_by_batch[batch.id] if visible(Table.TRANSPORT_LOGS, r)), None
        )
        receipt = next(
            (r for r in receipts_by_batch[batch.id] if visible(Table.VENDOR_RECEIPTS, r)), None
        )
        analysis = analysis_by_batch.get(batch.id)
        if analysis is not None and not visible(Table.AI_ANALYSIS, analysis):
            analysis = None

        views.append(BatchView(
            **BatchOut.model_validate(batch).model_dump(),
            transport_log=TransportLogOut.model_validate(log) if log else None,
            vendor_receipt=VendorReceiptOut.model_validate(receipt) if receipt else None,
            environmental_data=[
                EnvironmentalDataOut.model_validate(e)
                for e in env_by_batch[batch.id]
                if visible(Table.ENVIRONMENTAL_DATA, e)
            ],
            ai_analysis=AIAnalysisOut.model_validate(analysis) if analysis else None,
        ))
    return views


async def get_batch_view(db: AsyncSession, actor: Actor, batch_id: str) -> BatchView:
    views = await collect_batch_views(db, actor, batch_id=batch_id)
    if not views:
        raise ResourceNotFoundError("Batch", batch_id)
    return views[0]
