"""Policy-checked loading of a single batch and its related rows.

Every lifecycle service starts here.  A batch the caller may not SELECT is
reported as not found, so callers cannot probe for batch IDs.
"""

from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from croptrail.auth.policies import Actor, BatchParticipants, Operation, Table, is_allowed
from croptrail.middleware.exceptions import ResourceNotFoundError
from croptrail.models.batch import Batch
from croptrail.models.transport_log import TransportLog
from croptrail.models.vendor_receipt import VendorReceipt


@dataclass
class BatchContext:
    batch: Batch
    transport_log: TransportLog | None
    vendor_receipt: VendorReceipt | None

    @property
    def participants(self) -> BatchParticipants:
        return BatchParticipants.build(
            self.batch,
            [self.transport_log] if self.transport_log else [],
            [self.vendor_receipt] if self.vendor_receipt else [],
        )


async def load_batch_context(
    db: AsyncSession,
    actor: Actor,
    batch_id: str,
) -> BatchContext:
    """Load a batch with its transport log and receipt, or raise 404."""
    batch = (
        await db.execute(select(Batch).where(Batch.id == batch_id))
    ).scalar_one_or_none()
    if batch is None:
        raise ResourceNotFoundError("Batch", batch_id)

    transport_log = (
        await db.execute(select(TransportLog).where(TransportLog.batch_id == batch_id))
    ).scalar_one_or_none()
    vendor_receipt = (
        await db.execute(select(VendorReceipt).where(VendorReceipt.batch_id == batch_id))
    ).scalar_one_or_none()

    ctx = BatchContext(batch, transport_log, vendor_receipt)
    if not is_allowed(Table.BATCHES, Operation.SELECT, actor, batch, ctx.participants):
        raise ResourceNotFoundError("Batch", batch_id)
    return ctx
