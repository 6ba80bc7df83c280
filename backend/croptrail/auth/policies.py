"""Row-level authorization policies for CropTrail.

Design:
  - Each (table, operation) pair has a list of predicates.  A request is
    allowed when ANY of them matches (permissive policies); a pair with no
    predicates denies everything.
  - Predicates are pure functions of (actor, row, participants), so every
    rule can be unit-tested without a database.
  - "Participant" means the farmer of the batch, the transporter on its
    transport log, or the vendor on its receipt.
  - The batch SELECT rule is also expressed as a SQLAlchemy clause
    (`visible_batches_clause`) so list queries are filtered in SQL.

Tables:      profiles, batches, transport_logs, vendor_receipts,
             environmental_data, ai_analysis
Operations:  select, insert, update
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping

from sqlalchemy import ColumnElement, exists, false, or_, select

from croptrail.middleware.exceptions import PermissionDeniedError
from croptrail.models.batch import Batch, BatchStatus
from croptrail.models.profile import UserRole
from croptrail.models.transport_log import TransportLog
from croptrail.models.vendor_receipt import VendorReceipt


class Table(str, enum.Enum):
    PROFILES = "profiles"
    BATCHES = "batches"
    TRANSPORT_LOGS = "transport_logs"
    VENDOR_RECEIPTS = "vendor_receipts"
    ENVIRONMENTAL_DATA = "environmental_data"
    AI_ANALYSIS = "ai_analysis"


class Operation(str, enum.Enum):
    SELECT = "select"
    INSERT = "insert"
    UPDATE = "update"


@dataclass(frozen=True)
class Actor:
    """The authenticated caller as seen by the policy layer."""
    user_id: str
    role: UserRole

    @classmethod
    def from_profile(cls, profile) -> "Actor":
        return cls(user_id=profile.id, role=UserRole(profile.role))


@dataclass(frozen=True)
class BatchParticipants:
    farmer_id: str | None = None
    transporter_ids: frozenset[str] = field(default_factory=frozenset)
    vendor_ids: frozenset[str] = field(default_factory=frozenset)

    def includes(self, user_id: str) -> bool:
        return (
            user_id == self.farmer_id
            or user_id in self.transporter_ids
            or user_id in self.vendor_ids
        )

    @classmethod
    def build(
        cls,
        batch: Any,
        transport_logs: Iterable[Any] = (),
        vendor_receipts: Iterable[Any] = (),
    ) -> "BatchParticipants":
        return cls(
            farmer_id=_get(batch, "farmer_id"),
            transporter_ids=frozenset(_get(t, "transporter_id") for t in transport_logs),
            vendor_ids=frozenset(_get(v, "vendor_id") for v in vendor_receipts),
        )


Predicate = Callable[[Actor, Any, "BatchParticipants | None"], bool]


def _get(row: Any, key: str) -> Any:
    if isinstance(row, Mapping):
        return row.get(key)
    return getattr(row, key, None)


def _status(row: Any) -> BatchStatus | None:
    value = _get(row, "status")
    return BatchStatus(value) if value is not None else None


# ── Predicates ──────────────────────────────────────────────

def _is_self(actor: Actor, row: Any, _p: BatchParticipants | None) -> bool:
    return _get(row, "id") == actor.user_id


def _is_participant(actor: Actor, _row: Any, participants: BatchParticipants | None) -> bool:
    return participants is not None and participants.includes(actor.user_id)


def _owns(column: str) -> Predicate:
    def _check(actor: Actor, row: Any, _p: BatchParticipants | None) -> bool:
        return _get(row, column) == actor.user_id
    _check.__name__ = f"owns_{column}"
    return _check


def _owns_with_role(column: str, role: UserRole) -> Predicate:
    def _check(actor: Actor, row: Any, _p: BatchParticipants | None) -> bool:
        return _get(row, column) == actor.user_id and actor.role == role
    _check.__name__ = f"owns_{column}_as_{role.value}"
    return _check


def _transporter_sees_created(actor: Actor, row: Any, _p: BatchParticipants | None) -> bool:
    return actor.role == UserRole.TRANSPORTER and _status(row) == BatchStatus.CREATED


VENDOR_VISIBLE_STATUSES = frozenset({BatchStatus.IN_TRANSIT, BatchStatus.DELIVERED})


def _vendor_sees_incoming(actor: Actor, row: Any, _p: BatchParticipants | None) -> bool:
    return actor.role == UserRole.VENDOR and _status(row) in VENDOR_VISIBLE_STATUSES


# ── Policy table ────────────────────────────────────────────

POLICIES: dict[tuple[Table, Operation], list[Predicate]] = {
    (Table.PROFILES, Operation.SELECT): [_is_self],
    (Table.PROFILES, Operation.INSERT): [_is_self],
    (Table.PROFILES, Operation.UPDATE): [_is_self],

    (Table.BATCHES, Operation.SELECT): [
        _is_participant,
        _transporter_sees_created,
        _vendor_sees_incoming,
    ],
    (Table.BATCHES, Operation.INSERT): [_owns_with_role("farmer_id", UserRole.FARMER)],
    (Table.BATCHES, Operation.UPDATE): [_owns("farmer_id")],

    (Table.TRANSPORT_LOGS, Operation.SELECT): [_is_participant, _owns("transporter_id")],
    (Table.TRANSPORT_LOGS, Operation.INSERT): [
        _owns_with_role("transporter_id", UserRole.TRANSPORTER),
    ],
    (Table.TRANSPORT_LOGS, Operation.UPDATE): [_owns("transporter_id")],

    (Table.VENDOR_RECEIPTS, Operation.SELECT): [_is_participant],
    (Table.VENDOR_RECEIPTS, Operation.INSERT): [_owns_with_role("vendor_id", UserRole.VENDOR)],
    (Table.VENDOR_RECEIPTS, Operation.UPDATE): [_owns("vendor_id")],

    (Table.ENVIRONMENTAL_DATA, Operation.SELECT): [_is_participant],
    (Table.ENVIRONMENTAL_DATA, Operation.INSERT): [_is_participant],

    (Table.AI_ANALYSIS, Operation.SELECT): [_is_participant],
    (Table.AI_ANALYSIS, Operation.INSERT): [_is_participant],
    (Table.AI_ANALYSIS, Operation.UPDATE): [_is_participant],
}


def is_allowed(
    table: Table,
    operation: Operation,
    actor: Actor,
    row: Any,
    participants: BatchParticipants | None = None,
) -> bool:
    """Evaluate the policy for one row."""
    predicates = POLICIES.get((Table(table), Operation(operation)), [])
    return any(p(actor, row, participants) for p in predicates)


def enforce(
    table: Table,
    operation: Operation,
    actor: Actor,
    row: Any,
    participants: BatchParticipants | None = None,
    message: str | None = None,
) -> None:
    """Raise PermissionDeniedError unless the policy allows the access."""
    if not is_allowed(table, operation, actor, row, participants):
        raise PermissionDeniedError(
            message or f"Not allowed to {Operation(operation).value} {Table(table).value}"
        )


# ── SQL form of the batch SELECT policy ─────────────────────

def visible_batches_clause(actor: Actor) -> ColumnElement[bool]:
    """WHERE clause equivalent to the batches SELECT policy."""
    participant = or_(
        Batch.farmer_id == actor.user_id,
        exists(
            select(TransportLog.id).where(
                TransportLog.batch_id == Batch.id,
                TransportLog.transporter_id == actor.user_id,
            )
        ),
        exists(
            select(VendorReceipt.id).where(
                VendorReceipt.batch_id == Batch.id,
                VendorReceipt.vendor_id == actor.user_id,
            )
        ),
    )

    if actor.role == UserRole.TRANSPORTER:
        by_role = Batch.status == BatchStatus.CREATED
    elif actor.role == UserRole.VENDOR:
        by_role = Batch.status.in_(list(VENDOR_VISIBLE_STATUSES))
    else:
        by_role = false()

    return or_(participant, by_role)
