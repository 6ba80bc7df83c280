"""Batch status state machine.

Statuses form a total order:

    created < assigned_transporter < picked_up < in_transit
            < delivered < received < analyzed

Every transition is named, starts from an explicit set of statuses, and
lands on a status of strictly higher rank.  The single exception is
``complete_analysis`` re-run on an analyzed batch, which leaves it at
``analyzed``.  There are no reverse or cancellation transitions.

This module does no I/O: callers load the batch, apply the transition,
and flush.
"""

from __future__ import annotations

from dataclasses import dataclass

from croptrail.middleware.exceptions import InvalidTransitionError, PermissionDeniedError
from croptrail.models.batch import BatchStatus
from croptrail.models.profile import UserRole

STATUS_ORDER: tuple[BatchStatus, ...] = (
    BatchStatus.CREATED,
    BatchStatus.ASSIGNED_TRANSPORTER,
    BatchStatus.PICKED_UP,
    BatchStatus.IN_TRANSIT,
    BatchStatus.DELIVERED,
    BatchStatus.RECEIVED,
    BatchStatus.ANALYZED,
)

_RANK = {s: i for i, s in enumerate(STATUS_ORDER)}

# Statuses in which a vendor may claim a batch (matches the vendor
# visibility rule in croptrail.auth.policies).
VENDOR_CLAIMABLE: frozenset[BatchStatus] = frozenset(
    {BatchStatus.IN_TRANSIT, BatchStatus.DELIVERED}
)


def status_rank(status: BatchStatus | str) -> int:
    return _RANK[BatchStatus(status)]


@dataclass(frozen=True)
class Transition:
    name: str
    allowed_from: frozenset[BatchStatus]
    target: BatchStatus
    # None = any batch participant
    role: UserRole | None


TRANSITIONS: dict[str, Transition] = {
    t.name: t
    for t in (
        Transition(
            "accept_transport",
            frozenset({BatchStatus.CREATED}),
            BatchStatus.ASSIGNED_TRANSPORTER,
            UserRole.TRANSPORTER,
        ),
        Transition(
            "record_pickup",
            frozenset({BatchStatus.ASSIGNED_TRANSPORTER}),
            BatchStatus.PICKED_UP,
            UserRole.TRANSPORTER,
        ),
        Transition(
            "mark_in_transit",
            frozenset({BatchStatus.PICKED_UP}),
            BatchStatus.IN_TRANSIT,
            UserRole.TRANSPORTER,
        ),
        Transition(
            "record_delivery",
            frozenset({BatchStatus.PICKED_UP, BatchStatus.IN_TRANSIT}),
            BatchStatus.DELIVERED,
            UserRole.TRANSPORTER,
        ),
        Transition(
            "confirm_receipt",
            frozenset({BatchStatus.DELIVERED}),
            BatchStatus.RECEIVED,
            UserRole.VENDOR,
        ),
        Transition(
            "complete_analysis",
            frozenset({BatchStatus.RECEIVED, BatchStatus.ANALYZED}),
            BatchStatus.ANALYZED,
            None,
        ),
    )
}


def can_transition(current: BatchStatus | str, action: str) -> bool:
    """Whether ``action`` may start from ``current``."""
    transition = TRANSITIONS[action]
    current = BatchStatus(current)
    if current not in transition.allowed_from:
        return False
    return status_rank(transition.target) >= status_rank(current)


def check_transition(current: BatchStatus | str, action: str) -> Transition:
    """Return the transition or raise InvalidTransitionError."""
    transition = TRANSITIONS[action]
    if not can_transition(current, action):
        allowed = ", ".join(sorted(s.value for s in transition.allowed_from))
        raise InvalidTransitionError(
            f"Cannot {action.replace('_', ' ')} a batch in status "
            f"'{BatchStatus(current).value}' (expected: {allowed})"
        )
    return transition


def apply_transition(batch, action: str, role: UserRole | None = None) -> BatchStatus:
    """Advance ``batch.status`` for ``action`` and return the new status.

    When ``role`` is given it must match the role the transition is
    reserved for.  Ownership (which transporter, which vendor) is checked
    by the caller against the policy layer.
    """
    transition = TRANSITIONS[action]
    if transition.role is not None and role is not None and role != transition.role:
        raise PermissionDeniedError(
            f"Only a {transition.role.value} can {action.replace('_', ' ')}"
        )
    check_transition(batch.status, action)
    batch.status = transition.target
    return transition.target
