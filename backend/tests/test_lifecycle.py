"""Tests for the batch status state machine."""

from types import SimpleNamespace

import pytest

from croptrail.lifecycle import (
    STATUS_ORDER,
    TRANSITIONS,
    apply_transition,
    can_transition,
    check_transition,
    status_rank,
)
from croptrail.middleware.exceptions import InvalidTransitionError, PermissionDeniedError
from croptrail.models.batch import BatchStatus
from croptrail.models.profile import UserRole


@pytest.mark.unit
class TestStatusOrder:
    def test_order_is_total_and_complete(self):
        assert list(STATUS_ORDER) == list(BatchStatus)
        ranks = [status_rank(s) for s in STATUS_ORDER]
        assert ranks == sorted(ranks)
        assert len(set(ranks)) == len(ranks)

    def test_rank_accepts_plain_strings(self):
        assert status_rank("created") == 0
        assert status_rank("analyzed") == len(STATUS_ORDER) - 1

    @pytest.mark.parametrize("name", sorted(TRANSITIONS))
    def test_no_transition_lowers_rank(self, name):
        transition = TRANSITIONS[name]
        for source in transition.allowed_from:
            assert status_rank(transition.target) >= status_rank(source)

    def test_only_analysis_rerun_is_a_self_loop(self):
        loops = [
            (t.name, s)
            for t in TRANSITIONS.values()
            for s in t.allowed_from
            if s == t.target
        ]
        assert loops == [("complete_analysis", BatchStatus.ANALYZED)]


@pytest.mark.unit
class TestTransitions:
    @pytest.mark.parametrize(
        "current, action, expected",
        [
            (BatchStatus.CREATED, "accept_transport", True),
            (BatchStatus.ASSIGNED_TRANSPORTER, "accept_transport", False),
            (BatchStatus.ASSIGNED_TRANSPORTER, "record_pickup", True),
            (BatchStatus.PICKED_UP, "mark_in_transit", True),
            (BatchStatus.PICKED_UP, "record_delivery", True),
            (BatchStatus.IN_TRANSIT, "record_delivery", True),
            (BatchStatus.CREATED, "record_delivery", False),
            (BatchStatus.IN_TRANSIT, "confirm_receipt", False),
            (BatchStatus.DELIVERED, "confirm_receipt", True),
            (BatchStatus.DELIVERED, "complete_analysis", False),
            (BatchStatus.RECEIVED, "complete_analysis", True),
            (BatchStatus.ANALYZED, "complete_analysis", True),
            (BatchStatus.ANALYZED, "record_pickup", False),
        ],
    )
    def test_can_transition(self, current, action, expected):
        assert can_transition(current, action) is expected

    def test_check_transition_names_the_expected_statuses(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            check_transition(BatchStatus.CREATED, "confirm_receipt")

        assert exc_info.value.status_code == 409
        assert "'created'" in exc_info.value.message
        assert "delivered" in exc_info.value.message

    def test_apply_transition_advances_status(self):
        batch = SimpleNamespace(status=BatchStatus.IN_TRANSIT)

        new_status = apply_transition(batch, "record_delivery", UserRole.TRANSPORTER)

        assert new_status == BatchStatus.DELIVERED
        assert batch.status == BatchStatus.DELIVERED

    def test_apply_transition_rejects_wrong_role(self):
        batch = SimpleNamespace(status=BatchStatus.CREATED)

        with pytest.raises(PermissionDeniedError):
            apply_transition(batch, "accept_transport", UserRole.VENDOR)
        assert batch.status == BatchStatus.CREATED

    def test_apply_transition_leaves_status_on_conflict(self):
        batch = SimpleNamespace(status=BatchStatus.RECEIVED)

        with pytest.raises(InvalidTransitionError):
            apply_transition(batch, "record_pickup", UserRole.TRANSPORTER)
        assert batch.status == BatchStatus.RECEIVED

    def test_full_walk_reaches_analyzed(self):
        batch = SimpleNamespace(status=BatchStatus.CREATED)
        for action in (
            "accept_transport",
            "record_pickup",
            "mark_in_transit",
            "record_delivery",
            "confirm_receipt",
            "complete_analysis",
            "complete_analysis",
        ):
            apply_transition(batch, action)

        assert batch.status == BatchStatus.ANALYZED
