# This project was developed with assistance from AI tools.
"""Tests for the financing tracker state machine rules (no database)."""

import itertools
from datetime import timedelta

import pytest
from db.enums import FinancingStatus, StageStatus

from credit.services import financing as rules
from credit.services.deadlines import deadline_hours
from credit.services.errors import (
    AllStagesCompletedError,
    AlreadyTerminalError,
    InvalidStateError,
    OutOfOrderError,
    StageDataError,
)
from tests.factories import T0, build_reservation, build_tracker

# ---------------------------------------------------------------------------
# new_tracker / current stage
# ---------------------------------------------------------------------------


def test_new_tracker_opens_stage_one_only():
    reservation = build_reservation(is_supported_bank=True)
    tracker = rules.new_tracker(reservation, assigned_to=7, now=T0)

    assert tracker.overall_status == FinancingStatus.IN_PROGRESS
    assert tracker.is_supported_bank is True
    assert tracker.assigned_to == 7
    first, *rest = tracker.stages
    assert first.status == StageStatus.IN_PROGRESS
    assert first.deadline == T0 + timedelta(hours=48)
    assert all(s.status == StageStatus.PENDING and s.deadline is None for s in rest)


def test_current_stage_is_lowest_uncompleted():
    assert rules.get_current_stage(build_tracker(completed=0)) == 1
    assert rules.get_current_stage(build_tracker(completed=2)) == 3


def test_current_stage_counts_overdue_as_open():
    tracker = build_tracker(completed=1)
    tracker.get_stage(2).status = StageStatus.OVERDUE
    assert rules.get_current_stage(tracker) == 2


def test_current_stage_is_five_when_all_completed():
    tracker = build_tracker(completed=5, overall_status=FinancingStatus.COMPLETED)
    assert rules.get_current_stage(tracker) == 5
    assert rules.all_stages_completed(tracker)


# ---------------------------------------------------------------------------
# check_can_complete
# ---------------------------------------------------------------------------


def test_completing_stage_two_before_one_is_out_of_order():
    with pytest.raises(OutOfOrderError, match="Stage 1 must be completed"):
        rules.check_can_complete(build_tracker(completed=0), 2)


def test_completing_a_completed_stage_is_out_of_order():
    with pytest.raises(OutOfOrderError, match="already completed"):
        rules.check_can_complete(build_tracker(completed=2), 2)


@pytest.mark.parametrize("stage", [0, 6])
def test_stage_outside_range_is_invalid(stage):
    with pytest.raises(InvalidStateError):
        rules.check_can_complete(build_tracker(), stage)


@pytest.mark.parametrize("status", [FinancingStatus.REJECTED, FinancingStatus.COMPLETED])
def test_terminal_tracker_rejects_stage_changes(status):
    tracker = build_tracker(completed=1, overall_status=status)
    with pytest.raises(AlreadyTerminalError):
        rules.check_can_complete(tracker, 2)


def test_overdue_stage_can_still_be_completed():
    tracker = build_tracker(completed=2)
    tracker.get_stage(3).status = StageStatus.OVERDUE

    rules.check_can_complete(tracker, 3)
    rules.apply_stage_completion(tracker, 3, {}, T0)

    assert tracker.get_stage(3).status == StageStatus.COMPLETED
    assert tracker.get_stage(4).status == StageStatus.IN_PROGRESS


# ---------------------------------------------------------------------------
# apply_stage_completion
# ---------------------------------------------------------------------------


def test_completing_stage_one_opens_stage_two_with_deadline():
    tracker = build_tracker(completed=0, is_supported_bank=False)
    rules.apply_stage_completion(tracker, 1, {"bank_name": "ABC Bank"}, T0)

    stage_two = tracker.get_stage(2)
    assert tracker.get_stage(1).completed_at == T0
    assert stage_two.status == StageStatus.IN_PROGRESS
    assert stage_two.deadline == T0 + deadline_hours(2, False)
    assert tracker.bank_name == "ABC Bank"


def test_supported_bank_gets_longer_final_stage():
    supported = build_tracker(completed=3, is_supported_bank=True)
    regular = build_tracker(completed=3, is_supported_bank=False)

    rules.apply_stage_completion(supported, 4, {}, T0)
    rules.apply_stage_completion(regular, 4, {}, T0)

    assert supported.get_stage(5).deadline == T0 + deadline_hours(5, True)
    assert supported.get_stage(5).deadline > regular.get_stage(5).deadline


def test_completing_stage_five_closes_tracker():
    tracker = build_tracker(completed=4)
    rules.apply_stage_completion(tracker, 5, {}, T0)

    assert tracker.overall_status == FinancingStatus.COMPLETED
    assert tracker.completed_at == T0
    assert tracker.get_stage(5).status == StageStatus.COMPLETED


def test_captured_fields_remain_readable_at_later_stages():
    tracker = build_tracker(completed=0)
    rules.apply_stage_completion(
        tracker, 1, {"bank_name": "ABC Bank", "client_salary": 12000.0, "employment_type": "private"}, T0
    )
    for stage in (2, 3):
        rules.apply_stage_completion(tracker, stage, {}, T0)
    rules.apply_stage_completion(tracker, 4, {"appraiser_name": "Sami"}, T0)

    assert tracker.bank_name == "ABC Bank"
    assert tracker.client_salary == 12000.0
    assert tracker.employment_type == "private"
    assert tracker.appraiser_name == "Sami"


def test_completed_stages_always_form_a_prefix():
    """Whatever order completions are attempted in, only a prefix ever completes."""
    for order in itertools.permutations(range(1, 6)):
        tracker = build_tracker(completed=0)
        for stage in order:
            try:
                rules.check_can_complete(tracker, stage)
            except OutOfOrderError:
                continue
            rules.apply_stage_completion(tracker, stage, {}, T0)

        statuses = [s.status == StageStatus.COMPLETED for s in tracker.stages]
        done = statuses.count(True)
        assert statuses == [True] * done + [False] * (5 - done)
        assert (tracker.overall_status == FinancingStatus.COMPLETED) == statuses[4]


# ---------------------------------------------------------------------------
# Stage data validation
# ---------------------------------------------------------------------------


def test_stage_one_payload_is_normalised():
    data = rules.parse_stage_data(
        1, {"bank_name": "ABC Bank", "client_salary": 9000, "employment_type": "government"}
    )
    assert data == {"bank_name": "ABC Bank", "client_salary": 9000.0, "employment_type": "government"}


def test_empty_payload_is_allowed():
    assert rules.parse_stage_data(2, None) == {}


@pytest.mark.parametrize(
    "stage,payload",
    [
        (1, {"client_salary": -1}),
        (1, {"employment_type": "freelance"}),
        (1, {"bank_name": "x" * 101}),
        (2, {"bank_name": "ABC Bank"}),
        (4, {"appraiser_name": "x" * 256}),
    ],
)
def test_invalid_payload_raises_stage_data_error(stage, payload):
    with pytest.raises(StageDataError):
        rules.parse_stage_data(stage, payload)


# ---------------------------------------------------------------------------
# Reject / advance
# ---------------------------------------------------------------------------


def test_reject_records_reason():
    tracker = build_tracker(completed=1)
    rules.check_can_reject(tracker)
    rules.apply_rejection(tracker, "Salary below threshold", T0)

    assert tracker.overall_status == FinancingStatus.REJECTED
    assert tracker.rejection_reason == "Salary below threshold"


def test_second_reject_is_already_terminal():
    tracker = build_tracker(overall_status=FinancingStatus.REJECTED)
    with pytest.raises(AlreadyTerminalError):
        rules.check_can_reject(tracker)


def test_advance_on_finished_tracker_fails():
    tracker = build_tracker(completed=5, overall_status=FinancingStatus.COMPLETED)
    with pytest.raises(AllStagesCompletedError):
        rules.check_can_advance(tracker)


# ---------------------------------------------------------------------------
# Overdue detection and progress reporting
# ---------------------------------------------------------------------------


def test_stages_past_deadline_lists_open_late_stages():
    tracker = build_tracker(completed=1, deadline=T0)
    late = rules.stages_past_deadline(tracker, T0 + timedelta(minutes=1))
    assert [s.stage for s in late] == [2]


def test_stages_past_deadline_skips_already_overdue():
    tracker = build_tracker(completed=1, deadline=T0)
    tracker.get_stage(2).status = StageStatus.OVERDUE
    assert rules.stages_past_deadline(tracker, T0 + timedelta(days=1)) == []


def test_stages_past_deadline_ignores_closed_trackers():
    tracker = build_tracker(completed=1, deadline=T0, overall_status=FinancingStatus.REJECTED)
    assert rules.stages_past_deadline(tracker, T0 + timedelta(days=1)) == []


def test_deadline_not_yet_reached_is_not_overdue():
    tracker = build_tracker(completed=0, deadline=T0 + timedelta(hours=48))
    assert rules.stages_past_deadline(tracker, T0 + timedelta(hours=47)) == []
    assert not rules.is_stage_overdue(tracker.get_stage(1), T0 + timedelta(hours=47))
    assert rules.is_stage_overdue(tracker.get_stage(1), T0 + timedelta(hours=49))


def test_remaining_days():
    tracker = build_tracker(created_at=T0)
    assert rules.remaining_days(tracker, T0 + timedelta(days=5)) == 15
    assert rules.remaining_days(tracker, T0 + timedelta(days=30)) == 0

    supported = build_tracker(created_at=T0, is_supported_bank=True)
    assert rules.remaining_days(supported, T0 + timedelta(days=5)) == 20


def test_remaining_days_none_once_closed():
    tracker = build_tracker(overall_status=FinancingStatus.REJECTED)
    assert rules.remaining_days(tracker, T0) is None


def test_progress_summary_covers_all_stages():
    tracker = build_tracker(completed=1, deadline=T0)
    summary = rules.get_progress_summary(tracker, T0 + timedelta(hours=1))

    assert list(summary) == ["stage_1", "stage_2", "stage_3", "stage_4", "stage_5"]
    assert summary["stage_1"]["status"] == StageStatus.COMPLETED
    assert summary["stage_2"]["is_overdue"] is True
    assert summary["stage_3"]["is_overdue"] is False
