# This project was developed with assistance from AI tools.
"""Financing tracker state machine.

Pure transition rules over ``FinancingTracker`` rows: building a new
tracker, validating and applying stage completion and rejection, and
deciding which open stages have run past their SLA. No I/O here -- the
progression service owns transactions and notifications.
"""

from datetime import datetime, timedelta

from db import FinancingStage, FinancingTracker, Reservation
from db.enums import FinancingStatus, StageStatus
from pydantic import ValidationError

from ..schemas.financing import STAGE_DATA_SCHEMAS
from .deadlines import (
    STAGE_COUNT,
    ensure_tz,
    stage_deadline,
    total_expected_days,
    validate_stage,
)
from .errors import (
    AllStagesCompletedError,
    AlreadyTerminalError,
    InvalidStateError,
    OutOfOrderError,
    StageDataError,
)

_TERMINAL_STATUSES = FinancingStatus.terminal_statuses()
_OPEN_STAGE_STATUSES = StageStatus.open_statuses()
_SWEEPABLE_STATUSES = StageStatus.sweepable_statuses()


def new_tracker(reservation: Reservation, assigned_to: int | None, now: datetime) -> FinancingTracker:
    """Build a tracker with stage 1 open and stages 2-5 pending.

    ``is_supported_bank`` is snapshotted from the reservation here and never
    written again.
    """
    stages = [
        FinancingStage(stage=number, status=StageStatus.PENDING)
        for number in range(1, STAGE_COUNT + 1)
    ]
    stages[0].status = StageStatus.IN_PROGRESS
    stages[0].deadline = stage_deadline(1, reservation.is_supported_bank, now)

    return FinancingTracker(
        reservation_id=reservation.id,
        assigned_to=assigned_to,
        is_supported_bank=bool(reservation.is_supported_bank),
        overall_status=FinancingStatus.IN_PROGRESS,
        stages=stages,
        updated_at=now,
    )


def get_current_stage(tracker: FinancingTracker) -> int:
    """Lowest-numbered stage that is not completed (5 once all are)."""
    for stage in tracker.stages:
        if stage.status in _OPEN_STAGE_STATUSES:
            return stage.stage
    return STAGE_COUNT


def all_stages_completed(tracker: FinancingTracker) -> bool:
    return all(stage.status == StageStatus.COMPLETED for stage in tracker.stages)


def parse_stage_data(stage: int, data: dict | None) -> dict:
    """Validate a stage payload against its schema; return the JSON-safe fields."""
    schema = STAGE_DATA_SCHEMAS[stage]
    try:
        parsed = schema.model_validate(data or {})
    except ValidationError as exc:
        raise StageDataError(f"Invalid data for stage {stage}: {exc.errors()}") from exc
    return parsed.model_dump(mode="json", exclude_none=True)


def check_can_complete(tracker: FinancingTracker, stage: int) -> None:
    """Raise unless ``stage`` is the next stage that may be completed."""
    try:
        validate_stage(stage)
    except ValueError as exc:
        raise InvalidStateError(str(exc)) from exc

    if tracker.overall_status in _TERMINAL_STATUSES:
        raise AlreadyTerminalError(
            f"Financing tracker #{tracker.id} is '{tracker.overall_status.value}' -- "
            f"no further stage changes are allowed."
        )

    for previous in range(1, stage):
        if tracker.get_stage(previous).status != StageStatus.COMPLETED:
            raise OutOfOrderError(f"Stage {previous} must be completed before stage {stage}.")

    if tracker.get_stage(stage).status == StageStatus.COMPLETED:
        raise OutOfOrderError(f"Stage {stage} of tracker #{tracker.id} is already completed.")


def apply_stage_completion(
    tracker: FinancingTracker,
    stage: int,
    data: dict,
    now: datetime,
) -> None:
    """Complete ``stage`` and open the next one (or close the tracker after stage 5).

    ``data`` must already be validated by ``parse_stage_data``. An overdue
    stage completes like any other open stage.
    """
    current = tracker.get_stage(stage)
    current.status = StageStatus.COMPLETED
    current.completed_at = now
    if data:
        current.data = dict(data)

    if stage < STAGE_COUNT:
        upcoming = tracker.get_stage(stage + 1)
        upcoming.status = StageStatus.IN_PROGRESS
        upcoming.deadline = stage_deadline(stage + 1, tracker.is_supported_bank, now)
    else:
        tracker.overall_status = FinancingStatus.COMPLETED
        tracker.completed_at = now

    tracker.updated_at = now


def check_can_reject(tracker: FinancingTracker) -> None:
    if tracker.overall_status in _TERMINAL_STATUSES:
        raise AlreadyTerminalError(
            f"Financing tracker #{tracker.id} is already '{tracker.overall_status.value}' -- "
            f"it cannot be rejected."
        )


def apply_rejection(tracker: FinancingTracker, reason: str, now: datetime) -> None:
    tracker.overall_status = FinancingStatus.REJECTED
    tracker.rejection_reason = reason
    tracker.updated_at = now


def check_can_advance(tracker: FinancingTracker) -> None:
    if tracker.overall_status != FinancingStatus.IN_PROGRESS:
        raise AllStagesCompletedError(
            f"Financing tracker #{tracker.id} is '{tracker.overall_status.value}' -- "
            f"there is no stage left to advance."
        )


def is_stage_overdue(stage: FinancingStage, now: datetime) -> bool:
    """True when the stage is still open and its deadline has passed."""
    if stage.deadline is None or stage.status == StageStatus.COMPLETED:
        return False
    return now > ensure_tz(stage.deadline)


def stages_past_deadline(tracker: FinancingTracker, now: datetime) -> list[FinancingStage]:
    """Open stages the sweep should flag. Already-overdue stages are excluded."""
    if tracker.overall_status != FinancingStatus.IN_PROGRESS:
        return []
    return [
        stage
        for stage in tracker.stages
        if stage.status in _SWEEPABLE_STATUSES
        and stage.deadline is not None
        and ensure_tz(stage.deadline) < now
    ]


def mark_overdue(tracker: FinancingTracker, stage: FinancingStage, now: datetime) -> None:
    stage.status = StageStatus.OVERDUE
    tracker.updated_at = now


def remaining_days(tracker: FinancingTracker, now: datetime) -> int | None:
    """Days left against the whole-process target; None unless in progress."""
    if tracker.overall_status != FinancingStatus.IN_PROGRESS or tracker.created_at is None:
        return None
    target = ensure_tz(tracker.created_at) + timedelta(days=total_expected_days(tracker.is_supported_bank))
    return max(0, (target - now).days)


def get_progress_summary(tracker: FinancingTracker, now: datetime) -> dict[str, dict]:
    return {
        f"stage_{stage.stage}": {
            "status": stage.status,
            "deadline": stage.deadline,
            "completed_at": stage.completed_at,
            "is_overdue": is_stage_overdue(stage, now),
        }
        for stage in tracker.stages
    }
