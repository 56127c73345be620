# This project was developed with assistance from AI tools.
"""Tests for the overdue reconciliation sweep."""

from datetime import timedelta, timezone
from unittest.mock import patch

import pytest
import pytest_asyncio
from db.enums import FinancingStatus, StageStatus

from credit.services import progression
from credit.services.reconciliation import find_trackers_with_late_stages, run_reconciliation_sweep
from tests.factories import T0, create_reservation


@pytest_asyncio.fixture
async def trackers(session, staff, dispatcher):
    """Three in-progress trackers opened at T0 (stage 1 due at T0 + 48h)."""
    opened = []
    for _ in range(3):
        reservation = await create_reservation(session, marketer_id=staff["marketer"].id)
        opened.append(
            await progression.initialize_financing(
                session, reservation.id, staff["officer"].id, dispatcher=dispatcher, now=T0
            )
        )
    return opened


@pytest.mark.asyncio
async def test_nothing_is_overdue_before_deadline(session_factory, trackers, dispatcher):
    marked = await run_reconciliation_sweep(
        session_factory, dispatcher=dispatcher, now=T0 + timedelta(hours=47)
    )
    assert marked == 0
    assert dispatcher.sent == []


@pytest.mark.asyncio
async def test_sweep_compares_instants_across_timezones(session, session_factory, trackers, dispatcher):
    riyadh = timezone(timedelta(hours=3))

    # 47h after opening, but the Riyadh wall clock already reads past the deadline.
    early = (T0 + timedelta(hours=47)).astimezone(riyadh)
    assert await find_trackers_with_late_stages(session, early) == []
    assert await run_reconciliation_sweep(session_factory, dispatcher=dispatcher, now=early) == 0

    late = (T0 + timedelta(hours=49)).astimezone(riyadh)
    assert await run_reconciliation_sweep(session_factory, dispatcher=dispatcher, now=late) == 3
    fresh = await progression.get_tracker(session, trackers[0].id)
    assert fresh.get_stage(1).status == StageStatus.OVERDUE


@pytest.mark.asyncio
async def test_sweep_marks_late_stages_and_notifies(session, session_factory, staff, trackers, dispatcher):
    late = T0 + timedelta(hours=49)
    marked = await run_reconciliation_sweep(session_factory, dispatcher=dispatcher, now=late)

    assert marked == 3
    for tracker in trackers:
        fresh = await progression.get_tracker(session, tracker.id)
        assert fresh.get_stage(1).status == StageStatus.OVERDUE
        assert fresh.overall_status == FinancingStatus.IN_PROGRESS
        assert fresh.completed_at is None

    overdue = [n for n in dispatcher.sent if n["event_type"] == "financing_stage_overdue"]
    # assignee + credit manager per tracker
    assert len(overdue) == 6
    assert {n["user_id"] for n in overdue} == {staff["officer"].id, staff["manager"].id}
    assert {n["context"]["stage"] for n in overdue} == {1}


@pytest.mark.asyncio
async def test_sweep_is_idempotent(session_factory, trackers, dispatcher):
    late = T0 + timedelta(hours=49)
    assert await run_reconciliation_sweep(session_factory, dispatcher=dispatcher, now=late) == 3
    sent = len(dispatcher.sent)

    assert await run_reconciliation_sweep(session_factory, dispatcher=dispatcher, now=late) == 0
    assert len(dispatcher.sent) == sent


@pytest.mark.asyncio
async def test_overdue_stage_can_still_be_completed(session, session_factory, trackers, dispatcher):
    late = T0 + timedelta(hours=49)
    await run_reconciliation_sweep(session_factory, dispatcher=dispatcher, now=late)

    tracker = await progression.complete_financing_stage(
        session, trackers[0].id, 1, {"bank_name": "ABC Bank"}, dispatcher=dispatcher, now=late
    )
    assert tracker.get_stage(1).status == StageStatus.COMPLETED
    assert tracker.get_stage(2).status == StageStatus.IN_PROGRESS


@pytest.mark.asyncio
async def test_sweep_skips_closed_trackers(session, session_factory, trackers, dispatcher):
    await progression.reject_financing(session, trackers[0].id, "declined", dispatcher=dispatcher, now=T0)

    late = T0 + timedelta(hours=49)
    async with session_factory() as s:
        candidates = await find_trackers_with_late_stages(s, late)
    assert trackers[0].id not in candidates

    assert await run_reconciliation_sweep(session_factory, dispatcher=dispatcher, now=late) == 2
    rejected = await progression.get_tracker(session, trackers[0].id)
    assert rejected.get_stage(1).status == StageStatus.IN_PROGRESS


@pytest.mark.asyncio
async def test_one_failing_tracker_does_not_stop_the_sweep(session, session_factory, trackers, dispatcher):
    broken_id = trackers[1].id
    real_flag = progression.flag_overdue_stages

    async def flaky_flag(session, tracker_id, **kwargs):
        if tracker_id == broken_id:
            raise RuntimeError("database hiccup")
        return await real_flag(session, tracker_id, **kwargs)

    late = T0 + timedelta(hours=49)
    with patch("credit.services.reconciliation.flag_overdue_stages", side_effect=flaky_flag):
        marked = await run_reconciliation_sweep(session_factory, dispatcher=dispatcher, now=late)

    assert marked == 2
    broken = await progression.get_tracker(session, broken_id)
    assert broken.get_stage(1).status == StageStatus.IN_PROGRESS
