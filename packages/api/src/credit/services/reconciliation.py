# This project was developed with assistance from AI tools.
"""Periodic overdue sweep over open financing stages.

Each candidate tracker is flagged in its own session and transaction, so
one failing tracker is logged and skipped without aborting the rest.
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import UTC, datetime

from db import FinancingStage, FinancingTracker
from db.enums import FinancingStatus, StageStatus
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .deadlines import ensure_tz
from .notifications import NotificationDispatcher, NotificationTargetResolver
from .progression import flag_overdue_stages

logger = logging.getLogger(__name__)


async def find_trackers_with_late_stages(session: AsyncSession, now: datetime) -> list[int]:
    """IDs of in-progress trackers with a pending/in-progress stage past its deadline."""
    now = ensure_tz(now).astimezone(UTC)
    stmt = (
        select(FinancingStage.tracker_id)
        .join(FinancingTracker, FinancingTracker.id == FinancingStage.tracker_id)
        .where(
            FinancingTracker.overall_status == FinancingStatus.IN_PROGRESS,
            FinancingStage.status.in_(StageStatus.sweepable_statuses()),
            FinancingStage.deadline.is_not(None),
            FinancingStage.deadline < now,
        )
        .distinct()
        .order_by(FinancingStage.tracker_id)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def run_reconciliation_sweep(
    session_factory: async_sessionmaker | None = None,
    *,
    dispatcher: NotificationDispatcher | None = None,
    resolver_factory: Callable[[AsyncSession], NotificationTargetResolver] | None = None,
    now: datetime | None = None,
) -> int:
    """Mark every open stage past its deadline as overdue.

    Returns the number of stages newly marked. Re-running at the same
    instant marks nothing further.
    """
    if session_factory is None:
        from db import SessionLocal

        session_factory = SessionLocal
    now = ensure_tz(now or datetime.now(UTC)).astimezone(UTC)

    async with session_factory() as session:
        tracker_ids = await find_trackers_with_late_stages(session, now)

    marked = 0
    failed = 0
    for tracker_id in tracker_ids:
        try:
            async with session_factory() as session:
                resolver = resolver_factory(session) if resolver_factory else None
                marked += await flag_overdue_stages(
                    session,
                    tracker_id,
                    dispatcher=dispatcher,
                    resolver=resolver,
                    now=now,
                )
        except Exception:
            failed += 1
            logger.exception("Overdue sweep failed for tracker %s, skipping", tracker_id)

    logger.info(
        "Overdue sweep: %d tracker(s) checked, %d stage(s) marked, %d failure(s)",
        len(tracker_ids),
        marked,
        failed,
    )
    return marked


async def run_sweep_forever(interval_seconds: float, session_factory: async_sessionmaker | None = None) -> None:
    """Run the sweep every ``interval_seconds`` until cancelled."""
    logger.info("Overdue sweep loop started (interval=%ss)", interval_seconds)
    while True:
        try:
            await run_reconciliation_sweep(session_factory)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Overdue sweep run failed")
        await asyncio.sleep(interval_seconds)
