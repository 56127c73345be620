# This project was developed with assistance from AI tools.
"""Credit dashboard aggregator.

Read-only counts over reservations, financing trackers and title
transfers. Snapshots are cached in-process for ``DASHBOARD_CACHE_TTL``
seconds; ``invalidate()`` drops the cached snapshot so the next read
recomputes.
"""

import logging
import time
from collections.abc import Callable
from datetime import UTC, datetime

from db import FinancingStage, FinancingTracker, Reservation, TitleTransfer
from db.enums import CreditStatus, FinancingStatus, ReservationStatus, StageStatus, TransferStatus
from sqlalchemy import distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..schemas.dashboard import (
    DashboardKpis,
    DashboardSnapshot,
    StageBreakdown,
    TitleTransferBreakdown,
)
from .deadlines import STAGE_COUNT, STAGE_NAMES

logger = logging.getLogger(__name__)


def _stage_key(stage: int) -> str:
    return f"stage_{stage}"


async def _count(session: AsyncSession, stmt) -> int:
    result = await session.execute(stmt)
    return result.scalar() or 0


async def count_by_credit_status(session: AsyncSession) -> dict[str, int]:
    stmt = select(Reservation.credit_status, func.count(Reservation.id)).group_by(
        Reservation.credit_status
    )
    result = await session.execute(stmt)
    counts = {status.value: 0 for status in CreditStatus}
    for status, count in result.all():
        counts[status.value] = count
    return counts


async def get_stage_breakdown(session: AsyncSession) -> dict[str, StageBreakdown]:
    """Per-stage status counts across trackers."""
    breakdown = {_stage_key(n): StageBreakdown() for n in range(1, STAGE_COUNT + 1)}

    open_stmt = (
        select(FinancingStage.stage, FinancingStage.status, func.count(FinancingStage.id))
        .join(FinancingTracker, FinancingTracker.id == FinancingStage.tracker_id)
        .where(
            FinancingTracker.overall_status == FinancingStatus.IN_PROGRESS,
            FinancingStage.status != StageStatus.COMPLETED,
        )
        .group_by(FinancingStage.stage, FinancingStage.status)
    )
    for stage, status, count in (await session.execute(open_stmt)).all():
        setattr(breakdown[_stage_key(stage)], status.value, count)

    completed_stmt = (
        select(FinancingStage.stage, func.count(FinancingStage.id))
        .where(FinancingStage.status == StageStatus.COMPLETED)
        .group_by(FinancingStage.stage)
    )
    for stage, count in (await session.execute(completed_stmt)).all():
        breakdown[_stage_key(stage)].completed = count

    return breakdown


async def get_title_transfer_breakdown(session: AsyncSession) -> TitleTransferBreakdown:
    stmt = (
        select(TitleTransfer.status, func.count(TitleTransfer.id))
        .where(TitleTransfer.status.in_([TransferStatus.PREPARATION, TransferStatus.SCHEDULED]))
        .group_by(TitleTransfer.status)
    )
    counts = {status: count for status, count in (await session.execute(stmt)).all()}
    return TitleTransferBreakdown(
        preparation_count=counts.get(TransferStatus.PREPARATION, 0),
        scheduled_count=counts.get(TransferStatus.SCHEDULED, 0),
    )


async def get_kpis(
    session: AsyncSession,
    credit_counts: dict[str, int],
    breakdown: dict[str, StageBreakdown],
) -> DashboardKpis:
    confirmed = Reservation.status == ReservationStatus.CONFIRMED

    confirmed_bookings = await _count(
        session,
        select(func.count(Reservation.id)).where(
            confirmed,
            Reservation.credit_status.in_([CreditStatus.PENDING, CreditStatus.IN_PROGRESS]),
        ),
    )
    negotiation_bookings = await _count(
        session,
        select(func.count(Reservation.id)).where(
            Reservation.status == ReservationStatus.UNDER_NEGOTIATION
        ),
    )
    requires_review = await _count(
        session,
        select(func.count(distinct(FinancingStage.tracker_id)))
        .join(FinancingTracker, FinancingTracker.id == FinancingStage.tracker_id)
        .where(
            FinancingTracker.overall_status == FinancingStatus.IN_PROGRESS,
            FinancingStage.status == StageStatus.OVERDUE,
        ),
    )
    rejected_paid = await _count(
        session,
        select(func.count(Reservation.id)).where(
            Reservation.credit_status == CreditStatus.REJECTED,
            Reservation.down_payment_confirmed.is_(True),
        ),
    )
    projects_in_progress = await _count(
        session,
        select(func.count(Reservation.id)).where(
            confirmed,
            Reservation.credit_status == CreditStatus.IN_PROGRESS,
        ),
    )

    return DashboardKpis(
        confirmed_bookings_count=confirmed_bookings,
        negotiation_bookings_count=negotiation_bookings,
        requires_review_count=requires_review,
        rejected_with_paid_down_payment_count=rejected_paid,
        projects_in_progress_count=projects_in_progress,
        rejected_by_bank_count=credit_counts[CreditStatus.REJECTED.value],
        overdue_stages={key: item.overdue for key, item in breakdown.items()},
        in_title_transfer_count=credit_counts[CreditStatus.TITLE_TRANSFER.value],
        sold_projects_count=credit_counts[CreditStatus.SOLD.value],
    )


async def compute_snapshot(session: AsyncSession) -> DashboardSnapshot:
    """Recompute every dashboard figure from the database."""
    credit_counts = await count_by_credit_status(session)
    breakdown = await get_stage_breakdown(session)
    return DashboardSnapshot(
        kpis=await get_kpis(session, credit_counts, breakdown),
        credit_status_counts=credit_counts,
        stage_breakdown=breakdown,
        title_transfer_breakdown=await get_title_transfer_breakdown(session),
        stage_labels={_stage_key(n): label for n, label in STAGE_NAMES.items()},
        computed_at=datetime.now(UTC),
    )


class DashboardAggregator:
    """Cache-aside holder for the dashboard snapshot."""

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self._ttl = ttl_seconds
        self._clock = clock
        self._snapshot: DashboardSnapshot | None = None
        self._computed_at: float = 0

    async def get_snapshot(self, session: AsyncSession, force_refresh: bool = False) -> DashboardSnapshot:
        now = self._clock()
        if self._snapshot is None or force_refresh or (now - self._computed_at) >= self._ttl:
            self._snapshot = await compute_snapshot(session)
            self._computed_at = now
            logger.debug("Dashboard snapshot recomputed")
        return self._snapshot

    def invalidate(self) -> None:
        self._snapshot = None
        logger.info("Dashboard cache cleared")


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

_aggregator: DashboardAggregator | None = None


def get_dashboard_aggregator() -> DashboardAggregator:
    """Return the process-wide aggregator, creating it on first use."""
    global _aggregator  # noqa: PLW0603
    if _aggregator is None:
        from ..core.config import settings

        _aggregator = DashboardAggregator(settings.DASHBOARD_CACHE_TTL)
    return _aggregator
