# This project was developed with assistance from AI tools.
"""Credit dashboard response schemas."""

from datetime import datetime

from pydantic import BaseModel, Field


class StageBreakdown(BaseModel):
    """Tracker counts for one stage, by stage status.

    ``pending``, ``in_progress`` and ``overdue`` count in-progress trackers
    only; ``completed`` counts every tracker.
    """

    pending: int = 0
    in_progress: int = 0
    completed: int = 0
    overdue: int = 0


class TitleTransferBreakdown(BaseModel):
    preparation_count: int = 0
    scheduled_count: int = 0


class DashboardKpis(BaseModel):
    """Headline counts for the credit department."""

    confirmed_bookings_count: int = Field(
        ..., description="Confirmed reservations whose credit status is pending or in progress"
    )
    negotiation_bookings_count: int
    requires_review_count: int = Field(
        ..., description="In-progress trackers with at least one overdue stage"
    )
    rejected_with_paid_down_payment_count: int
    projects_in_progress_count: int
    rejected_by_bank_count: int
    overdue_stages: dict[str, int]
    in_title_transfer_count: int
    sold_projects_count: int


class DashboardSnapshot(BaseModel):
    kpis: DashboardKpis
    credit_status_counts: dict[str, int]
    stage_breakdown: dict[str, StageBreakdown]
    title_transfer_breakdown: TitleTransferBreakdown
    stage_labels: dict[str, str]
    computed_at: datetime
