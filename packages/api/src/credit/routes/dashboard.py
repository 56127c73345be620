# This project was developed with assistance from AI tools.
"""Credit dashboard and maintenance routes."""

from db import get_db
from db.enums import Department
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from ..middleware.auth import require_departments
from ..schemas.dashboard import DashboardSnapshot
from ..services.dashboard import get_dashboard_aggregator
from ..services.reconciliation import run_reconciliation_sweep

router = APIRouter()

_CREDIT_DESK = require_departments(Department.CREDIT, Department.ADMIN)


class SweepResponse(BaseModel):
    overdue_marked: int


@router.get(
    "/dashboard",
    response_model=DashboardSnapshot,
    dependencies=[Depends(_CREDIT_DESK)],
)
async def get_dashboard(session: AsyncSession = Depends(get_db)) -> DashboardSnapshot:
    """Cached dashboard snapshot."""
    return await get_dashboard_aggregator().get_snapshot(session)


@router.post(
    "/dashboard/refresh",
    response_model=DashboardSnapshot,
    dependencies=[Depends(_CREDIT_DESK)],
)
async def refresh_dashboard(session: AsyncSession = Depends(get_db)) -> DashboardSnapshot:
    """Drop the cached snapshot and recompute."""
    aggregator = get_dashboard_aggregator()
    aggregator.invalidate()
    return await aggregator.get_snapshot(session)


@router.post(
    "/sweep",
    response_model=SweepResponse,
    dependencies=[Depends(require_departments(Department.ADMIN))],
)
async def run_sweep() -> SweepResponse:
    """Run the overdue sweep once, outside its schedule."""
    return SweepResponse(overdue_marked=await run_reconciliation_sweep())
