# This project was developed with assistance from AI tools.
"""Financing tracker routes.

Service errors propagate as ``CreditError`` subclasses and are rendered as
RFC 7807 responses by the application's exception handlers.
"""

from db import get_db
from db.enums import Department
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..middleware.auth import CurrentActor, require_departments
from ..schemas.financing import (
    FinancingAdvanceRequest,
    FinancingAdvanceResponse,
    FinancingDetailsResponse,
    FinancingInitRequest,
    FinancingRejectRequest,
    FinancingTrackerResponse,
    StageCompleteRequest,
)
from ..services import progression

router = APIRouter()

_CREDIT_DESK = require_departments(Department.CREDIT, Department.ADMIN)


@router.post(
    "/financing",
    response_model=FinancingTrackerResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(_CREDIT_DESK)],
)
async def initialize_financing(
    body: FinancingInitRequest,
    actor: CurrentActor,
    session: AsyncSession = Depends(get_db),
) -> FinancingTrackerResponse:
    """Start financing for a confirmed, bank-financed reservation."""
    tracker = await progression.initialize_financing(
        session,
        body.reservation_id,
        body.assigned_to if body.assigned_to is not None else actor.id,
        actor_id=actor.id,
    )
    return FinancingTrackerResponse.model_validate(tracker)


@router.post(
    "/financing/advance",
    response_model=FinancingAdvanceResponse,
    dependencies=[Depends(_CREDIT_DESK)],
)
async def advance_financing(
    body: FinancingAdvanceRequest,
    actor: CurrentActor,
    session: AsyncSession = Depends(get_db),
) -> FinancingAdvanceResponse:
    """Initialize financing, or complete the tracker's current stage."""
    result = await progression.advance_or_initialize_financing(
        session,
        body.reservation_id,
        body.stage_data,
        actor_id=actor.id,
    )
    return FinancingAdvanceResponse(
        action=result["action"],
        financing=FinancingTrackerResponse.model_validate(result["financing"]),
        stage=result.get("stage"),
    )


@router.get(
    "/financing/{tracker_id}",
    response_model=FinancingDetailsResponse,
    dependencies=[Depends(_CREDIT_DESK)],
)
async def get_financing(
    tracker_id: int,
    session: AsyncSession = Depends(get_db),
) -> FinancingDetailsResponse:
    details = await progression.get_tracker_details(session, tracker_id)
    return FinancingDetailsResponse(
        financing=FinancingTrackerResponse.model_validate(details["financing"]),
        progress_summary=details["progress_summary"],
        current_stage=details["current_stage"],
        remaining_days=details["remaining_days"],
        all_completed=details["all_completed"],
    )


@router.post(
    "/financing/{tracker_id}/stages/{stage}/complete",
    response_model=FinancingTrackerResponse,
    dependencies=[Depends(_CREDIT_DESK)],
)
async def complete_stage(
    tracker_id: int,
    stage: int,
    body: StageCompleteRequest,
    actor: CurrentActor,
    session: AsyncSession = Depends(get_db),
) -> FinancingTrackerResponse:
    tracker = await progression.complete_financing_stage(
        session,
        tracker_id,
        stage,
        body.stage_data,
        actor_id=actor.id,
    )
    return FinancingTrackerResponse.model_validate(tracker)


@router.post(
    "/financing/{tracker_id}/reject",
    response_model=FinancingTrackerResponse,
    dependencies=[Depends(_CREDIT_DESK)],
)
async def reject_financing(
    tracker_id: int,
    body: FinancingRejectRequest,
    actor: CurrentActor,
    session: AsyncSession = Depends(get_db),
) -> FinancingTrackerResponse:
    tracker = await progression.reject_financing(
        session,
        tracker_id,
        body.reason,
        actor_id=actor.id,
    )
    return FinancingTrackerResponse.model_validate(tracker)
