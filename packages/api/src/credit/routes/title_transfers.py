# This project was developed with assistance from AI tools.
"""Title transfer routes."""

from datetime import date

from db import get_db
from db.enums import Department
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..middleware.auth import CurrentActor, require_departments
from ..schemas import ListMeta
from ..schemas.title_transfer import (
    TitleTransferInitRequest,
    TitleTransferListResponse,
    TitleTransferResponse,
    TitleTransferScheduleRequest,
)
from ..services import progression

router = APIRouter()

_CREDIT_DESK = require_departments(Department.CREDIT, Department.ADMIN)


def _list_response(transfers) -> TitleTransferListResponse:
    return TitleTransferListResponse(
        data=[TitleTransferResponse.model_validate(t) for t in transfers],
        meta=ListMeta(total=len(transfers)),
    )


@router.get(
    "/title-transfers/pending",
    response_model=TitleTransferListResponse,
    dependencies=[Depends(_CREDIT_DESK)],
)
async def list_pending(session: AsyncSession = Depends(get_db)) -> TitleTransferListResponse:
    """Open transfers, soonest scheduled first."""
    return _list_response(await progression.list_pending_transfers(session))


@router.get(
    "/title-transfers/sold",
    response_model=TitleTransferListResponse,
    dependencies=[Depends(require_departments(Department.CREDIT, Department.ACCOUNTING, Department.ADMIN))],
)
async def list_sold(
    session: AsyncSession = Depends(get_db),
    from_date: date | None = Query(default=None),
    to_date: date | None = Query(default=None),
) -> TitleTransferListResponse:
    """Completed transfers, newest first."""
    transfers = await progression.list_sold_transfers(session, from_date=from_date, to_date=to_date)
    return _list_response(transfers)


@router.post(
    "/title-transfers",
    response_model=TitleTransferResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(_CREDIT_DESK)],
)
async def initialize_transfer(
    body: TitleTransferInitRequest,
    actor: CurrentActor,
    session: AsyncSession = Depends(get_db),
) -> TitleTransferResponse:
    transfer = await progression.initialize_title_transfer(session, body.reservation_id, actor.id)
    return TitleTransferResponse.model_validate(transfer)


@router.post(
    "/title-transfers/{transfer_id}/schedule",
    response_model=TitleTransferResponse,
    dependencies=[Depends(_CREDIT_DESK)],
)
async def schedule_transfer(
    transfer_id: int,
    body: TitleTransferScheduleRequest,
    actor: CurrentActor,
    session: AsyncSession = Depends(get_db),
) -> TitleTransferResponse:
    transfer = await progression.schedule_title_transfer(
        session,
        transfer_id,
        body.scheduled_date,
        body.notes,
        actor_id=actor.id,
    )
    return TitleTransferResponse.model_validate(transfer)


@router.post(
    "/title-transfers/{transfer_id}/unschedule",
    response_model=TitleTransferResponse,
    dependencies=[Depends(_CREDIT_DESK)],
)
async def unschedule_transfer(
    transfer_id: int,
    actor: CurrentActor,
    session: AsyncSession = Depends(get_db),
) -> TitleTransferResponse:
    transfer = await progression.unschedule_title_transfer(session, transfer_id, actor_id=actor.id)
    return TitleTransferResponse.model_validate(transfer)


@router.post(
    "/title-transfers/{transfer_id}/complete",
    response_model=TitleTransferResponse,
    dependencies=[Depends(_CREDIT_DESK)],
)
async def complete_transfer(
    transfer_id: int,
    actor: CurrentActor,
    session: AsyncSession = Depends(get_db),
) -> TitleTransferResponse:
    """Complete the transfer; the reservation and its unit become sold."""
    transfer = await progression.complete_title_transfer(session, transfer_id, actor_id=actor.id)
    return TitleTransferResponse.model_validate(transfer)
