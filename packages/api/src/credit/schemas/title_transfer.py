# This project was developed with assistance from AI tools.
"""Schemas for title transfer endpoints."""

from datetime import date, datetime

from db.enums import TransferStatus
from pydantic import BaseModel, ConfigDict, Field

from . import ListMeta


class TitleTransferInitRequest(BaseModel):
    """Request body for opening a title transfer."""

    reservation_id: int


class TitleTransferScheduleRequest(BaseModel):
    """Request body for scheduling; omitted notes keep the existing ones."""

    scheduled_date: date
    notes: str | None = Field(default=None, max_length=2000)


class TitleTransferResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    reservation_id: int
    processed_by: int | None = None
    status: TransferStatus
    scheduled_date: date | None = None
    completed_date: date | None = None
    notes: str | None = None
    updated_at: datetime | None = None


class TitleTransferListResponse(BaseModel):
    data: list[TitleTransferResponse]
    meta: ListMeta
