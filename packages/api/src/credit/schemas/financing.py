# This project was developed with assistance from AI tools.
"""Schemas for financing tracker endpoints and per-stage payloads."""

from datetime import datetime

from db.enums import EmploymentType, FinancingStatus, StageStatus
from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Per-stage payloads
# ---------------------------------------------------------------------------


class StageData(BaseModel):
    """Stage payload with no captured fields."""

    model_config = ConfigDict(extra="forbid")


class ClientContactData(StageData):
    """Stage 1: client contact captures the bank and the client's income."""

    bank_name: str | None = Field(default=None, max_length=100)
    client_salary: float | None = Field(default=None, ge=0)
    employment_type: EmploymentType | None = None


class AppraiserVisitData(StageData):
    """Stage 4: appraiser visit."""

    appraiser_name: str | None = Field(default=None, max_length=255)


STAGE_DATA_SCHEMAS: dict[int, type[StageData]] = {
    1: ClientContactData,
    2: StageData,
    3: StageData,
    4: AppraiserVisitData,
    5: StageData,
}


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class FinancingInitRequest(BaseModel):
    """Request body for starting financing on a reservation."""

    reservation_id: int
    assigned_to: int | None = None


class FinancingAdvanceRequest(BaseModel):
    """Request body for the advance-or-initialize shortcut."""

    reservation_id: int
    stage_data: dict = Field(default_factory=dict)


class StageCompleteRequest(BaseModel):
    """Request body for completing a stage; keys depend on the stage."""

    stage_data: dict = Field(default_factory=dict)


class FinancingRejectRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=1000)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class StageItem(BaseModel):
    """Single stage of a tracker."""

    model_config = ConfigDict(from_attributes=True)

    stage: int
    status: StageStatus
    deadline: datetime | None = None
    completed_at: datetime | None = None
    data: dict | None = None


class FinancingTrackerResponse(BaseModel):
    """Financing tracker with its stages and captured attributes."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    reservation_id: int
    assigned_to: int | None = None
    is_supported_bank: bool
    overall_status: FinancingStatus
    rejection_reason: str | None = None
    completed_at: datetime | None = None
    bank_name: str | None = None
    client_salary: float | None = None
    employment_type: str | None = None
    appraiser_name: str | None = None
    stages: list[StageItem]


class StageProgress(BaseModel):
    status: StageStatus
    deadline: datetime | None = None
    completed_at: datetime | None = None
    is_overdue: bool


class FinancingDetailsResponse(BaseModel):
    """Tracker plus derived progress information."""

    financing: FinancingTrackerResponse
    progress_summary: dict[str, StageProgress]
    current_stage: int
    remaining_days: int | None = None
    all_completed: bool


class FinancingAdvanceResponse(BaseModel):
    action: str
    financing: FinancingTrackerResponse
    stage: int | None = None
