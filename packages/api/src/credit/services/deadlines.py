# This project was developed with assistance from AI tools.
"""SLA deadline policy for the five financing stages.

Pure functions only. Stage hours and the supported-bank allowance mirror
the credit department's operating rules.
"""

from datetime import UTC, datetime, timedelta

STAGE_COUNT = 5

# Base SLA per stage, in hours
STAGE_DEADLINE_HOURS: dict[int, int] = {
    1: 48,
    2: 120,
    3: 72,
    4: 48,
    5: 120,
}

# Extra allowance on the final stage for supported banks
SUPPORTED_BANK_EXTRA_DAYS = 5

# Whole-process target used for remaining-days reporting
BASE_EXPECTED_DAYS = 20

STAGE_NAMES: dict[int, str] = {
    1: "Client contact",
    2: "Bank submission",
    3: "Valuation issued",
    4: "Appraiser visit",
    5: "Bank procedures and contracts",
}


def validate_stage(stage: int) -> None:
    """Raise ValueError for a stage number outside 1..5."""
    if stage not in STAGE_DEADLINE_HOURS:
        raise ValueError(f"Stage must be between 1 and {STAGE_COUNT}, got {stage}")


def deadline_hours(stage: int, is_supported_bank: bool) -> timedelta:
    """Return the SLA duration for a stage."""
    validate_stage(stage)
    hours = STAGE_DEADLINE_HOURS[stage]
    if stage == STAGE_COUNT and is_supported_bank:
        hours += SUPPORTED_BANK_EXTRA_DAYS * 24
    return timedelta(hours=hours)


def stage_deadline(stage: int, is_supported_bank: bool, opened_at: datetime) -> datetime:
    """Deadline for a stage opened at ``opened_at``."""
    return opened_at + deadline_hours(stage, is_supported_bank)


def total_expected_days(is_supported_bank: bool) -> int:
    """Whole-process target in days, including the supported-bank allowance."""
    if is_supported_bank:
        return BASE_EXPECTED_DAYS + SUPPORTED_BANK_EXTRA_DAYS
    return BASE_EXPECTED_DAYS


def ensure_tz(dt: datetime) -> datetime:
    """Ensure a datetime is timezone-aware (UTC)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt
