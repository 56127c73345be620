# This project was developed with assistance from AI tools.
"""Title transfer state machine.

Pure transition rules for the post-financing handoff:
preparation -> scheduled -> completed, with unschedule returning a
scheduled transfer to preparation. ``completed`` is terminal.
"""

from datetime import date, datetime

from db import Reservation, TitleTransfer
from db.enums import FinancingStatus, ReservationStatus, TransferStatus

from .errors import (
    AlreadyExistsError,
    AlreadyTerminalError,
    FinancingIncompleteError,
    InvalidStateError,
    NotScheduledError,
)


def check_can_initialize(reservation: Reservation) -> None:
    """Raise unless the reservation is ready for a title transfer.

    Cash purchases qualify as soon as the reservation is confirmed; bank
    financed ones need a completed financing tracker.
    """
    if reservation.status != ReservationStatus.CONFIRMED:
        raise InvalidStateError(
            f"Reservation #{reservation.id} is '{reservation.status.value}' -- "
            f"title transfer can only start for confirmed reservations."
        )

    if reservation.is_bank_financing:
        tracker = reservation.financing_tracker
        if tracker is None or tracker.overall_status != FinancingStatus.COMPLETED:
            raise FinancingIncompleteError(
                f"Bank financing for reservation #{reservation.id} must be completed "
                f"before the title transfer starts."
            )

    if reservation.title_transfer is not None:
        raise AlreadyExistsError(
            f"A title transfer already exists for reservation #{reservation.id}."
        )


def new_transfer(reservation: Reservation, processed_by: int | None, now: datetime) -> TitleTransfer:
    return TitleTransfer(
        reservation_id=reservation.id,
        processed_by=processed_by,
        status=TransferStatus.PREPARATION,
        updated_at=now,
    )


def _check_not_completed(transfer: TitleTransfer) -> None:
    if transfer.status == TransferStatus.COMPLETED:
        raise AlreadyTerminalError(f"Title transfer #{transfer.id} is already completed.")


def check_can_schedule(transfer: TitleTransfer, scheduled_date: date, today: date) -> None:
    _check_not_completed(transfer)
    if scheduled_date < today:
        raise InvalidStateError(
            f"Scheduled date {scheduled_date.isoformat()} is in the past."
        )


def apply_schedule(
    transfer: TitleTransfer,
    scheduled_date: date,
    notes: str | None,
    now: datetime,
) -> None:
    """Schedule the transfer; omitted notes keep whatever was recorded before."""
    transfer.status = TransferStatus.SCHEDULED
    transfer.scheduled_date = scheduled_date
    if notes is not None:
        transfer.notes = notes
    transfer.updated_at = now


def check_can_unschedule(transfer: TitleTransfer) -> None:
    _check_not_completed(transfer)
    if transfer.status != TransferStatus.SCHEDULED:
        raise NotScheduledError(f"Title transfer #{transfer.id} has no scheduled date to cancel.")


def apply_unschedule(transfer: TitleTransfer, now: datetime) -> None:
    transfer.status = TransferStatus.PREPARATION
    transfer.scheduled_date = None
    transfer.notes = None
    transfer.updated_at = now


def check_can_complete(transfer: TitleTransfer) -> None:
    _check_not_completed(transfer)


def apply_completion(transfer: TitleTransfer, now: datetime) -> None:
    """Mark completed as of ``now``'s date.

    The scheduled date only lives while the transfer is scheduled, so it is
    cleared here.
    """
    transfer.status = TransferStatus.COMPLETED
    transfer.completed_date = now.date()
    transfer.scheduled_date = None
    transfer.updated_at = now
