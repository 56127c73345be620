# This project was developed with assistance from AI tools.
"""Progression service: transactional orchestration of financing and title transfer.

Each public operation is one atomic unit: load the tracker/transfer row
with ``FOR UPDATE``, validate preconditions, apply the transition, write
the audit event, commit. Notifications gathered along the way are
dispatched only after the commit succeeds.

``FinancingTracker`` and ``TitleTransfer`` carry a version column; an
operation that loses a race is rolled back and re-run once from a fresh
read, so a duplicate completion surfaces as the usual typed error.
"""

import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, date, datetime
from typing import TypeVar

from db import FinancingTracker, Reservation, TitleTransfer
from db.enums import CreditStatus, Department, PurchaseMechanism, ReservationStatus, TransferStatus, UnitStatus
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.exc import StaleDataError

from . import financing as rules
from . import title_transfer as transfer_rules
from .audit import write_audit_event
from .deadlines import STAGE_COUNT, ensure_tz
from .errors import (
    AlreadyExistsError,
    ConcurrentModificationError,
    CreditError,
    InvalidStateError,
    NotFoundError,
)
from .notifications import (
    DirectoryTargetResolver,
    Notification,
    NotificationDispatcher,
    NotificationTargetResolver,
    dispatch_notifications,
    fan_out,
    get_notification_dispatcher,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MAX_ATTEMPTS = 2


# ---------------------------------------------------------------------------
# Shared plumbing
# ---------------------------------------------------------------------------


def _now(now: datetime | None) -> datetime:
    return ensure_tz(now or datetime.now(UTC)).astimezone(UTC)


async def _close_refused(session: AsyncSession) -> None:
    """End the transaction of a refused operation.

    Refusals are raised before anything is changed, so the transaction is
    committed empty and objects the caller already holds stay loaded.
    Pending changes, if there are any, are rolled back instead.
    """
    if session.new or session.dirty or session.deleted:
        await session.rollback()
    else:
        await session.commit()


async def _run_atomic(
    session: AsyncSession,
    label: str,
    attempt: Callable[[], Awaitable[tuple[T, list[Notification]]]],
    dispatcher: NotificationDispatcher | None,
) -> T:
    """Run one attempt of an operation, retrying once on a version conflict.

    ``attempt`` must validate, mutate and commit; it returns the result and
    the notifications to send after commit. A typed refusal leaves the
    caller's loaded objects usable; a version conflict or persistence
    failure rolls the session back before it propagates.
    """
    for attempt_no in range(1, _MAX_ATTEMPTS + 1):
        try:
            result, notifications = await attempt()
        except StaleDataError as exc:
            await session.rollback()
            if attempt_no == _MAX_ATTEMPTS:
                raise ConcurrentModificationError(
                    f"{label}: the record kept changing concurrently; reload and retry."
                ) from exc
            logger.info("%s lost a concurrent update, retrying from a fresh read", label)
            continue
        except CreditError:
            await _close_refused(session)
            raise
        except Exception:
            await session.rollback()
            raise

        await dispatch_notifications(dispatcher or get_notification_dispatcher(), notifications)
        return result

    raise AssertionError("unreachable")


async def _load_reservation(
    session: AsyncSession,
    reservation_id: int,
    *,
    for_update: bool = False,
) -> Reservation:
    stmt = (
        select(Reservation)
        .options(
            selectinload(Reservation.financing_tracker),
            selectinload(Reservation.title_transfer),
            selectinload(Reservation.unit),
        )
        .where(Reservation.id == reservation_id)
        .execution_options(populate_existing=True)
    )
    if for_update:
        stmt = stmt.with_for_update()
    result = await session.execute(stmt)
    reservation = result.scalar_one_or_none()
    if reservation is None:
        raise NotFoundError(f"Reservation #{reservation_id} not found.")
    return reservation


async def _load_tracker(
    session: AsyncSession,
    tracker_id: int,
    *,
    for_update: bool = False,
) -> FinancingTracker:
    stmt = (
        select(FinancingTracker)
        .options(selectinload(FinancingTracker.reservation))
        .where(FinancingTracker.id == tracker_id)
        .execution_options(populate_existing=True)
    )
    if for_update:
        stmt = stmt.with_for_update()
    result = await session.execute(stmt)
    tracker = result.scalar_one_or_none()
    if tracker is None:
        raise NotFoundError(f"Financing tracker #{tracker_id} not found.")
    return tracker


async def _load_transfer(
    session: AsyncSession,
    transfer_id: int,
    *,
    for_update: bool = False,
) -> TitleTransfer:
    stmt = (
        select(TitleTransfer)
        .options(selectinload(TitleTransfer.reservation).selectinload(Reservation.unit))
        .where(TitleTransfer.id == transfer_id)
        .execution_options(populate_existing=True)
    )
    if for_update:
        stmt = stmt.with_for_update()
    result = await session.execute(stmt)
    transfer = result.scalar_one_or_none()
    if transfer is None:
        raise NotFoundError(f"Title transfer #{transfer_id} not found.")
    return transfer


# ---------------------------------------------------------------------------
# Financing tracker
# ---------------------------------------------------------------------------


async def get_tracker(session: AsyncSession, tracker_id: int) -> FinancingTracker:
    """Fresh read of a tracker with its stages and reservation."""
    return await _load_tracker(session, tracker_id)


async def get_tracker_by_reservation(session: AsyncSession, reservation_id: int) -> FinancingTracker:
    result = await session.execute(
        select(FinancingTracker.id).where(FinancingTracker.reservation_id == reservation_id)
    )
    tracker_id = result.scalar_one_or_none()
    if tracker_id is None:
        raise NotFoundError(f"No financing tracker for reservation #{reservation_id}.")
    return await _load_tracker(session, tracker_id)


async def get_tracker_details(
    session: AsyncSession,
    tracker_id: int,
    *,
    now: datetime | None = None,
) -> dict:
    """Tracker plus progress summary, current stage and remaining days."""
    now = _now(now)
    tracker = await _load_tracker(session, tracker_id)
    return {
        "financing": tracker,
        "progress_summary": rules.get_progress_summary(tracker, now),
        "current_stage": rules.get_current_stage(tracker),
        "remaining_days": rules.remaining_days(tracker, now),
        "all_completed": rules.all_stages_completed(tracker),
    }


async def initialize_financing(
    session: AsyncSession,
    reservation_id: int,
    assigned_to: int | None,
    *,
    actor_id: int | None = None,
    dispatcher: NotificationDispatcher | None = None,
    now: datetime | None = None,
) -> FinancingTracker:
    """Create the financing tracker for a confirmed, bank-financed reservation.

    Raises:
        NotFoundError: unknown reservation.
        InvalidStateError: reservation not confirmed or not bank financed.
        AlreadyExistsError: a tracker already exists.
    """
    now = _now(now)

    async def attempt():
        reservation = await _load_reservation(session, reservation_id, for_update=True)

        if reservation.status != ReservationStatus.CONFIRMED:
            raise InvalidStateError(
                f"Reservation #{reservation_id} is '{reservation.status.value}' -- "
                f"financing can only start for confirmed reservations."
            )
        if reservation.purchase_mechanism != PurchaseMechanism.BANK_FINANCING:
            raise InvalidStateError(
                f"Reservation #{reservation_id} is a "
                f"'{reservation.purchase_mechanism.value}' purchase -- "
                f"financing applies to bank financed reservations only."
            )
        if reservation.financing_tracker is not None:
            raise AlreadyExistsError(
                f"Financing was already initialized for reservation #{reservation_id}."
            )

        tracker = rules.new_tracker(reservation, assigned_to, now)
        session.add(tracker)
        reservation.credit_status = CreditStatus.IN_PROGRESS

        try:
            await write_audit_event(
                session,
                event_type="financing_initialized",
                user_id=actor_id,
                reservation_id=reservation_id,
                event_data={
                    "assigned_to": assigned_to,
                    "is_supported_bank": tracker.is_supported_bank,
                },
                now=now,
            )
            await session.commit()
        except IntegrityError as exc:
            await session.rollback()
            raise AlreadyExistsError(
                f"Financing was already initialized for reservation #{reservation_id}."
            ) from exc

        logger.info("Financing initialized (reservation=%s, tracker=%s)", reservation_id, tracker.id)
        return await _load_tracker(session, tracker.id), []

    return await _run_atomic(session, "initialize_financing", attempt, dispatcher)


async def complete_financing_stage(
    session: AsyncSession,
    tracker_id: int,
    stage: int,
    stage_data: dict | None = None,
    *,
    actor_id: int | None = None,
    dispatcher: NotificationDispatcher | None = None,
    resolver: NotificationTargetResolver | None = None,
    now: datetime | None = None,
) -> FinancingTracker:
    """Complete ``stage`` and open the next one.

    Completing stage 5 closes the tracker, moves the reservation to
    ``title_transfer`` and notifies the credit department.

    Raises:
        NotFoundError, InvalidStateError (stage outside 1..5),
        AlreadyTerminalError, OutOfOrderError, StageDataError.
    """
    now = _now(now)
    resolver = resolver or DirectoryTargetResolver(session)

    async def attempt():
        tracker = await _load_tracker(session, tracker_id, for_update=True)
        rules.check_can_complete(tracker, stage)
        data = rules.parse_stage_data(stage, stage_data)

        rules.apply_stage_completion(tracker, stage, data, now)

        notifications: list[Notification] = []
        reservation = tracker.reservation
        if stage == STAGE_COUNT:
            reservation.credit_status = CreditStatus.TITLE_TRANSFER
            recipients = await resolver.resolve_department_members(Department.CREDIT)
            notifications = fan_out(
                recipients,
                f"All financing procedures completed - reservation #{reservation.id}",
                event_type="financing_completed",
                context={"reservation_id": reservation.id, "tracker_id": tracker.id},
            )

        await write_audit_event(
            session,
            event_type="financing_stage_completed",
            user_id=actor_id,
            reservation_id=reservation.id,
            event_data={"tracker_id": tracker.id, "stage": stage, "data": data},
            now=now,
        )
        await session.commit()

        logger.info("Financing stage %d completed (tracker=%s)", stage, tracker_id)
        return await _load_tracker(session, tracker_id), notifications

    return await _run_atomic(session, "complete_financing_stage", attempt, dispatcher)


async def reject_financing(
    session: AsyncSession,
    tracker_id: int,
    reason: str,
    *,
    actor_id: int | None = None,
    dispatcher: NotificationDispatcher | None = None,
    resolver: NotificationTargetResolver | None = None,
    now: datetime | None = None,
) -> FinancingTracker:
    """Reject an in-progress tracker and notify the reservation's marketer."""
    now = _now(now)
    resolver = resolver or DirectoryTargetResolver(session)

    async def attempt():
        tracker = await _load_tracker(session, tracker_id, for_update=True)
        rules.check_can_reject(tracker)

        rules.apply_rejection(tracker, reason, now)
        reservation = tracker.reservation
        reservation.credit_status = CreditStatus.REJECTED

        recipients = await resolver.resolve_marketer(reservation.id)
        notifications = fan_out(
            recipients,
            f"Financing request rejected for reservation #{reservation.id}",
            event_type="financing_rejected",
            context={"reservation_id": reservation.id, "reason": reason},
        )

        await write_audit_event(
            session,
            event_type="financing_rejected",
            user_id=actor_id,
            reservation_id=reservation.id,
            event_data={"tracker_id": tracker.id, "reason": reason},
            now=now,
        )
        await session.commit()

        logger.info("Financing rejected (tracker=%s)", tracker_id)
        return await _load_tracker(session, tracker_id), notifications

    return await _run_atomic(session, "reject_financing", attempt, dispatcher)


async def flag_overdue_stages(
    session: AsyncSession,
    tracker_id: int,
    *,
    dispatcher: NotificationDispatcher | None = None,
    resolver: NotificationTargetResolver | None = None,
    now: datetime | None = None,
) -> int:
    """Mark this tracker's open stages past their deadline as overdue.

    Stages already overdue are left alone, so re-running at the same
    instant changes nothing and sends nothing. Each newly overdue stage
    notifies the assignee and the credit managers. Returns the number of
    stages marked.
    """
    now = _now(now)
    resolver = resolver or DirectoryTargetResolver(session)

    async def attempt():
        tracker = await _load_tracker(session, tracker_id, for_update=True)
        late = rules.stages_past_deadline(tracker, now)
        if not late:
            await session.commit()
            return 0, []

        reservation_id = tracker.reservation_id
        recipients = [
            *await resolver.resolve_assigned(tracker.id),
            *await resolver.resolve_department_managers(Department.CREDIT),
        ]
        notifications: list[Notification] = []
        for stage in late:
            rules.mark_overdue(tracker, stage, now)
            notifications.extend(
                fan_out(
                    recipients,
                    f"Financing stage {stage.stage} overdue for reservation #{reservation_id}",
                    event_type="financing_stage_overdue",
                    context={"reservation_id": reservation_id, "stage": stage.stage},
                )
            )
            await write_audit_event(
                session,
                event_type="financing_stage_overdue",
                reservation_id=reservation_id,
                event_data={"tracker_id": tracker.id, "stage": stage.stage},
                now=now,
            )
        await session.commit()

        logger.info("Tracker %s: %d stage(s) marked overdue", tracker_id, len(late))
        return len(late), notifications

    return await _run_atomic(session, "flag_overdue_stages", attempt, dispatcher)


async def advance_or_initialize_financing(
    session: AsyncSession,
    reservation_id: int,
    stage_data: dict | None = None,
    *,
    actor_id: int | None = None,
    dispatcher: NotificationDispatcher | None = None,
    resolver: NotificationTargetResolver | None = None,
    now: datetime | None = None,
) -> dict:
    """Start financing, or complete the tracker's current stage.

    Returns ``{"action": "initialized", "financing": tracker}`` or
    ``{"action": "stage_completed", "financing": tracker, "stage": n}``.
    """
    reservation = await _load_reservation(session, reservation_id)
    tracker = reservation.financing_tracker

    if tracker is None:
        tracker = await initialize_financing(
            session,
            reservation_id,
            actor_id,
            actor_id=actor_id,
            dispatcher=dispatcher,
            now=now,
        )
        return {"action": "initialized", "financing": tracker}

    try:
        rules.check_can_advance(tracker)
    except CreditError:
        await _close_refused(session)
        raise

    stage = rules.get_current_stage(tracker)
    tracker = await complete_financing_stage(
        session,
        tracker.id,
        stage,
        stage_data,
        actor_id=actor_id,
        dispatcher=dispatcher,
        resolver=resolver,
        now=now,
    )
    return {"action": "stage_completed", "financing": tracker, "stage": stage}


# ---------------------------------------------------------------------------
# Title transfer
# ---------------------------------------------------------------------------


async def get_transfer(session: AsyncSession, transfer_id: int) -> TitleTransfer:
    return await _load_transfer(session, transfer_id)


async def initialize_title_transfer(
    session: AsyncSession,
    reservation_id: int,
    processed_by: int | None,
    *,
    dispatcher: NotificationDispatcher | None = None,
    now: datetime | None = None,
) -> TitleTransfer:
    """Open the title transfer in ``preparation``.

    Raises:
        NotFoundError, InvalidStateError (not confirmed),
        FinancingIncompleteError, AlreadyExistsError.
    """
    now = _now(now)

    async def attempt():
        reservation = await _load_reservation(session, reservation_id, for_update=True)
        transfer_rules.check_can_initialize(reservation)

        transfer = transfer_rules.new_transfer(reservation, processed_by, now)
        session.add(transfer)
        reservation.credit_status = CreditStatus.TITLE_TRANSFER

        try:
            await write_audit_event(
                session,
                event_type="title_transfer_initialized",
                user_id=processed_by,
                reservation_id=reservation_id,
                event_data={"purchase_mechanism": reservation.purchase_mechanism.value},
                now=now,
            )
            await session.commit()
        except IntegrityError as exc:
            await session.rollback()
            raise AlreadyExistsError(
                f"A title transfer already exists for reservation #{reservation_id}."
            ) from exc

        logger.info("Title transfer initialized (reservation=%s, transfer=%s)", reservation_id, transfer.id)
        return await _load_transfer(session, transfer.id), []

    return await _run_atomic(session, "initialize_title_transfer", attempt, dispatcher)


async def schedule_title_transfer(
    session: AsyncSession,
    transfer_id: int,
    scheduled_date: date,
    notes: str | None = None,
    *,
    actor_id: int | None = None,
    dispatcher: NotificationDispatcher | None = None,
    resolver: NotificationTargetResolver | None = None,
    now: datetime | None = None,
) -> TitleTransfer:
    """Schedule (or reschedule) the transfer date and notify the marketer."""
    now = _now(now)
    resolver = resolver or DirectoryTargetResolver(session)

    async def attempt():
        transfer = await _load_transfer(session, transfer_id, for_update=True)
        transfer_rules.check_can_schedule(transfer, scheduled_date, now.date())
        transfer_rules.apply_schedule(transfer, scheduled_date, notes, now)

        reservation_id = transfer.reservation_id
        recipients = await resolver.resolve_marketer(reservation_id)
        notifications = fan_out(
            recipients,
            f"Title transfer for reservation #{reservation_id} scheduled on "
            f"{scheduled_date.isoformat()}",
            event_type="title_transfer_scheduled",
            context={"reservation_id": reservation_id, "scheduled_date": scheduled_date.isoformat()},
        )

        await write_audit_event(
            session,
            event_type="title_transfer_scheduled",
            user_id=actor_id,
            reservation_id=reservation_id,
            event_data={"transfer_id": transfer_id, "scheduled_date": scheduled_date.isoformat()},
            now=now,
        )
        await session.commit()

        logger.info("Title transfer %s scheduled for %s", transfer_id, scheduled_date)
        return await _load_transfer(session, transfer_id), notifications

    return await _run_atomic(session, "schedule_title_transfer", attempt, dispatcher)


async def unschedule_title_transfer(
    session: AsyncSession,
    transfer_id: int,
    *,
    actor_id: int | None = None,
    dispatcher: NotificationDispatcher | None = None,
    now: datetime | None = None,
) -> TitleTransfer:
    """Cancel the scheduled date and return the transfer to preparation."""
    now = _now(now)

    async def attempt():
        transfer = await _load_transfer(session, transfer_id, for_update=True)
        transfer_rules.check_can_unschedule(transfer)
        transfer_rules.apply_unschedule(transfer, now)

        await write_audit_event(
            session,
            event_type="title_transfer_unscheduled",
            user_id=actor_id,
            reservation_id=transfer.reservation_id,
            event_data={"transfer_id": transfer_id},
            now=now,
        )
        await session.commit()

        logger.info("Title transfer %s unscheduled", transfer_id)
        return await _load_transfer(session, transfer_id), []

    return await _run_atomic(session, "unschedule_title_transfer", attempt, dispatcher)


async def complete_title_transfer(
    session: AsyncSession,
    transfer_id: int,
    *,
    actor_id: int | None = None,
    dispatcher: NotificationDispatcher | None = None,
    resolver: NotificationTargetResolver | None = None,
    now: datetime | None = None,
) -> TitleTransfer:
    """Complete the transfer: reservation and unit become ``sold``.

    Notifies the marketer plus the credit and accounting departments.
    """
    now = _now(now)
    resolver = resolver or DirectoryTargetResolver(session)

    async def attempt():
        transfer = await _load_transfer(session, transfer_id, for_update=True)
        transfer_rules.check_can_complete(transfer)
        transfer_rules.apply_completion(transfer, now)

        reservation = transfer.reservation
        reservation.credit_status = CreditStatus.SOLD
        if reservation.unit is not None:
            reservation.unit.status = UnitStatus.SOLD

        recipients = [
            *await resolver.resolve_marketer(reservation.id),
            *await resolver.resolve_department_members(Department.CREDIT),
            *await resolver.resolve_department_members(Department.ACCOUNTING),
        ]
        notifications = fan_out(
            recipients,
            f"Title transfer completed for reservation #{reservation.id}",
            event_type="title_transfer_completed",
            context={"reservation_id": reservation.id},
        )

        await write_audit_event(
            session,
            event_type="title_transfer_completed",
            user_id=actor_id,
            reservation_id=reservation.id,
            event_data={"transfer_id": transfer_id, "unit_id": reservation.unit_id},
            now=now,
        )
        await session.commit()

        logger.info("Title transfer %s completed (reservation=%s sold)", transfer_id, reservation.id)
        return await _load_transfer(session, transfer_id), notifications

    return await _run_atomic(session, "complete_title_transfer", attempt, dispatcher)


async def list_pending_transfers(session: AsyncSession) -> list[TitleTransfer]:
    """Transfers not yet completed, soonest scheduled first (unscheduled last)."""
    stmt = (
        select(TitleTransfer)
        .where(TitleTransfer.status.in_(TransferStatus.open_statuses()))
        .order_by(TitleTransfer.scheduled_date.asc().nulls_last(), TitleTransfer.id)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def list_sold_transfers(
    session: AsyncSession,
    *,
    from_date: date | None = None,
    to_date: date | None = None,
) -> list[TitleTransfer]:
    """Completed transfers, newest completion first, optionally within a date range."""
    stmt = select(TitleTransfer).where(TitleTransfer.status == TransferStatus.COMPLETED)
    if from_date is not None:
        stmt = stmt.where(TitleTransfer.completed_date >= from_date)
    if to_date is not None:
        stmt = stmt.where(TitleTransfer.completed_date <= to_date)
    stmt = stmt.order_by(TitleTransfer.completed_date.desc(), TitleTransfer.id.desc())
    result = await session.execute(stmt)
    return list(result.scalars().all())
