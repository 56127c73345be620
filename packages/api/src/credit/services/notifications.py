# This project was developed with assistance from AI tools.
"""Notification targeting and dispatch.

Services collect ``Notification`` values while a transition runs and hand
them to ``dispatch_notifications`` only after the transaction commits.
Delivery is fire-and-forget: a failing dispatch is logged and never undoes
the transition that produced it.

Targets are resolved through ``NotificationTargetResolver`` so the state
machine never queries the user directory directly. The module exposes a
dispatcher singleton initialised at app startup via
``init_notification_dispatcher()``.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol

from db import FinancingTracker, Reservation, User, UserNotification
from db.enums import Department
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notification:
    """A message addressed to one user."""

    user_id: int
    message: str
    event_type: str | None = None
    context: dict | None = None


class NotificationDispatcher(Protocol):
    async def notify(
        self,
        user_id: int,
        message: str,
        event_type: str | None = None,
        context: dict | None = None,
    ) -> None: ...


class NotificationTargetResolver(Protocol):
    async def resolve_assigned(self, tracker_id: int) -> list[int]: ...

    async def resolve_department_managers(self, department: Department) -> list[int]: ...

    async def resolve_department_members(self, department: Department) -> list[int]: ...

    async def resolve_marketer(self, reservation_id: int) -> list[int]: ...


class DirectoryTargetResolver:
    """Resolves recipients from the ``users`` table within the caller's session."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def resolve_assigned(self, tracker_id: int) -> list[int]:
        result = await self._session.execute(
            select(FinancingTracker.assigned_to).where(FinancingTracker.id == tracker_id)
        )
        assigned = result.scalar_one_or_none()
        return [assigned] if assigned is not None else []

    async def resolve_department_managers(self, department: Department) -> list[int]:
        result = await self._session.execute(
            select(User.id)
            .where(User.department == department, User.is_manager.is_(True))
            .order_by(User.id)
        )
        return list(result.scalars().all())

    async def resolve_department_members(self, department: Department) -> list[int]:
        result = await self._session.execute(
            select(User.id).where(User.department == department).order_by(User.id)
        )
        return list(result.scalars().all())

    async def resolve_marketer(self, reservation_id: int) -> list[int]:
        result = await self._session.execute(
            select(Reservation.marketer_id).where(Reservation.id == reservation_id)
        )
        marketer = result.scalar_one_or_none()
        return [marketer] if marketer is not None else []


def fan_out(
    user_ids: Iterable[int],
    message: str,
    *,
    event_type: str | None = None,
    context: dict | None = None,
) -> list[Notification]:
    """Build one notification per distinct recipient, preserving order."""
    seen: set[int] = set()
    out: list[Notification] = []
    for user_id in user_ids:
        if user_id in seen:
            continue
        seen.add(user_id)
        out.append(Notification(user_id, message, event_type, context))
    return out


async def dispatch_notifications(
    dispatcher: NotificationDispatcher | None,
    notifications: Iterable[Notification],
) -> int:
    """Deliver notifications one by one; returns how many were accepted."""
    if dispatcher is None:
        notifications = list(notifications)
        if notifications:
            logger.warning("No notification dispatcher configured; dropped %d notification(s)", len(notifications))
        return 0
    delivered = 0
    for item in notifications:
        try:
            await dispatcher.notify(
                item.user_id,
                item.message,
                event_type=item.event_type,
                context=item.context,
            )
            delivered += 1
        except Exception:
            logger.warning(
                "Notification dispatch failed (user=%s, event=%s)",
                item.user_id,
                item.event_type,
                exc_info=True,
            )
    return delivered


class StoredNotificationDispatcher:
    """Persists notifications as ``UserNotification`` rows in a dedicated session."""

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def notify(
        self,
        user_id: int,
        message: str,
        event_type: str | None = None,
        context: dict | None = None,
    ) -> None:
        async with self._session_factory() as session:
            session.add(
                UserNotification(
                    user_id=user_id,
                    message=message,
                    event_type=event_type,
                    context=context,
                )
            )
            await session.commit()


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

_dispatcher: NotificationDispatcher | None = None


def init_notification_dispatcher(
    dispatcher: NotificationDispatcher | None = None,
) -> NotificationDispatcher:
    """Initialise the singleton (called once from app lifespan)."""
    global _dispatcher  # noqa: PLW0603
    if dispatcher is None:
        from db import SessionLocal

        dispatcher = StoredNotificationDispatcher(SessionLocal)
    _dispatcher = dispatcher
    logger.info("Notification dispatcher initialised (%s)", type(dispatcher).__name__)
    return _dispatcher


def get_notification_dispatcher() -> NotificationDispatcher | None:
    """Return the dispatcher singleton, or None before ``init_notification_dispatcher()``."""
    return _dispatcher
