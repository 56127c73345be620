# This project was developed with assistance from AI tools.
"""Audit trail for financing and title transfer transitions.

Every transition appends one ``AuditEvent`` in the same transaction as the
change it records. Events form a SHA-256 chain: each row stores the digest
of its predecessor, so editing or deleting a past event breaks the link of
the event after it.
"""

import hashlib
import json
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from itertools import pairwise

from db import AuditEvent
from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession

from .deadlines import ensure_tz

logger = logging.getLogger(__name__)

GENESIS = "genesis"

# pg_advisory_xact_lock key shared by all audit writers
AUDIT_LOCK_KEY = 900_001


@dataclass(frozen=True)
class ChainReport:
    intact: bool
    events_checked: int
    first_break_id: int | None = None


def _digest(event: AuditEvent) -> str:
    """SHA-256 over everything an event records."""
    fields = [
        str(event.id),
        ensure_tz(event.timestamp).astimezone(UTC).isoformat(),
        event.event_type,
        "" if event.user_id is None else str(event.user_id),
        "" if event.reservation_id is None else str(event.reservation_id),
        json.dumps(event.event_data, sort_keys=True, default=str),
    ]
    return hashlib.sha256("|".join(fields).encode()).hexdigest()


async def write_audit_event(
    session: AsyncSession,
    *,
    event_type: str,
    user_id: int | None = None,
    reservation_id: int | None = None,
    event_data: dict | None = None,
    now: datetime | None = None,
) -> AuditEvent:
    """Append an event linked to the current chain head.

    Flushes but does not commit: the event lands or vanishes together with
    the transition that produced it.
    """
    if session.get_bind().dialect.name == "postgresql":
        # Held until the surrounding transaction ends.
        await session.execute(text(f"SELECT pg_advisory_xact_lock({AUDIT_LOCK_KEY})"))

    head = (
        await session.execute(select(AuditEvent).order_by(AuditEvent.id.desc()).limit(1))
    ).scalar_one_or_none()

    event = AuditEvent(
        timestamp=now or datetime.now(UTC),
        event_type=event_type,
        user_id=user_id,
        reservation_id=reservation_id,
        event_data=event_data,
        prev_hash=GENESIS if head is None else _digest(head),
    )
    session.add(event)
    await session.flush()
    return event


async def verify_audit_chain(session: AsyncSession) -> ChainReport:
    """Walk the whole trail in id order and report the first broken link."""
    events = list((await session.execute(select(AuditEvent).order_by(AuditEvent.id))).scalars())
    if not events:
        return ChainReport(intact=True, events_checked=0)

    if events[0].prev_hash != GENESIS:
        logger.warning("Audit chain does not start at genesis (event=%s)", events[0].id)
        return ChainReport(intact=False, events_checked=1, first_break_id=events[0].id)

    for checked, (prev, event) in enumerate(pairwise(events), start=2):
        if event.prev_hash != _digest(prev):
            logger.warning("Audit chain broken at event %s", event.id)
            return ChainReport(intact=False, events_checked=checked, first_break_id=event.id)

    return ChainReport(intact=True, events_checked=len(events))


async def get_reservation_events(
    session: AsyncSession,
    reservation_id: int,
    event_type: str | None = None,
) -> list[AuditEvent]:
    """Trail of one reservation, oldest first, optionally of one event type."""
    stmt = select(AuditEvent).where(AuditEvent.reservation_id == reservation_id)
    if event_type is not None:
        stmt = stmt.where(AuditEvent.event_type == event_type)
    result = await session.execute(stmt.order_by(AuditEvent.id))
    return list(result.scalars().all())
