# This project was developed with assistance from AI tools.
"""Actor resolution for credit desk routes.

Authentication happens upstream; requests arrive with an ``X-User-Id``
header naming the acting user, which is resolved against the ``users``
table.
"""

import logging
from typing import Annotated

from db import User, get_db
from db.enums import Department
from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


async def get_current_actor(
    x_user_id: Annotated[str | None, Header()] = None,
    session: AsyncSession = Depends(get_db),
) -> User:
    """FastAPI dependency: return the ``User`` named by the X-User-Id header."""
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header",
        )
    try:
        user_id = int(x_user_id)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid X-User-Id header",
        ) from exc

    user = await session.get(User, user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unknown user",
        )
    return user


# Type alias for use in route signatures
CurrentActor = Annotated[User, Depends(get_current_actor)]


def require_departments(*allowed: Department):
    """Dependency factory: restrict a route to members of specific departments.

    Usage:
        @router.post("/x", dependencies=[Depends(require_departments(Department.CREDIT))])
    """

    async def _check(actor: CurrentActor) -> User:
        if actor.department not in allowed:
            logger.warning(
                "Department check denied: user=%s department=%s attempted route requiring %s",
                actor.id,
                actor.department.value,
                [d.value for d in allowed],
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return actor

    return _check
