# This project was developed with assistance from AI tools.
"""Shared fixtures: a throwaway SQLite database per test and a recording dispatcher.

The database is a file under ``tmp_path`` so that the sweep and the
stored-notification dispatcher can open their own sessions against it.
"""

import pytest
import pytest_asyncio
from db import Base
from db.enums import Department
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from credit.services.notifications import init_notification_dispatcher
from tests.factories import create_user
from tests.fakes import RecordingDispatcher


@pytest_asyncio.fixture
async def engine(tmp_path):
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'credit.db'}")
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest.fixture
def dispatcher():
    recorder = RecordingDispatcher()
    init_notification_dispatcher(recorder)
    return recorder


@pytest_asyncio.fixture
async def staff(session):
    """A marketer, two credit officers (one manager) and an accountant."""
    marketer = await create_user(session, "Mona Marketer", Department.MARKETING)
    officer = await create_user(session, "Omar Officer", Department.CREDIT)
    manager = await create_user(session, "Maha Manager", Department.CREDIT, is_manager=True)
    accountant = await create_user(session, "Adel Accountant", Department.ACCOUNTING)
    admin = await create_user(session, "Ali Admin", Department.ADMIN)
    await session.commit()
    return {
        "marketer": marketer,
        "officer": officer,
        "manager": manager,
        "accountant": accountant,
        "admin": admin,
    }
