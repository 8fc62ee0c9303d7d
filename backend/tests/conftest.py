"""
Shared fixtures: an in-memory SQLite database and a tool context per test.
"""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from models.content import Base, User
import models.generation_run  # noqa: F401
from state import create_initial_state
from tools.context import Capabilities, ToolContext


@pytest_asyncio.fixture
async def session_factory():
    """A fresh in-memory database with every table created."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def author(session_factory):
    async with session_factory() as session:
        user = User(email="author@example.com", name="Author", role="AUTHOR")
        session.add(user)
        await session.commit()
        await session.refresh(user)
        return user


@pytest.fixture
def state(author):
    return create_initial_state(author.id, "Create content")


@pytest.fixture
def ctx(state, session_factory):
    return ToolContext(state=state, session_factory=session_factory, capabilities=Capabilities())


@pytest.fixture
def analyzed():
    """Return a helper that marks a state as analyzed with the given counts."""

    def mark(state, blogs=0, articles=0, resources=0):
        state.analysis.requested = {"blog": blogs, "article": articles, "resource": resources}
        state.analysis.complete = True
        state.refresh_completion_flags()
        return state

    return mark
