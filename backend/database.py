"""
Async engine and session factory for ContentOS.

DATABASE_URL picks the backend. Without it, content lands in a local
aiosqlite file so the API and the agent loop run on a fresh checkout.
SQLite connections get foreign keys switched on, so a blog or article can
never point at a resource, category or author row that does not exist.
"""

import os
from typing import Any, Dict

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

DATABASE_URL = os.environ.get(
    "DATABASE_URL",
    "sqlite+aiosqlite:///./contentos_dev.db",
)
DATABASE_ECHO = os.environ.get("DATABASE_ECHO", "").lower() in ("1", "true", "yes")


def engine_options(url: str) -> Dict[str, Any]:
    """Keyword arguments for create_async_engine, per backend."""
    if url.startswith("sqlite"):
        # Background runs and request handlers share the file across threads
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_engine_for(url: str, echo: bool = False) -> AsyncEngine:
    new_engine = create_async_engine(url, echo=echo, **engine_options(url))
    if url.startswith("sqlite"):
        event.listen(new_engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    return new_engine


engine = create_engine_for(DATABASE_URL, echo=DATABASE_ECHO)

async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_session() -> AsyncSession:
    """FastAPI dependency for the run history routes."""
    async with async_session() as session:
        yield session


async def init_db() -> None:
    """Create missing content and run-history tables at startup."""
    from models.content import Base
    import models.generation_run  # noqa: F401  registers generation_runs

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    await engine.dispose()
