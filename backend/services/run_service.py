"""
Run Service — CRUD operations for persisted generation runs.

Provides async functions to create, read, update, and list generation runs.
Works alongside the in-memory run_store which handles real-time status
during execution.
"""

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models.generation_run import GenerationRun


TERMINAL_STATUSES = ("completed", "partial", "failed")


async def create_run(
    session: AsyncSession,
    run_id: str,
    requester_id: str,
    message: str,
    thread_id: Optional[str] = None,
) -> GenerationRun:
    """Create a new generation run record."""
    run = GenerationRun(
        id=run_id,
        requester_id=requester_id,
        thread_id=thread_id,
        message=message,
        status="pending",
    )
    session.add(run)
    await session.commit()
    await session.refresh(run)
    return run


async def get_run(session: AsyncSession, run_id: str) -> Optional[GenerationRun]:
    """Get a generation run by ID."""
    result = await session.execute(select(GenerationRun).where(GenerationRun.id == run_id))
    return result.scalar_one_or_none()


async def list_runs(
    session: AsyncSession,
    limit: int = 50,
    offset: int = 0,
) -> List[GenerationRun]:
    """List generation runs, ordered by most recent first."""
    result = await session.execute(
        select(GenerationRun)
        .order_by(GenerationRun.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars().all())


async def update_run(
    session: AsyncSession,
    run_id: str,
    updates: dict,
) -> Optional[GenerationRun]:
    """Update a generation run with the given fields."""
    run = await get_run(session, run_id)
    if run is None:
        return None

    for key, value in updates.items():
        if hasattr(run, key):
            setattr(run, key, value)

    # Auto-set completed_at when status becomes terminal
    if updates.get("status") in TERMINAL_STATUSES:
        run.completed_at = datetime.now(timezone.utc)

    await session.commit()
    await session.refresh(run)
    return run
