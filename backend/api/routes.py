"""
REST API routes for ContentOS.

Endpoints:
    POST /api/content/generate          — Start a content-generation run
    GET  /api/content/runs/{run_id}     — Poll the status, progress or result of a run
    GET  /api/health                    — Health check
"""

import logging
import uuid
from typing import Any, Callable, Dict, Optional

from fastapi import APIRouter, BackgroundTasks, HTTPException
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError

from api.run_store import run_store
from services import run_service
from services.orchestrator import execute_run
from state import GenerationRequest

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request / Response Models
# ---------------------------------------------------------------------------

class GenerationRunResponse(BaseModel):
    run_id: str
    status: str  # "pending" | "running" | "completed" | "partial" | "failed"
    message: str


class GenerationResultResponse(BaseModel):
    run_id: str
    status: str
    phase: Optional[str] = None  # "queued" | "starting" | "analyzing" | "creating" | "finished" | "failed"
    current_step: Optional[str] = None
    progress: Optional[Dict[str, Dict[str, int]]] = None
    message: Optional[str] = None
    result: Optional[Dict[str, Any]] = None
    iterations_used: Optional[int] = None
    error: Optional[str] = None


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok", "service": "ContentOS API"}


@router.post("/content/generate", response_model=GenerationRunResponse, status_code=202)
async def start_generation(
    request: GenerationRequest,
    background_tasks: BackgroundTasks,
):
    """
    Start a new content-generation run.

    The run executes asynchronously in the background. Poll
    GET /api/content/runs/{run_id} for the result.
    """
    run_id = str(uuid.uuid4())

    # Register the run as pending in the in-memory store
    run_store.create(run_id, request.message, requester_id=request.requester_id)

    background_tasks.add_task(_execute_generation, run_id, request)

    return GenerationRunResponse(
        run_id=run_id,
        status="pending",
        message=f"Generation run started. Poll /api/content/runs/{run_id} for the result.",
    )


@router.get("/content/runs/{run_id}", response_model=GenerationResultResponse)
async def get_generation_result(run_id: str):
    """Retrieve the current status or final result of a generation run."""
    run = run_store.get(run_id)
    if run is None:
        raise HTTPException(status_code=404, detail=f"Run '{run_id}' not found.")

    return GenerationResultResponse(
        run_id=run_id,
        status=run["status"],
        phase=run.get("phase"),
        current_step=run.get("current_step"),
        progress=run.get("progress"),
        message=run.get("message"),
        result=run.get("result"),
        iterations_used=run.get("iterations_used"),
        error=run.get("error"),
    )


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

async def _persist_run(run_id: str, request: Optional[GenerationRequest], updates: Dict[str, Any]) -> None:
    """Create or update the generation_runs row. History is best effort."""
    from database import async_session

    try:
        async with async_session() as session:
            if request is not None:
                await run_service.create_run(
                    session,
                    run_id,
                    request.requester_id,
                    request.message,
                    thread_id=request.thread_id,
                )
            if updates:
                await run_service.update_run(session, run_id, updates)
    except SQLAlchemyError as exc:
        logger.warning("Could not persist run %s: %s", run_id, exc)


def _progress_updater(run_id: str) -> Callable[[Dict[str, Any]], None]:
    """Callback that copies each run_progress snapshot into the run store."""

    def update(snapshot: Dict[str, Any]) -> None:
        run_store.record_progress(run_id, snapshot)

    return update


async def _execute_generation(run_id: str, request: GenerationRequest) -> None:
    """Background task that executes one generation run."""
    run_store.update(run_id, {"status": "running"})
    await _persist_run(run_id, request, {"status": "running"})
    try:
        result, state = await execute_run(
            request, run_id=run_id, progress_callback=_progress_updater(run_id)
        )
    except Exception as exc:  # noqa: BLE001
        logger.exception("Generation run %s crashed", run_id)
        run_store.update(run_id, {"status": "failed", "phase": "failed", "error": str(exc)})
        await _persist_run(run_id, None, {"status": "failed", "error": str(exc)})
        return

    if result.outcome == "satisfied":
        status = "completed"
    elif result.outcome == "partial":
        status = "partial"
    else:
        status = "failed"
    error = "; ".join(result.errors) if status == "failed" else None
    payload = result.model_dump(mode="json")

    run_store.update(
        run_id,
        {
            "status": status,
            "phase": "failed" if status == "failed" else "finished",
            "result": payload,
            "iterations_used": result.iterations_used,
            "error": error,
        },
    )
    await _persist_run(
        run_id,
        None,
        {
            "status": status,
            "result": payload,
            "state_snapshot": state.model_dump(mode="json") if state is not None else None,
            "iterations_used": result.iterations_used,
            "duration_ms": result.duration_ms,
            "error": error,
        },
    )
