"""
Integration tests for the FastAPI REST endpoints.

Uses the TestClient with the background run patched out, so no LLM calls.
"""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from unittest.mock import AsyncMock, patch
from fastapi.testclient import TestClient

from main import app
from api import routes
from api.run_store import run_store
from services.orchestrator import CompletionResult
from state import GenerationRequest, create_initial_state


@pytest.fixture(autouse=True)
def clean_run_store():
    """Reset the run store before each test."""
    run_store._store.clear()
    yield
    run_store._store.clear()


client = TestClient(app)


class TestHealthEndpoint:
    def test_health_check_returns_ok(self):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "service": "ContentOS API"}


class TestStartGeneration:
    def test_start_returns_202_with_run_id(self):
        with patch("api.routes._execute_generation", new_callable=AsyncMock) as mock_exec:
            response = client.post(
                "/api/content/generate",
                json={"requester_id": "user-1", "message": "Create 2 blogs about Vite"},
            )
        assert response.status_code == 202
        data = response.json()
        assert data["status"] == "pending"
        assert len(data["run_id"]) == 36  # UUID format
        assert run_store.get(data["run_id"])["requester_id"] == "user-1"
        mock_exec.assert_awaited_once()

    def test_accepts_context(self):
        with patch("api.routes._execute_generation", new_callable=AsyncMock):
            response = client.post(
                "/api/content/generate",
                json={
                    "requester_id": "user-1",
                    "message": "Write an article",
                    "content_type_hint": "article",
                    "context": {"difficulty": "ADVANCED", "word_count": 2000},
                },
            )
        assert response.status_code == 202

    def test_rejects_empty_message(self):
        response = client.post("/api/content/generate", json={"requester_id": "u", "message": ""})
        assert response.status_code == 422

    def test_rejects_missing_requester(self):
        response = client.post("/api/content/generate", json={"message": "Create a blog"})
        assert response.status_code == 422

    def test_rejects_unknown_content_type(self):
        response = client.post(
            "/api/content/generate",
            json={"requester_id": "u", "message": "x", "content_type_hint": "podcast"},
        )
        assert response.status_code == 422


class TestGetGenerationResult:
    def test_get_pending_run(self):
        run_store.create("test-run-id", "Create a blog")
        response = client.get("/api/content/runs/test-run-id")
        assert response.status_code == 200
        data = response.json()
        assert data["run_id"] == "test-run-id"
        assert data["status"] == "pending"
        assert data["message"] == "Create a blog"
        assert data["phase"] == "queued"
        assert data["progress"] is None

    def test_running_run_reports_progress(self):
        run_store.create("live-run", "Create 2 blogs")
        routes._progress_updater("live-run")({
            "phase": "creating",
            "current_step": "Iteration 2: saveBlog",
            "iteration": 2,
            "progress": {
                "blogs": {"completed": 1, "requested": 2},
                "articles": {"completed": 0, "requested": 0},
                "resources": {"completed": 0, "requested": 0},
            },
        })
        data = client.get("/api/content/runs/live-run").json()
        assert data["phase"] == "creating"
        assert data["current_step"] == "Iteration 2: saveBlog"
        assert data["progress"]["blogs"] == {"completed": 1, "requested": 2}
        assert data["iterations_used"] == 2

    def test_get_completed_run(self):
        run_store.create("completed-run", "Create a blog")
        run_store.update("completed-run", {
            "status": "completed",
            "result": {"outcome": "satisfied", "saved_items": {"blogs": [{"db_id": "b1"}]}},
            "iterations_used": 3,
        })
        response = client.get("/api/content/runs/completed-run")
        data = response.json()
        assert data["status"] == "completed"
        assert data["result"]["outcome"] == "satisfied"
        assert data["iterations_used"] == 3

    def test_get_nonexistent_run_returns_404(self):
        response = client.get("/api/content/runs/does-not-exist")
        assert response.status_code == 404


class TestExecuteGeneration:
    """The background task maps run outcomes onto polling statuses."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "outcome, expected",
        [("satisfied", "completed"), ("partial", "partial"), ("aborted", "failed"), ("failed_to_start", "failed")],
    )
    async def test_outcome_to_status(self, outcome, expected):
        request = GenerationRequest(requester_id="user-1", message="Create a blog")
        run_store.create("run-x", request.message)
        result = CompletionResult(
            success=outcome in ("satisfied", "partial"),
            outcome=outcome,
            run_id="run-x",
            iterations_used=2,
            errors=["boom"] if expected == "failed" else [],
        )
        state = create_initial_state("author-1", request.message, run_id="run-x")

        with patch("api.routes.execute_run", new_callable=AsyncMock, return_value=(result, state)), \
                patch("api.routes._persist_run", new_callable=AsyncMock) as mock_persist:
            await routes._execute_generation("run-x", request)

        run = run_store.get("run-x")
        assert run["status"] == expected
        assert run["result"]["outcome"] == outcome
        assert run["error"] == ("boom" if expected == "failed" else None)
        final_updates = mock_persist.await_args_list[-1].args[2]
        assert final_updates["state_snapshot"]["run_id"] == "run-x"

    @pytest.mark.asyncio
    async def test_crash_marks_run_failed(self):
        request = GenerationRequest(requester_id="user-1", message="Create a blog")
        run_store.create("run-y", request.message)
        with patch("api.routes.execute_run", new_callable=AsyncMock, side_effect=RuntimeError("db down")), \
                patch("api.routes._persist_run", new_callable=AsyncMock):
            await routes._execute_generation("run-y", request)
        run = run_store.get("run-y")
        assert run["status"] == "failed"
        assert run["error"] == "db down"
        assert run["phase"] == "failed"

    @pytest.mark.asyncio
    async def test_progress_is_visible_while_running(self):
        request = GenerationRequest(requester_id="user-1", message="Create 2 blogs")
        run_store.create("run-z", request.message)
        state = create_initial_state("author-1", request.message, run_id="run-z")
        seen_mid_run = {}

        async def fake_run(request, run_id=None, progress_callback=None):
            progress_callback({
                "phase": "creating",
                "current_step": "Iteration 1: analyzeRequest",
                "iteration": 1,
                "progress": {"blogs": {"completed": 0, "requested": 2}},
            })
            seen_mid_run.update(run_store.get(run_id))
            result = CompletionResult(success=True, outcome="partial", run_id=run_id, iterations_used=1)
            return result, state

        with patch("api.routes.execute_run", new=fake_run), \
                patch("api.routes._persist_run", new_callable=AsyncMock):
            await routes._execute_generation("run-z", request)

        assert seen_mid_run["status"] == "running"
        assert seen_mid_run["phase"] == "creating"
        assert seen_mid_run["progress"]["blogs"]["requested"] == 2
        run = run_store.get("run-z")
        assert run["status"] == "partial"
        assert run["phase"] == "finished"
