"""Tests for the in-memory RunStore."""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from api.run_store import RunStore


class TestRunStore:
    def setup_method(self):
        self.store = RunStore()

    def test_create_and_get(self):
        self.store.create("run-1", "Create a blog", requester_id="user-1")
        run = self.store.get("run-1")
        assert run is not None
        assert run["run_id"] == "run-1"
        assert run["message"] == "Create a blog"
        assert run["requester_id"] == "user-1"
        assert run["status"] == "pending"
        assert run["result"] is None
        assert run["phase"] == "queued"
        assert run["current_step"] is None
        assert run["progress"] is None

    def test_get_nonexistent_returns_none(self):
        assert self.store.get("nonexistent") is None

    def test_update_status(self):
        self.store.create("run-2", "Create a blog")
        self.store.update("run-2", {"status": "running"})
        assert self.store.get("run-2")["status"] == "running"

    def test_update_nonexistent_is_noop(self):
        """Updating a non-existent run should not raise."""
        self.store.update("ghost-run", {"status": "running"})
        assert self.store.get("ghost-run") is None

    def test_delete(self):
        self.store.create("run-3", "Create a blog")
        self.store.delete("run-3")
        assert self.store.get("run-3") is None

    def test_delete_nonexistent_is_noop(self):
        self.store.delete("ghost-run")

    def test_update_partial_fields(self):
        self.store.create("run-4", "Create a blog")
        self.store.update("run-4", {"status": "completed", "result": {"outcome": "satisfied"}})
        run = self.store.get("run-4")
        assert run["status"] == "completed"
        assert run["result"] == {"outcome": "satisfied"}
        assert run["message"] == "Create a blog"  # original field preserved

    def test_multiple_runs_independent(self):
        self.store.create("run-a", "Blogs")
        self.store.create("run-b", "Articles")
        self.store.update("run-a", {"status": "running"})
        assert self.store.get("run-b")["status"] == "pending"

    def test_record_progress(self):
        self.store.create("run-p", "Create 2 blogs")
        self.store.update("run-p", {"status": "running"})
        self.store.record_progress("run-p", {
            "phase": "creating",
            "current_step": "Iteration 3: saveBlog",
            "iteration": 3,
            "progress": {"blogs": {"completed": 1, "requested": 2}},
        })
        run = self.store.get("run-p")
        assert run["phase"] == "creating"
        assert run["current_step"] == "Iteration 3: saveBlog"
        assert run["iterations_used"] == 3
        assert run["progress"]["blogs"] == {"completed": 1, "requested": 2}

    def test_progress_after_finish_is_ignored(self):
        self.store.create("run-f", "Create a blog")
        self.store.update("run-f", {"status": "completed", "phase": "finished"})
        self.store.record_progress("run-f", {"phase": "creating", "iteration": 9})
        assert self.store.get("run-f")["phase"] == "finished"

    def test_progress_for_unknown_run_is_noop(self):
        self.store.record_progress("ghost-run", {"phase": "creating"})
        assert self.store.get("ghost-run") is None
