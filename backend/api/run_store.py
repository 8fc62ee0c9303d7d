"""
In-memory run store.

Tracks the live status, progress and results of generation runs by run_id
while they execute in background tasks. Finished runs are also persisted to the
generation_runs table; this store only serves the polling endpoint.
"""

from typing import Any, Dict, Optional
import threading

TERMINAL_STATUSES = ("completed", "partial", "failed")


class RunStore:
    """Thread-safe in-memory store for generation run state."""

    def __init__(self) -> None:
        self._store: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def create(self, run_id: str, message: str, requester_id: Optional[str] = None) -> None:
        with self._lock:
            self._store[run_id] = {
                "run_id": run_id,
                "message": message,
                "requester_id": requester_id,
                "status": "pending",
                "phase": "queued",
                "current_step": None,
                "progress": None,
                "result": None,
                "iterations_used": None,
                "error": None,
            }

    def get(self, run_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            return self._store.get(run_id)

    def update(self, run_id: str, updates: Dict[str, Any]) -> None:
        with self._lock:
            if run_id in self._store:
                self._store[run_id].update(updates)

    def record_progress(self, run_id: str, snapshot: Dict[str, Any]) -> None:
        """Copy a run_progress snapshot onto a live run; ignored once the run is terminal."""
        with self._lock:
            run = self._store.get(run_id)
            if run is None or run["status"] in TERMINAL_STATUSES:
                return
            run["phase"] = snapshot["phase"]
            run["current_step"] = snapshot.get("current_step")
            run["progress"] = snapshot.get("progress")
            run["iterations_used"] = snapshot.get("iteration")

    def delete(self, run_id: str) -> None:
        with self._lock:
            self._store.pop(run_id, None)


# Singleton instance shared across the application
run_store = RunStore()
