"""
GenerationRun model — persists the audit trail of content-generation runs.

Each record stores the request metadata, the final completion result and a
snapshot of the OrchestrationState as it stood when the run ended.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, JSON, String, Text
from models.content import Base


class GenerationRun(Base):
    """
    A persisted generation run.

    Tracks the lifecycle of a run: pending → running → completed/partial/failed.
    """

    __tablename__ = "generation_runs"

    id = Column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    requester_id = Column(String(255), nullable=False)
    thread_id = Column(String(255), nullable=True)
    message = Column(Text, nullable=False)
    status = Column(
        String(20),
        nullable=False,
        default="pending",
    )
    result = Column(JSON, nullable=True)
    state_snapshot = Column(JSON, nullable=True)
    iterations_used = Column(Integer, nullable=True)
    duration_ms = Column(Integer, nullable=True)
    error = Column(Text, nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    completed_at = Column(
        DateTime(timezone=True),
        nullable=True,
    )

    def to_dict(self, include_snapshot: bool = False) -> dict:
        """Serialize to a JSON-friendly dict."""
        data = {
            "id": self.id,
            "requester_id": self.requester_id,
            "thread_id": self.thread_id,
            "message": self.message,
            "status": self.status,
            "result": self.result,
            "iterations_used": self.iterations_used,
            "duration_ms": self.duration_ms,
            "error": self.error,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }
        if include_snapshot:
            data["state_snapshot"] = self.state_snapshot
        return data
