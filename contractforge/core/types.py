"""
Core type definitions for contractforge.

Provides type aliases and result types used throughout the pipeline
for type-safe data flow between stages.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field


# Type aliases
ArtifactPath = Path


class StageStatus(str, Enum):
    """Status of a single task graph node."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    UP_TO_DATE = "up-to-date"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def succeeded(self) -> bool:
        return self in (StageStatus.COMPLETED, StageStatus.UP_TO_DATE)


class BranchState(str, Enum):
    """Lifecycle of one target branch (server or client)."""

    PENDING = "pending"
    GENERATED = "generated"
    COMPILED = "compiled"
    PACKAGED = "packaged"
    PUBLISHED = "published"
    FAILED = "failed"


class StageResult(BaseModel):
    """Result of one task graph node execution."""

    stage_name: str = Field(description="Name of the task graph node")
    status: StageStatus = Field(default=StageStatus.PENDING, description="Execution status")
    started_at: datetime | None = Field(default=None)
    completed_at: datetime | None = Field(default=None)
    duration_seconds: float = Field(default=0.0)
    artifacts: list[ArtifactPath] = Field(default_factory=list, description="Produced outputs")
    error_message: str | None = Field(default=None)
    error_type: str | None = Field(default=None)
    blocked_by: str | None = Field(default=None, description="Dependency that prevented execution")

    def mark_running(self) -> None:
        """Mark stage as started."""
        self.status = StageStatus.RUNNING
        self.started_at = datetime.utcnow()

    def mark_completed(self, artifacts: list[ArtifactPath], up_to_date: bool = False) -> None:
        """Mark stage as successfully completed."""
        self.status = StageStatus.UP_TO_DATE if up_to_date else StageStatus.COMPLETED
        self.artifacts = artifacts
        self._finish()

    def mark_failed(self, error: Exception) -> None:
        """Mark stage as failed."""
        self.status = StageStatus.FAILED
        self.error_message = str(error)
        self.error_type = type(error).__name__
        self._finish()

    def mark_skipped(self, blocked_by: str) -> None:
        """Mark stage as skipped because a dependency did not succeed."""
        self.status = StageStatus.SKIPPED
        self.blocked_by = blocked_by

    def _finish(self) -> None:
        self.completed_at = datetime.utcnow()
        if self.started_at:
            self.duration_seconds = (self.completed_at - self.started_at).total_seconds()
