"""
Core type definitions for NDJC.

Hashing helpers and the stage and run records kept for every pipeline run.
"""

from __future__ import annotations

import hashlib
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field

Hash = str  # SHA-256 hash


def utcnow() -> datetime:
    """Timezone-aware UTC timestamp."""
    return datetime.now(timezone.utc)


def content_hash(data: str | bytes) -> Hash:
    """SHA-256 of text or bytes."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


class StageStatus(str, Enum):
    """Status of a pipeline stage."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class StageResult(BaseModel):
    """Result of a pipeline stage execution."""

    stage_name: str = Field(description="Name of the pipeline stage")
    status: StageStatus = Field(default=StageStatus.RUNNING, description="Execution status")
    started_at: datetime = Field(default_factory=utcnow)
    completed_at: datetime | None = Field(default=None)
    duration_seconds: float = Field(default=0.0)
    output_hash: Hash = Field(default="", description="Hash of stage output")
    artifacts: list[str] = Field(default_factory=list, description="Storage keys written")
    error_message: str | None = Field(default=None)
    warnings: list[str] = Field(default_factory=list)

    def _finish(self, status: StageStatus) -> None:
        self.status = status
        self.completed_at = utcnow()
        self.duration_seconds = (self.completed_at - self.started_at).total_seconds()

    def mark_completed(self, output_hash: Hash = "", artifacts: list[str] | None = None) -> None:
        """Mark stage as successfully completed."""
        self.output_hash = output_hash
        self.artifacts = artifacts or []
        self._finish(StageStatus.COMPLETED)

    def mark_failed(self, error: str) -> None:
        """Mark stage as failed."""
        self.error_message = error
        self._finish(StageStatus.FAILED)


class PipelineRun(BaseModel):
    """Represents a complete pipeline execution."""

    run_id: str = Field(description="Unique run identifier")
    contract_hash: Hash = Field(default="", description="SHA-256 of the input contract JSON")
    started_at: datetime = Field(default_factory=utcnow)
    completed_at: datetime | None = Field(default=None)
    stages: list[StageResult] = Field(default_factory=list)
    final_status: StageStatus = Field(default=StageStatus.PENDING)

    def start_stage(self, name: str) -> StageResult:
        """Append and return a running stage record."""
        stage = StageResult(stage_name=name)
        self.stages.append(stage)
        return stage

    def finish(self, status: StageStatus) -> None:
        self.final_status = status
        self.completed_at = utcnow()
