"""Build job model.

This module defines the in-memory Job record and the transition rules of
its lifecycle:

    queued --> processing --> completed
                         \\-> failed

Jobs live only for the life of the server process; see registry.py for
how they are stored and shared.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from webgame_builder.types import JobStatus, Platform


class InvalidTransitionError(Exception):
    """Raised when a job is asked to move to a state it cannot reach."""

    def __init__(
        self,
        job_id: str,
        current: JobStatus,
        target: JobStatus,
        code: str = "invalid_transition",
    ) -> None:
        super().__init__(
            f"Job {job_id} cannot move from {current.value} to {target.value}"
        )
        self.job_id = job_id
        self.current = current
        self.target = target
        self.code = code


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Job:
    """One build request and its tracked lifecycle.

    Attributes:
        id: Opaque unique identifier, assigned at submission.
        display_name: Uploaded archive name without its extension.
        platform: Target platform, fixed at creation.
        size_bytes: Size of the uploaded archive.
        created_at: Submission time.
        status: Current lifecycle state.
        progress: Percentage 0-100, never decreasing.
        step: Label of the current phase; set only while processing.
        error_detail: Human-readable failure reason; set only when failed.
        error_code: Machine-readable failure code; set only when failed.
        artifact_path: Finished artifact; set only when completed.
        sha256: Digest of the finished artifact.
        started_at: When processing began.
        finished_at: When a terminal state was reached.
    """

    id: str
    display_name: str
    platform: Platform
    size_bytes: int
    created_at: datetime = field(default_factory=_utcnow)
    status: JobStatus = JobStatus.QUEUED
    progress: int = 0
    step: str | None = None
    error_detail: str | None = None
    error_code: str | None = None
    artifact_path: Path | None = None
    sha256: str | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None

    def __repr__(self) -> str:
        """Return string representation of Job."""
        return (
            f"<Job(id='{self.id}', platform='{self.platform.value}', "
            f"status='{self.status.value}', progress={self.progress})>"
        )

    @property
    def is_terminal(self) -> bool:
        """Check if this job has finished, successfully or not."""
        return self.status.is_terminal

    def _require(self, expected: JobStatus, target: JobStatus) -> None:
        if self.status is not expected:
            raise InvalidTransitionError(self.id, self.status, target)

    def mark_processing(self, progress: int, step: str) -> None:
        """Mark this job as picked up by its orchestration task."""
        self._require(JobStatus.QUEUED, JobStatus.PROCESSING)
        self.status = JobStatus.PROCESSING
        self.started_at = _utcnow()
        self.advance(progress, step)

    def advance(self, progress: int, step: str) -> None:
        """Record a milestone of a processing job.

        Progress never moves backwards; a lower value keeps the current one.
        """
        self._require(JobStatus.PROCESSING, JobStatus.PROCESSING)
        self.progress = max(self.progress, min(progress, 100))
        self.step = step

    def mark_completed(self, artifact_path: Path, sha256: str | None = None) -> None:
        """Mark this job as completed with its published artifact."""
        self._require(JobStatus.PROCESSING, JobStatus.COMPLETED)
        self.artifact_path = artifact_path
        self.sha256 = sha256
        self.progress = 100
        self.step = None
        self.finished_at = _utcnow()
        self.status = JobStatus.COMPLETED

    def mark_failed(self, message: str, code: str = "build_failed") -> None:
        """Mark this job as failed.

        Args:
            message: Human-readable failure reason.
            code: Machine-readable failure category.
        """
        self._require(JobStatus.PROCESSING, JobStatus.FAILED)
        self.error_detail = message or "An unknown error occurred during the build."
        self.error_code = code
        self.step = None
        self.finished_at = _utcnow()
        self.status = JobStatus.FAILED


__all__ = ["InvalidTransitionError", "Job"]
