"""In-process job registry.

The registry is the single source of truth for job status queries. It
lives for the life of the server process; nothing is persisted.

All access goes through one lock: structural changes (create, remove) and
field updates are serialized, and readers get copies taken under the lock
so they never observe a half-applied transition.
"""

from __future__ import annotations

import copy
import logging
import threading
import uuid
from collections.abc import Callable
from datetime import datetime
from typing import TypeVar

from webgame_builder.builds.models import Job
from webgame_builder.types import JobStatus, Platform

logger = logging.getLogger(__name__)

T = TypeVar("T")


class JobNotFoundError(Exception):
    """Raised when a job is not found."""

    def __init__(self, job_id: str, code: str = "job_not_found") -> None:
        super().__init__(f"Build not found: {job_id}")
        self.job_id = job_id
        self.code = code


class JobRegistry:
    """Thread-safe map of job id to Job."""

    def __init__(self) -> None:
        self._jobs: dict[str, Job] = {}
        self._issued: set[str] = set()
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    def __contains__(self, job_id: object) -> bool:
        with self._lock:
            return job_id in self._jobs

    def create(self, platform: Platform, display_name: str, size_bytes: int) -> Job:
        """Register a new job in queued state.

        Args:
            platform: Target platform.
            display_name: Name shown to users.
            size_bytes: Size of the uploaded archive.

        Returns:
            Snapshot of the created job.
        """
        with self._lock:
            job_id = str(uuid.uuid4())
            while job_id in self._issued:
                job_id = str(uuid.uuid4())
            self._issued.add(job_id)
            job = Job(
                id=job_id,
                display_name=display_name,
                platform=platform,
                size_bytes=size_bytes,
            )
            self._jobs[job_id] = job
            logger.info(
                "Created job %s (%s, %s, %d bytes)",
                job_id,
                platform.value,
                display_name,
                size_bytes,
            )
            return copy.copy(job)

    def get(self, job_id: str) -> Job:
        """Get a snapshot of a job.

        Raises:
            JobNotFoundError: If the job does not exist.
        """
        with self._lock:
            return copy.copy(self._get_live(job_id))

    def list(self, status: JobStatus | None = None) -> list[Job]:
        """List snapshots of all jobs, newest first.

        Args:
            status: Only return jobs in this status.
        """
        with self._lock:
            jobs = [copy.copy(job) for job in self._jobs.values()]
        if status is not None:
            jobs = [job for job in jobs if job.status is status]
        jobs.sort(key=lambda job: job.created_at, reverse=True)
        return jobs

    def update(self, job_id: str, mutator: Callable[[Job], T]) -> T:
        """Apply a mutation to a job atomically.

        Only the orchestration task owning the job calls this.

        Args:
            job_id: Job to mutate.
            mutator: Callable receiving the live Job.

        Returns:
            Whatever the mutator returns.

        Raises:
            JobNotFoundError: If the job does not exist.
        """
        with self._lock:
            return mutator(self._get_live(job_id))

    def remove_finished_before(self, cutoff: datetime) -> list[Job]:
        """Forget terminal jobs that finished before ``cutoff``.

        Returns:
            The removed jobs.
        """
        removed: list[Job] = []
        with self._lock:
            for job_id, job in list(self._jobs.items()):
                if (
                    job.is_terminal
                    and job.finished_at is not None
                    and job.finished_at < cutoff
                ):
                    removed.append(self._jobs.pop(job_id))
        if removed:
            logger.info("Evicted %d finished jobs", len(removed))
        return removed

    def _get_live(self, job_id: str) -> Job:
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job


__all__ = ["JobNotFoundError", "JobRegistry"]
