"""Build service module.

This module provides the high-level build API used by every front-end:
- submit(): validate an upload, register a job and schedule its build
- get_job() / list_jobs(): read job state from the registry
- locate_artifact(): resolve a completed job to its file
- prune_expired(): apply the job retention policy

Submission validates before touching the filesystem, and a job record is
only created once the upload is safely on disk and a build slot is held.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import BinaryIO

from webgame_builder.builds.artifacts import ArtifactServer
from webgame_builder.builds.dispatcher import BuildDispatcher
from webgame_builder.builds.models import Job
from webgame_builder.builds.orchestrator import BuildOrchestrator
from webgame_builder.builds.registry import JobRegistry
from webgame_builder.builds.staging import (
    InvalidInputError,
    save_upload,
    validate_archive_name,
)
from webgame_builder.config import Settings, get_settings
from webgame_builder.types import (
    PLATFORM_ALIASES,
    ArtifactLocation,
    JobStatus,
    Platform,
)

logger = logging.getLogger(__name__)


class BuildServiceError(Exception):
    """Base error for build service operations."""

    def __init__(self, message: str, code: str = "build_service_error") -> None:
        super().__init__(message)
        self.code = code


def parse_platform(value: str | Platform | None) -> Platform:
    """Parse a platform name.

    Missing values default to mobile. The legacy names ``android`` and
    ``pc`` are accepted.

    Raises:
        InvalidInputError: If the value names no known platform.
    """
    if value is None or value == "":
        return Platform.MOBILE
    if isinstance(value, Platform):
        return value
    normalized = value.strip().lower()
    if normalized in PLATFORM_ALIASES:
        return PLATFORM_ALIASES[normalized]
    try:
        return Platform(normalized)
    except ValueError:
        valid = ", ".join(p.value for p in Platform)
        raise InvalidInputError(
            f"Invalid platform: {value}. Valid values: {valid}",
            code="invalid_platform",
        ) from None


def parse_status(value: str | None) -> JobStatus | None:
    """Parse an optional status filter.

    Raises:
        InvalidInputError: If the value names no known status.
    """
    if not value:
        return None
    try:
        return JobStatus(value.strip().lower())
    except ValueError:
        valid = ", ".join(s.value for s in JobStatus)
        raise InvalidInputError(
            f"Invalid status: {value}. Valid values: {valid}",
            code="invalid_status",
        ) from None


class BuildService:
    """Ties the registry, orchestrator, dispatcher and artifact store together."""

    def __init__(
        self,
        settings: Settings | None = None,
        registry: JobRegistry | None = None,
        dispatcher: BuildDispatcher | None = None,
    ) -> None:
        self.settings = settings if settings is not None else get_settings()
        self.registry = registry if registry is not None else JobRegistry()
        self.dispatcher = (
            dispatcher
            if dispatcher is not None
            else BuildDispatcher(
                max_workers=self.settings.max_concurrent_builds,
                max_pending=self.settings.max_pending_builds,
            )
        )
        self.orchestrator = BuildOrchestrator(self.registry, self.settings)
        self.artifacts = ArtifactServer(self.registry, self.settings.artifacts_dir)
        self.settings.ensure_directories()

    def submit(
        self,
        filename: str | None,
        stream: BinaryIO,
        platform: str | Platform | None = None,
    ) -> Job:
        """Accept an uploaded archive and schedule its build.

        Args:
            filename: Name declared by the uploader.
            stream: Binary stream of the upload.
            platform: Target platform name.

        Returns:
            Snapshot of the queued job.

        Raises:
            InvalidInputError: If the name, platform or content is rejected.
            BuildQueueFullError: If no build slot is available.
        """
        display_name = validate_archive_name(
            filename, self.settings.archive_extension
        )
        target = parse_platform(platform)
        self.prune_expired()

        self.dispatcher.reserve()
        job: Job | None = None
        dispatched = False
        partial_path = self.settings.uploads_dir / f".{uuid.uuid4().hex}.part"
        try:
            size_bytes = save_upload(stream, partial_path)
            job = self.registry.create(target, display_name, size_bytes)
            upload_path = self.settings.uploads_dir / (
                f"{job.id}{self.settings.archive_extension}"
            )
            partial_path.replace(upload_path)
            try:
                self.dispatcher.dispatch(
                    job.id,
                    self.orchestrator.run,
                    job.id,
                    upload_path,
                    on_cancelled=self._on_cancelled,
                )
            except RuntimeError as e:
                raise BuildServiceError(
                    "Build service is shutting down", code="service_unavailable"
                ) from e
            dispatched = True
        finally:
            if not dispatched:
                self.dispatcher.release()
                partial_path.unlink(missing_ok=True)
                if job is not None:
                    self.orchestrator.abandon(
                        job.id, "Build could not be scheduled"
                    )

        logger.info("Queued job %s for %s", job.id, target.value)
        return job

    def get_job(self, job_id: str) -> Job:
        """Get a job snapshot.

        Raises:
            JobNotFoundError: If the job does not exist.
        """
        return self.registry.get(job_id)

    def list_jobs(self, status: JobStatus | None = None) -> list[Job]:
        """List job snapshots, newest first."""
        self.prune_expired()
        return self.registry.list(status=status)

    def locate_artifact(self, job_id: str) -> ArtifactLocation:
        """Resolve a completed job to its artifact.

        Raises:
            JobNotFoundError: If the job does not exist.
            ArtifactNotFoundError: If no artifact can be served.
        """
        return self.artifacts.locate(job_id)

    def wait(self, job_id: str, timeout: float | None = None) -> Job:
        """Block until a job's build task ends and return the job."""
        self.dispatcher.wait(job_id, timeout=timeout)
        return self.registry.get(job_id)

    def prune_expired(self, now: datetime | None = None) -> int:
        """Forget finished jobs older than the retention window.

        Returns:
            Number of jobs removed.
        """
        retention = self.settings.job_retention_seconds
        if retention is None:
            return 0
        now = now or datetime.now(timezone.utc)
        removed = self.registry.remove_finished_before(
            now - timedelta(seconds=retention)
        )
        for job in removed:
            self.artifacts.discard(job)
        return len(removed)

    def shutdown(self, wait: bool = True) -> None:
        """Stop scheduling builds; waiting jobs are failed as cancelled."""
        self.dispatcher.shutdown(wait=wait)

    def _on_cancelled(self, job_id: str) -> None:
        self.orchestrator.abandon(job_id, "Build cancelled before it started")


__all__ = [
    "BuildService",
    "BuildServiceError",
    "parse_platform",
    "parse_status",
]
