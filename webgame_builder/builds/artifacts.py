"""Artifact store and lookup.

This module handles:
- Mapping a job and its platform to a path in the artifact store
- Locating the finished artifact of a completed job for download
- Removing artifacts of evicted jobs

Only completed jobs expose an artifact. The file's existence is checked
on every lookup because the store is external, mutable state.
"""

from __future__ import annotations

import logging
from pathlib import Path

from webgame_builder.builds.models import Job
from webgame_builder.builds.registry import JobRegistry
from webgame_builder.types import ArtifactLocation, JobStatus, Platform

logger = logging.getLogger(__name__)


class ArtifactNotFoundError(Exception):
    """Raised when a job has no downloadable artifact."""

    def __init__(
        self,
        job_id: str,
        message: str | None = None,
        code: str = "artifact_not_found",
    ) -> None:
        super().__init__(message or f"Build not found or not completed: {job_id}")
        self.job_id = job_id
        self.code = code


class ArtifactMissingError(ArtifactNotFoundError):
    """Raised when a completed job's artifact file has disappeared."""

    def __init__(self, job_id: str, path: Path) -> None:
        super().__init__(
            job_id,
            f"Build file not found for {job_id}",
            code="artifact_missing",
        )
        self.path = path


def artifact_path_for(artifacts_dir: Path, job_id: str, platform: Platform) -> Path:
    """Return the artifact store path of a job."""
    return artifacts_dir / f"{job_id}{platform.artifact_suffix}"


def download_name_for(job: Job) -> str:
    """Return the file name suggested to downloaders."""
    return f"{job.display_name}{job.platform.artifact_suffix}"


class ArtifactServer:
    """Resolves completed jobs to files in the artifact store."""

    def __init__(self, registry: JobRegistry, artifacts_dir: Path) -> None:
        self.registry = registry
        self.artifacts_dir = artifacts_dir

    def path_for(self, job: Job) -> Path:
        """Artifact store path for a job, whether or not it exists yet."""
        return artifact_path_for(self.artifacts_dir, job.id, job.platform)

    def locate(self, job_id: str) -> ArtifactLocation:
        """Find the downloadable artifact of a job.

        Args:
            job_id: Job identifier.

        Returns:
            ArtifactLocation for the finished file.

        Raises:
            JobNotFoundError: If the job does not exist.
            ArtifactNotFoundError: If the job is not completed.
            ArtifactMissingError: If the file is gone despite completion.
        """
        job = self.registry.get(job_id)
        if job.status is not JobStatus.COMPLETED or job.artifact_path is None:
            raise ArtifactNotFoundError(job_id)

        path = job.artifact_path
        if not path.is_file():
            logger.warning("Artifact of completed job %s is missing: %s", job_id, path)
            raise ArtifactMissingError(job_id, path)

        return ArtifactLocation(
            path=path,
            download_name=download_name_for(job),
            media_type=job.platform.media_type,
            size_bytes=path.stat().st_size,
        )

    def discard(self, job: Job) -> bool:
        """Delete a job's artifact, if any.

        Returns:
            True if a file was removed.
        """
        path = job.artifact_path or self.path_for(job)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning("Could not remove artifact %s: %s", path, e)
            return False
        logger.debug("Removed artifact %s", path)
        return True


__all__ = [
    "ArtifactMissingError",
    "ArtifactNotFoundError",
    "ArtifactServer",
    "artifact_path_for",
    "download_name_for",
]
