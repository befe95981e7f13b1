"""Build orchestration.

The orchestrator is the single driver of one job's lifecycle:

    queued --(dispatch)--> processing --(staged, all steps ok)--> completed
    queued --(dispatch)--> processing --(staging or step failure)--> failed

It stages the uploaded archive, runs the platform profile through the
runner, and records every milestone in the registry. Nothing raised
during a build escapes `run`; failures end up in the job record.

On success the workspace and the upload are removed (best effort). On
failure they are kept for inspection unless configured otherwise.
"""

from __future__ import annotations

import logging
import shutil
import threading
from pathlib import Path

from webgame_builder.builds.artifacts import artifact_path_for
from webgame_builder.builds.models import Job
from webgame_builder.builds.packaging import compute_file_hash, require_output
from webgame_builder.builds.profiles import (
    STAGING_MILESTONES,
    BuildContext,
    PlannedStep,
    plan_for,
)
from webgame_builder.builds.registry import JobNotFoundError, JobRegistry
from webgame_builder.builds.runner import (
    BuildCancelledError,
    BuildStepError,
    MissingOutputError,
    run_steps,
)
from webgame_builder.builds.staging import ExtractionError, extract_archive
from webgame_builder.config import Settings
from webgame_builder.types import JobStatus

logger = logging.getLogger(__name__)

LOG_FILE_NAME = "build.log"
PROJECT_DIR_NAME = "app"


class BuildOrchestrator:
    """Drives jobs from queued to a terminal state."""

    def __init__(self, registry: JobRegistry, settings: Settings) -> None:
        self.registry = registry
        self.settings = settings

    def work_dir_for(self, job_id: str) -> Path:
        """Workspace directory of a job."""
        return self.settings.workspace_dir / job_id

    def log_path_for(self, job_id: str) -> Path:
        """Build log of a job."""
        return self.work_dir_for(job_id) / LOG_FILE_NAME

    def run(
        self,
        job_id: str,
        upload_path: Path,
        cancel_event: threading.Event | None = None,
    ) -> Job:
        """Build one job to completion or failure.

        Args:
            job_id: Queued job to build.
            upload_path: Uploaded archive of the job.
            cancel_event: Checked before every step.

        Returns:
            Snapshot of the job in its terminal state.
        """
        job = self.registry.get(job_id)
        progress, label = STAGING_MILESTONES[job.platform]
        self.registry.update(job_id, lambda j: j.mark_processing(progress, label))
        logger.info("Job %s started (%s)", job_id, job.platform.value)

        work_dir = self.work_dir_for(job_id)
        try:
            artifact_path, sha256 = self._build(job, upload_path, cancel_event)
        except ExtractionError as e:
            return self._fail(job_id, upload_path, str(e), e.code)
        except BuildStepError as e:
            return self._fail(job_id, upload_path, e.detail, e.code)
        except BuildCancelledError as e:
            return self._fail(job_id, upload_path, str(e), e.code)
        except JobNotFoundError:
            logger.warning("Job %s vanished while building", job_id)
            raise
        except Exception as e:
            logger.exception("Unexpected error building job %s", job_id)
            return self._fail(
                job_id,
                upload_path,
                f"An unexpected error occurred during the build: {e}",
                "internal_error",
            )

        self.registry.update(job_id, lambda j: j.mark_completed(artifact_path, sha256))
        logger.info("Job %s completed: %s", job_id, artifact_path)
        self._cleanup(work_dir, upload_path)
        return self.registry.get(job_id)

    def abandon(self, job_id: str, message: str, code: str = "cancelled") -> None:
        """Fail a job that will never be run.

        Used when a queued job is dropped, for example on shutdown.
        """

        def _abandon(job: Job) -> None:
            if job.is_terminal:
                return
            if job.status is JobStatus.QUEUED:
                job.mark_processing(0, "Cancelled")
            job.mark_failed(message, code)

        self.registry.update(job_id, _abandon)
        logger.warning("Job %s abandoned: %s", job_id, message)

    def _build(
        self,
        job: Job,
        upload_path: Path,
        cancel_event: threading.Event | None,
    ) -> tuple[Path, str]:
        work_dir = self.work_dir_for(job.id)
        project_dir = extract_archive(upload_path, work_dir / PROJECT_DIR_NAME)

        ctx = BuildContext(
            job_id=job.id,
            work_dir=work_dir,
            project_dir=project_dir,
            artifact_path=artifact_path_for(
                self.settings.artifacts_dir, job.id, job.platform
            ),
            settings=self.settings,
        )
        plan = plan_for(job.platform, ctx)

        def on_step(index: int, _step: object) -> None:
            planned: PlannedStep = plan[index]
            self.registry.update(
                job.id, lambda j: j.advance(planned.progress, planned.label)
            )

        run_steps(
            [planned.step for planned in plan],
            log_path=self.log_path_for(job.id),
            timeout=self.settings.step_timeout,
            on_step=on_step,
            cancel_event=cancel_event,
        )

        last_step = plan[-1].name if plan else "publish"
        try:
            require_output(ctx.artifact_path)
        except MissingOutputError as e:
            raise BuildStepError(
                last_step,
                f"Step '{last_step}' failed: {e}",
                code="missing_output",
            ) from e
        return ctx.artifact_path, compute_file_hash(ctx.artifact_path)

    def _fail(self, job_id: str, upload_path: Path, message: str, code: str) -> Job:
        self.registry.update(job_id, lambda j: j.mark_failed(message, code))
        logger.error(
            "Job %s failed (%s): %s", job_id, code, message.partition("\n")[0]
        )
        if not self.settings.keep_failed_workspaces:
            self._cleanup(self.work_dir_for(job_id), upload_path)
        return self.registry.get(job_id)

    def _cleanup(self, work_dir: Path, upload_path: Path) -> None:
        """Remove a job's workspace and upload, logging any failure."""
        try:
            if work_dir.exists():
                shutil.rmtree(work_dir)
        except OSError as e:
            logger.warning("Could not remove workspace %s: %s", work_dir, e)
        try:
            upload_path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Could not remove upload %s: %s", upload_path, e)


__all__ = ["LOG_FILE_NAME", "PROJECT_DIR_NAME", "BuildOrchestrator"]
