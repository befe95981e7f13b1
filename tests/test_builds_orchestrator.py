"""Tests for builds/orchestrator.py module.

Builds run synchronously here; the Android toolchain is the FakeToolchain
from conftest.
"""

import threading
import zipfile
from collections.abc import Callable
from pathlib import Path
from typing import TypeVar

import pytest

from webgame_builder.builds.models import Job
from webgame_builder.builds.orchestrator import LOG_FILE_NAME, BuildOrchestrator
from webgame_builder.builds.registry import JobRegistry
from webgame_builder.config import Settings
from webgame_builder.types import JobStatus, Platform

T = TypeVar("T")


class RecordingRegistry(JobRegistry):
    """Registry that keeps a snapshot after every update."""

    def __init__(self) -> None:
        super().__init__()
        self.history: list[tuple[JobStatus, int, str | None]] = []

    def update(self, job_id: str, mutator: Callable[[Job], T]) -> T:
        result = super().update(job_id, mutator)
        job = self.get(job_id)
        self.history.append((job.status, job.progress, job.step))
        return result


@pytest.fixture
def registry() -> RecordingRegistry:
    """Registry recording every state change."""
    return RecordingRegistry()


@pytest.fixture
def orchestrator(registry: RecordingRegistry, settings: Settings) -> BuildOrchestrator:
    """Orchestrator over tmp_path directories."""
    settings.ensure_directories()
    return BuildOrchestrator(registry, settings)


def _submit(
    registry: JobRegistry, settings: Settings, archive: Path, platform: Platform
) -> tuple[Job, Path]:
    job = registry.create(platform, archive.stem, archive.stat().st_size)
    upload = settings.uploads_dir / f"{job.id}.zip"
    upload.write_bytes(archive.read_bytes())
    return job, upload


class TestDesktopBuild:
    """Desktop builds need no external tools."""

    def test_success(
        self,
        registry: RecordingRegistry,
        orchestrator: BuildOrchestrator,
        settings: Settings,
        game_zip_path: Path,
        game_files: dict[str, bytes | str],
    ) -> None:
        """The staged game is re-packed into the artifact store."""
        job, upload = _submit(registry, settings, game_zip_path, Platform.DESKTOP)
        result = orchestrator.run(job.id, upload)

        assert result.status is JobStatus.COMPLETED
        assert result.progress == 100
        assert result.error_detail is None
        assert result.artifact_path == settings.artifacts_dir / f"{job.id}.zip"
        assert result.sha256 is not None
        with zipfile.ZipFile(result.artifact_path) as archive:
            assert set(archive.namelist()) >= set(game_files)

    def test_success_cleans_up(
        self,
        registry: RecordingRegistry,
        orchestrator: BuildOrchestrator,
        settings: Settings,
        game_zip_path: Path,
    ) -> None:
        """Workspace and upload are removed after a successful build."""
        job, upload = _submit(registry, settings, game_zip_path, Platform.DESKTOP)
        orchestrator.run(job.id, upload)
        assert not upload.exists()
        assert not orchestrator.work_dir_for(job.id).exists()

    def test_progress_milestones(
        self,
        registry: RecordingRegistry,
        orchestrator: BuildOrchestrator,
        settings: Settings,
        game_zip_path: Path,
    ) -> None:
        """Progress goes 20, 50, 80, 100 and never backwards."""
        job, upload = _submit(registry, settings, game_zip_path, Platform.DESKTOP)
        orchestrator.run(job.id, upload)

        progress = [p for _, p, _ in registry.history]
        assert progress == [20, 50, 80, 100]
        assert registry.history[0] == (
            JobStatus.PROCESSING,
            20,
            "Processing files...",
        )
        assert registry.history[-1] == (JobStatus.COMPLETED, 100, None)


class TestMobileBuild:
    """Mobile builds drive the (fake) Capacitor toolchain."""

    def test_success(
        self,
        registry: RecordingRegistry,
        orchestrator: BuildOrchestrator,
        settings: Settings,
        game_zip_path: Path,
        toolchain,
        fake_apk_bytes: bytes,
    ) -> None:
        """The debug APK is published under the job id."""
        job, upload = _submit(registry, settings, game_zip_path, Platform.MOBILE)
        result = orchestrator.run(job.id, upload)

        assert result.status is JobStatus.COMPLETED, result.error_detail
        assert result.artifact_path == settings.artifacts_dir / f"{job.id}.apk"
        assert result.artifact_path.read_bytes() == fake_apk_bytes

        programs = [argv[:2] for argv, _ in toolchain.calls]
        assert programs == [
            ["npm", "init"],
            ["npm", "install"],
            ["npx", "cap"],
            ["npx", "cap"],
            ["npx", "cap"],
            ["./gradlew", "assembleDebug"],
        ]
        gradle_cwd = toolchain.calls[-1][1]
        assert gradle_cwd.name == "android"

        progress = [p for _, p, _ in registry.history]
        assert progress == sorted(progress)
        assert progress[0] == 10
        assert progress[-1] == 100

    def test_gradle_failure(
        self,
        registry: RecordingRegistry,
        orchestrator: BuildOrchestrator,
        settings: Settings,
        game_zip_path: Path,
        toolchain,
    ) -> None:
        """A failing gradle step fails the job and names the step."""
        toolchain.fail_step = "assembleDebug"
        job, upload = _submit(registry, settings, game_zip_path, Platform.MOBILE)
        result = orchestrator.run(job.id, upload)

        assert result.status is JobStatus.FAILED
        assert result.artifact_path is None
        assert result.error_code == "build_step_error"
        assert result.error_detail is not None
        assert "gradle-assemble-debug" in result.error_detail
        assert "FAILURE: Build failed" in result.error_detail
        assert not (settings.artifacts_dir / f"{job.id}.apk").exists()

    def test_failure_keeps_workspace(
        self,
        registry: RecordingRegistry,
        orchestrator: BuildOrchestrator,
        settings: Settings,
        game_zip_path: Path,
        toolchain,
    ) -> None:
        """Failed workspaces stay for inspection, with the build log."""
        toolchain.fail_step = "assembleDebug"
        job, upload = _submit(registry, settings, game_zip_path, Platform.MOBILE)
        orchestrator.run(job.id, upload)

        log = orchestrator.log_path_for(job.id)
        assert log.name == LOG_FILE_NAME
        assert "# Step: gradle-assemble-debug" in log.read_text()
        assert (orchestrator.work_dir_for(job.id) / "app" / "index.html").exists()
        assert upload.exists()

    def test_failure_cleanup_when_configured(
        self,
        registry: RecordingRegistry,
        settings: Settings,
        game_zip_path: Path,
        toolchain,
    ) -> None:
        """keep_failed_workspaces=False removes failed workspaces too."""
        settings = settings.model_copy(update={"keep_failed_workspaces": False})
        settings.ensure_directories()
        orchestrator = BuildOrchestrator(registry, settings)
        toolchain.fail_step = "assembleDebug"
        job, upload = _submit(registry, settings, game_zip_path, Platform.MOBILE)
        orchestrator.run(job.id, upload)

        assert not orchestrator.work_dir_for(job.id).exists()
        assert not upload.exists()

    def test_missing_apk(
        self,
        registry: RecordingRegistry,
        orchestrator: BuildOrchestrator,
        settings: Settings,
        game_zip_path: Path,
        toolchain,
    ) -> None:
        """A gradle run that produces no APK is a build failure."""
        toolchain.produce_apk = False
        job, upload = _submit(registry, settings, game_zip_path, Platform.MOBILE)
        result = orchestrator.run(job.id, upload)

        assert result.status is JobStatus.FAILED
        assert result.error_code == "missing_output"
        assert result.error_detail is not None
        assert "copy-apk" in result.error_detail
        assert result.artifact_path is None

    def test_capacitor_config_written(
        self,
        registry: RecordingRegistry,
        orchestrator: BuildOrchestrator,
        settings: Settings,
        game_zip_path: Path,
        toolchain,
    ) -> None:
        """The wrapper project holds the config and mirrored assets."""
        toolchain.fail_step = "assembleDebug"
        job, upload = _submit(registry, settings, game_zip_path, Platform.MOBILE)
        orchestrator.run(job.id, upload)

        project = orchestrator.work_dir_for(job.id) / "app"
        assert (project / "capacitor.config.json").is_file()
        assert (project / "www" / "index.html").is_file()
        assert (project / "www" / "assets" / "sprite.png").is_file()


class TestStagingFailures:
    """Archive problems fail the job before any tool runs."""

    def test_corrupt_archive(
        self,
        registry: RecordingRegistry,
        orchestrator: BuildOrchestrator,
        settings: Settings,
        tmp_path: Path,
        toolchain,
    ) -> None:
        """A corrupt upload fails with an extraction error."""
        bad = tmp_path / "bad.zip"
        bad.write_bytes(b"definitely not a zip")
        job, upload = _submit(registry, settings, bad, Platform.MOBILE)
        result = orchestrator.run(job.id, upload)

        assert result.status is JobStatus.FAILED
        assert result.error_code == "corrupt_archive"
        assert toolchain.calls == []

    def test_path_traversal(
        self,
        registry: RecordingRegistry,
        orchestrator: BuildOrchestrator,
        settings: Settings,
        zip_factory: Callable[..., Path],
        tmp_path: Path,
    ) -> None:
        """Hostile archives fail without writing outside the workspace."""
        hostile = zip_factory(
            "hostile.zip", {"index.html": "x", "../../../outside.txt": "x"}
        )
        job, upload = _submit(registry, settings, hostile, Platform.DESKTOP)
        result = orchestrator.run(job.id, upload)

        assert result.status is JobStatus.FAILED
        assert result.error_code == "path_traversal"
        assert not (tmp_path / "outside.txt").exists()


class TestCancellation:
    """Cancellation between steps and of queued jobs."""

    def test_cancel_event_stops_build(
        self,
        registry: RecordingRegistry,
        orchestrator: BuildOrchestrator,
        settings: Settings,
        game_zip_path: Path,
    ) -> None:
        """A set cancel event fails the job as cancelled."""
        cancel = threading.Event()
        cancel.set()
        job, upload = _submit(registry, settings, game_zip_path, Platform.DESKTOP)
        result = orchestrator.run(job.id, upload, cancel_event=cancel)

        assert result.status is JobStatus.FAILED
        assert result.error_code == "cancelled"
        assert result.artifact_path is None

    def test_abandon_queued(
        self, registry: RecordingRegistry, orchestrator: BuildOrchestrator
    ) -> None:
        """Abandoning a queued job fails it."""
        job = registry.create(Platform.MOBILE, "g", 1)
        orchestrator.abandon(job.id, "Build cancelled before it started")
        result = registry.get(job.id)
        assert result.status is JobStatus.FAILED
        assert result.error_code == "cancelled"

    def test_abandon_terminal_is_noop(
        self,
        registry: RecordingRegistry,
        orchestrator: BuildOrchestrator,
        settings: Settings,
        game_zip_path: Path,
    ) -> None:
        """A finished job is never changed by abandon."""
        job, upload = _submit(registry, settings, game_zip_path, Platform.DESKTOP)
        done = orchestrator.run(job.id, upload)
        orchestrator.abandon(job.id, "late")
        after = registry.get(job.id)
        assert after.status is JobStatus.COMPLETED
        assert after.finished_at == done.finished_at
