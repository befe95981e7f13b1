"""Platform profiles.

A platform profile is the fixed, ordered sequence of steps that turns a
staged game into an artifact for one target platform. Each step carries
the progress milestone and label reported while it runs.

Mobile (Android via Capacitor):
    write config -> mirror assets -> npm init -> npm install -> cap init
    -> cap add android -> cap sync -> gradle assembleDebug -> copy APK

Desktop:
    re-pack staged files -> publish zip
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import partial
from pathlib import Path

from webgame_builder.builds.packaging import (
    WEB_DIR_NAME,
    capacitor_config,
    mirror_web_assets,
    publish_artifact,
    repack_directory,
    write_capacitor_config,
)
from webgame_builder.builds.runner import CommandStep, FileStep, Step
from webgame_builder.config import Settings
from webgame_builder.types import Platform

CAPACITOR_PACKAGES = ("@capacitor/core", "@capacitor/cli", "@capacitor/android")

# Location of the debug APK inside the generated Capacitor project
DEBUG_APK_PATH = Path("android/app/build/outputs/apk/debug/app-debug.apk")

# Milestones reported before the profile steps start
STAGING_MILESTONES = {
    Platform.MOBILE: (10, "Extracting files..."),
    Platform.DESKTOP: (20, "Processing files..."),
}


@dataclass(frozen=True)
class PlannedStep:
    """A profile step with its progress milestone."""

    step: Step
    progress: int
    label: str

    @property
    def name(self) -> str:
        """Step identifier."""
        return self.step.name


@dataclass(frozen=True)
class BuildContext:
    """Paths and settings a profile needs to plan a job.

    Attributes:
        job_id: Job identifier.
        work_dir: Job workspace (holds the log and intermediate files).
        project_dir: Staged game root.
        artifact_path: Final location in the artifact store.
        settings: Application settings.
    """

    job_id: str
    work_dir: Path
    project_dir: Path
    artifact_path: Path
    settings: Settings


def mobile_plan(ctx: BuildContext) -> list[PlannedStep]:
    """Plan the Android packaging steps."""
    s = ctx.settings
    project = ctx.project_dir
    config = capacitor_config(
        app_id=s.app_id,
        app_name=s.app_name,
        min_sdk=s.android_min_sdk,
        target_sdk=s.android_target_sdk,
    )

    def npm(name: str, *args: str) -> CommandStep:
        return CommandStep(name, s.npm_command, args, project)

    def cap(name: str, *args: str) -> CommandStep:
        return CommandStep(name, s.npx_command, ("cap", *args), project)

    return [
        PlannedStep(
            FileStep(
                "write-config",
                partial(write_capacitor_config, project, config),
                "write capacitor.config.json",
            ),
            30,
            "Configuring Capacitor...",
        ),
        PlannedStep(
            FileStep(
                "mirror-assets",
                partial(mirror_web_assets, project, WEB_DIR_NAME),
                f"copy game files into {WEB_DIR_NAME}/",
            ),
            40,
            "Copying web assets...",
        ),
        PlannedStep(npm("npm-init", "init", "-y"), 45, "Initializing project..."),
        PlannedStep(
            npm("npm-install", "install", *CAPACITOR_PACKAGES),
            50,
            "Building Android project...",
        ),
        PlannedStep(
            cap("cap-init", "init", s.app_name, s.app_id, "--web-dir", WEB_DIR_NAME),
            55,
            "Building Android project...",
        ),
        PlannedStep(
            cap("cap-add-android", "add", "android"),
            60,
            "Adding Android platform...",
        ),
        PlannedStep(
            cap("cap-sync", "sync", "android"),
            70,
            "Syncing web assets...",
        ),
        PlannedStep(
            CommandStep(
                "gradle-assemble-debug",
                s.gradle_command,
                ("assembleDebug",),
                project / "android",
            ),
            75,
            "Building APK...",
        ),
        PlannedStep(
            FileStep(
                "copy-apk",
                partial(publish_artifact, project / DEBUG_APK_PATH, ctx.artifact_path),
                f"copy {DEBUG_APK_PATH} to the artifact store",
            ),
            95,
            "Collecting APK...",
        ),
    ]


def desktop_plan(ctx: BuildContext) -> list[PlannedStep]:
    """Plan the desktop re-packaging steps."""
    packed = ctx.work_dir / f"{ctx.job_id}.zip"
    return [
        PlannedStep(
            FileStep(
                "repack",
                partial(repack_directory, ctx.project_dir, packed),
                "pack staged files into a single zip",
            ),
            50,
            "Optimizing for desktop...",
        ),
        PlannedStep(
            FileStep(
                "publish",
                partial(publish_artifact, packed, ctx.artifact_path, move=True),
                "move the package into the artifact store",
            ),
            80,
            "Creating PC package...",
        ),
    ]


PROFILES = {
    Platform.MOBILE: mobile_plan,
    Platform.DESKTOP: desktop_plan,
}


def plan_for(platform: Platform, ctx: BuildContext) -> list[PlannedStep]:
    """Return the ordered steps of the platform's profile."""
    return PROFILES[platform](ctx)


__all__ = [
    "DEBUG_APK_PATH",
    "STAGING_MILESTONES",
    "BuildContext",
    "PlannedStep",
    "desktop_plan",
    "mobile_plan",
    "plan_for",
]
