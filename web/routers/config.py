"""Configuration endpoints."""

from typing import Any

from fastapi import APIRouter, Depends

from web.deps import get_app_settings
from webgame_builder.config import Settings

router = APIRouter()


@router.get("")
def get_config(settings: Settings = Depends(get_app_settings)) -> dict[str, Any]:
    """Get effective configuration.

    Returns:
        Current configuration as JSON.
    """
    return {
        "uploads_dir": str(settings.uploads_dir),
        "workspace_dir": str(settings.workspace_dir),
        "artifacts_dir": str(settings.artifacts_dir),
        "max_upload_bytes": settings.max_upload_bytes,
        "archive_extension": settings.archive_extension,
        "max_concurrent_builds": settings.max_concurrent_builds,
        "max_pending_builds": settings.max_pending_builds,
        "step_timeout": settings.step_timeout,
        "keep_failed_workspaces": settings.keep_failed_workspaces,
        "job_retention_seconds": settings.job_retention_seconds,
        "app_id": settings.app_id,
        "app_name": settings.app_name,
        "android_min_sdk": settings.android_min_sdk,
        "android_target_sdk": settings.android_target_sdk,
        "log_level": settings.log_level,
    }
