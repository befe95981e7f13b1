"""MCP server implementation.

This module creates the FastMCP server and registers all tools.
Tools are thin wrappers around the core webgame_builder build service.

- Tools never raise; failures return success=False with a coded error
- Status and record reads are idempotent
- Builds run in the background; poll get_build_status for progress
"""

import logging
from pathlib import Path
from typing import Annotated

from mcp.server.fastmcp import FastMCP
from pydantic import Field

from mcp_server.errors import (
    BUILD_QUEUE_FULL,
    INTERNAL_ERROR,
    artifact_not_found,
    job_not_found,
    make_error,
    validation_error,
)
from mcp_server.schemas import (
    BuildStatus,
    BuildSummary,
    GetBuildResponse,
    GetBuildStatusResponse,
    ListBuildsResponse,
    LocateArtifactResponse,
    SubmitBuildResponse,
)
from webgame_builder.builds.artifacts import ArtifactNotFoundError
from webgame_builder.builds.dispatcher import BuildQueueFullError
from webgame_builder.builds.models import Job
from webgame_builder.builds.registry import JobNotFoundError
from webgame_builder.builds.service import (
    BuildService,
    BuildServiceError,
    parse_status,
)
from webgame_builder.builds.staging import InvalidInputError

logger = logging.getLogger(__name__)

# Create the FastMCP server instance
mcp = FastMCP(
    name="webgame-builder",
)

_service: BuildService | None = None


def _get_service() -> BuildService:
    """Get the build service, creating it on first use.

    Returns:
        Process-wide BuildService.
    """
    global _service
    if _service is None:
        _service = BuildService()
    return _service


def _job_to_summary(job: Job) -> BuildSummary:
    return BuildSummary(
        id=job.id,
        display_name=job.display_name,
        platform=job.platform.value,
        status=job.status.value,
        progress=job.progress,
        step=job.step,
        error=job.error_detail,
        error_code=job.error_code,
        size_bytes=job.size_bytes,
        created_at=job.created_at.isoformat() if job.created_at else None,
        started_at=job.started_at.isoformat() if job.started_at else None,
        finished_at=job.finished_at.isoformat() if job.finished_at else None,
        artifact_path=str(job.artifact_path) if job.artifact_path else None,
        sha256=job.sha256,
    )


@mcp.tool()
def submit_build(
    archive_path: Annotated[
        str, Field(description="Path to a zipped web game on the server")
    ],
    platform: Annotated[
        str, Field(description="Target platform: mobile or desktop")
    ] = "mobile",
) -> SubmitBuildResponse:
    """Queue a build of a zipped web game.

    The archive is copied into the upload store, so the original file may
    be removed once this returns.

    Args:
        archive_path: Archive to build.
        platform: mobile (Android APK) or desktop (re-packed zip).

    Returns:
        SubmitBuildResponse with the job ID or error.
    """
    path = Path(archive_path)
    if not path.is_file():
        return SubmitBuildResponse(
            success=False,
            error=validation_error(
                f"Archive not found: {archive_path}",
                details={"archive_path": archive_path},
            ).to_dict(),
        )

    try:
        service = _get_service()
        with path.open("rb") as stream:
            job = service.submit(path.name, stream, platform)
        return SubmitBuildResponse(success=True, job_id=job.id)
    except InvalidInputError as e:
        return SubmitBuildResponse(
            success=False, error=validation_error(str(e), code=e.code).to_dict()
        )
    except BuildQueueFullError as e:
        error = make_error(BUILD_QUEUE_FULL, str(e), details={"capacity": e.capacity})
        return SubmitBuildResponse(success=False, error=error.to_dict())
    except BuildServiceError as e:
        return SubmitBuildResponse(
            success=False, error=make_error(e.code, str(e)).to_dict()
        )
    except Exception as e:
        logger.exception("submit_build failed for %s", archive_path)
        error = make_error(INTERNAL_ERROR, str(e))
        return SubmitBuildResponse(success=False, error=error.to_dict())


@mcp.tool()
def get_build_status(
    job_id: Annotated[str, Field(description="Job ID returned by submit_build")],
) -> GetBuildStatusResponse:
    """Get the status and progress of a build.

    Args:
        job_id: Job to inspect.

    Returns:
        GetBuildStatusResponse with status, progress, step and error.
    """
    try:
        job = _get_service().get_job(job_id)
    except JobNotFoundError:
        return GetBuildStatusResponse(
            success=False, error=job_not_found(job_id).to_dict()
        )
    except Exception as e:
        error = make_error(INTERNAL_ERROR, str(e))
        return GetBuildStatusResponse(success=False, error=error.to_dict())

    return GetBuildStatusResponse(
        success=True,
        build=BuildStatus(
            status=job.status.value,
            progress=job.progress,
            step=job.step,
            error=job.error_detail,
            platform=job.platform.value,
        ),
    )


@mcp.tool()
def get_build(
    job_id: Annotated[str, Field(description="Job ID returned by submit_build")],
) -> GetBuildResponse:
    """Get the full record of a build.

    Args:
        job_id: Job to inspect.

    Returns:
        GetBuildResponse with the build record or error.
    """
    try:
        job = _get_service().get_job(job_id)
        return GetBuildResponse(success=True, build=_job_to_summary(job))
    except JobNotFoundError:
        return GetBuildResponse(success=False, error=job_not_found(job_id).to_dict())
    except Exception as e:
        error = make_error(INTERNAL_ERROR, str(e))
        return GetBuildResponse(success=False, error=error.to_dict())


@mcp.tool()
def list_builds(
    status: Annotated[
        str | None,
        Field(description="Filter by status: queued, processing, completed, failed"),
    ] = None,
) -> ListBuildsResponse:
    """List builds, newest first.

    Args:
        status: Optional status filter.

    Returns:
        ListBuildsResponse with matching builds or error.
    """
    try:
        status_filter = parse_status(status)
    except InvalidInputError as e:
        return ListBuildsResponse(
            success=False,
            builds=[],
            total=0,
            error=validation_error(str(e), code=e.code).to_dict(),
        )

    try:
        jobs = _get_service().list_jobs(status=status_filter)
    except Exception as e:
        error = make_error(INTERNAL_ERROR, str(e))
        return ListBuildsResponse(
            success=False, builds=[], total=0, error=error.to_dict()
        )

    summaries = [_job_to_summary(job) for job in jobs]
    return ListBuildsResponse(success=True, builds=summaries, total=len(summaries))


@mcp.tool()
def locate_artifact(
    job_id: Annotated[str, Field(description="Job ID of a completed build")],
) -> LocateArtifactResponse:
    """Find the artifact file of a completed build.

    Args:
        job_id: Completed job.

    Returns:
        LocateArtifactResponse with the file path and download name, or
        error if the build is unknown, unfinished or its file is gone.
    """
    try:
        location = _get_service().locate_artifact(job_id)
    except JobNotFoundError:
        return LocateArtifactResponse(
            success=False, error=job_not_found(job_id).to_dict()
        )
    except ArtifactNotFoundError as e:
        return LocateArtifactResponse(
            success=False,
            error=artifact_not_found(job_id, str(e), code=e.code).to_dict(),
        )
    except Exception as e:
        error = make_error(INTERNAL_ERROR, str(e))
        return LocateArtifactResponse(success=False, error=error.to_dict())

    return LocateArtifactResponse(
        success=True,
        path=str(location.path),
        download_name=location.download_name,
        media_type=location.media_type,
        size_bytes=location.size_bytes,
    )


__all__ = [
    "get_build",
    "get_build_status",
    "list_builds",
    "locate_artifact",
    "mcp",
    "submit_build",
]
