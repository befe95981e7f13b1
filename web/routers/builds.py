"""Build management endpoints.

- POST /builds - Upload a zipped game and start a build
- GET /builds - List builds
- GET /builds/{id} - Get the full build record
- GET /builds/{id}/status - Poll build progress
- GET /builds/{id}/download - Download the finished artifact
"""

from typing import Any

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from fastapi import status as http_status
from fastapi.responses import FileResponse

from web.deps import get_build_service
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
from webgame_builder.types import JobStatus

router = APIRouter()


def _isoformat(value: Any) -> str | None:
    return value.isoformat() if value else None


def _job_to_dict(job: Job) -> dict[str, Any]:
    """Convert a job snapshot to the full record."""
    return {
        "id": job.id,
        "displayName": job.display_name,
        "platform": job.platform.value,
        "status": job.status.value,
        "progress": job.progress,
        "step": job.step,
        "error": job.error_detail,
        "errorCode": job.error_code,
        "sizeBytes": job.size_bytes,
        "createdAt": _isoformat(job.created_at),
        "startedAt": _isoformat(job.started_at),
        "finishedAt": _isoformat(job.finished_at),
        "sha256": job.sha256,
        "downloadUrl": f"/builds/{job.id}/download"
        if job.status is JobStatus.COMPLETED
        else None,
    }


def _job_to_status(job: Job) -> dict[str, Any]:
    """Convert a job snapshot to the polling view."""
    return {
        "status": job.status.value,
        "progress": job.progress,
        "step": job.step,
        "error": job.error_detail,
        "platform": job.platform.value,
    }


def _not_found(e: JobNotFoundError | ArtifactNotFoundError) -> HTTPException:
    return HTTPException(
        status_code=http_status.HTTP_404_NOT_FOUND,
        detail={"code": e.code, "message": str(e)},
    )


@router.post("", status_code=http_status.HTTP_201_CREATED)
def create_build_endpoint(
    file: UploadFile | None = File(None, description="Zipped web game"),
    platform: str | None = Form(None, description="mobile or desktop"),
    service: BuildService = Depends(get_build_service),
) -> dict[str, str]:
    """Upload an archive and queue its build.

    Args:
        file: Uploaded archive.
        platform: Target platform; defaults to mobile.
        service: Build service.

    Returns:
        Identifier of the queued job.

    Raises:
        HTTPException: 400 on rejected input, 503 when no slot is free.
    """
    try:
        if file is None:
            raise InvalidInputError("No files were uploaded.", code="no_file")
        job = service.submit(file.filename, file.file, platform)
    except InvalidInputError as e:
        raise HTTPException(
            status_code=http_status.HTTP_400_BAD_REQUEST,
            detail={"code": e.code, "message": str(e)},
        ) from None
    except (BuildQueueFullError, BuildServiceError) as e:
        raise HTTPException(
            status_code=http_status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"code": e.code, "message": str(e)},
        ) from None
    return {"jobId": job.id}


@router.get("")
def list_builds_endpoint(
    status: str | None = Query(None, description="Filter by status"),
    service: BuildService = Depends(get_build_service),
) -> list[dict[str, Any]]:
    """List build records, newest first.

    Args:
        status: Filter by status.
        service: Build service.

    Returns:
        List of build records.
    """
    try:
        status_filter = parse_status(status)
    except InvalidInputError as e:
        raise HTTPException(
            status_code=http_status.HTTP_400_BAD_REQUEST,
            detail={"code": e.code, "message": str(e)},
        ) from None
    return [_job_to_dict(job) for job in service.list_jobs(status=status_filter)]


@router.get("/{job_id}/status")
def get_build_status_endpoint(
    job_id: str,
    service: BuildService = Depends(get_build_service),
) -> dict[str, Any]:
    """Get the progress of a build.

    Raises:
        HTTPException: If build not found.
    """
    try:
        return _job_to_status(service.get_job(job_id))
    except JobNotFoundError as e:
        raise _not_found(e) from None


@router.get("/{job_id}")
def get_build_endpoint(
    job_id: str,
    service: BuildService = Depends(get_build_service),
) -> dict[str, Any]:
    """Get a build record by ID.

    Args:
        job_id: Job ID.
        service: Build service.

    Returns:
        Build record data.

    Raises:
        HTTPException: If build not found.
    """
    try:
        return _job_to_dict(service.get_job(job_id))
    except JobNotFoundError as e:
        raise _not_found(e) from None


@router.get("/{job_id}/download")
def download_build_endpoint(
    job_id: str,
    service: BuildService = Depends(get_build_service),
) -> FileResponse:
    """Stream the artifact of a completed build.

    Raises:
        HTTPException: If the build is unknown, not completed, or its file
            is gone.
    """
    try:
        location = service.locate_artifact(job_id)
    except (JobNotFoundError, ArtifactNotFoundError) as e:
        raise _not_found(e) from None
    return FileResponse(
        location.path,
        media_type=location.media_type,
        filename=location.download_name,
    )
