"""Pydantic schemas for MCP tool responses.

These schemas define the structured output formats for MCP tools,
ensuring consistent JSON responses across all tools.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict


class BuildStatus(BaseModel):
    """Polling view of a build."""

    model_config = ConfigDict(extra="forbid")

    status: str
    progress: int
    step: str | None = None
    error: str | None = None
    platform: str


class BuildSummary(BaseModel):
    """Full record of a build."""

    model_config = ConfigDict(extra="forbid")

    id: str
    display_name: str
    platform: str
    status: str
    progress: int
    step: str | None = None
    error: str | None = None
    error_code: str | None = None
    size_bytes: int
    created_at: str | None
    started_at: str | None = None
    finished_at: str | None = None
    artifact_path: str | None = None
    sha256: str | None = None


class SubmitBuildResponse(BaseModel):
    """Response for submit_build tool."""

    model_config = ConfigDict(extra="forbid")

    success: bool
    job_id: str | None = None
    error: dict[str, Any] | None = None


class GetBuildStatusResponse(BaseModel):
    """Response for get_build_status tool."""

    model_config = ConfigDict(extra="forbid")

    success: bool
    build: BuildStatus | None = None
    error: dict[str, Any] | None = None


class GetBuildResponse(BaseModel):
    """Response for get_build tool."""

    model_config = ConfigDict(extra="forbid")

    success: bool
    build: BuildSummary | None = None
    error: dict[str, Any] | None = None


class ListBuildsResponse(BaseModel):
    """Response for list_builds tool."""

    model_config = ConfigDict(extra="forbid")

    success: bool
    builds: list[BuildSummary]
    total: int
    error: dict[str, Any] | None = None


class LocateArtifactResponse(BaseModel):
    """Response for locate_artifact tool."""

    model_config = ConfigDict(extra="forbid")

    success: bool
    path: str | None = None
    download_name: str | None = None
    media_type: str | None = None
    size_bytes: int | None = None
    error: dict[str, Any] | None = None


__all__ = [
    "BuildStatus",
    "BuildSummary",
    "GetBuildResponse",
    "GetBuildStatusResponse",
    "ListBuildsResponse",
    "LocateArtifactResponse",
    "SubmitBuildResponse",
]
