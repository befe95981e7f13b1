"""Shared type definitions for webgame_builder.

This module contains enums and small value types shared across
subpackages to avoid circular imports.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path


class JobStatus(str, Enum):
    """Status of a build job."""

    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """Whether no further transitions can happen from this status."""
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class Platform(str, Enum):
    """Target platform of a build."""

    MOBILE = "mobile"
    DESKTOP = "desktop"

    @property
    def artifact_suffix(self) -> str:
        """File extension of the artifact produced for this platform."""
        return ".apk" if self is Platform.MOBILE else ".zip"

    @property
    def media_type(self) -> str:
        """MIME type used when serving the artifact."""
        if self is Platform.MOBILE:
            return "application/vnd.android.package-archive"
        return "application/zip"


# Values accepted from older clients
PLATFORM_ALIASES = {
    "android": Platform.MOBILE,
    "pc": Platform.DESKTOP,
}


@dataclass
class ArtifactLocation:
    """Where a finished artifact lives and how to offer it for download."""

    path: Path
    download_name: str
    media_type: str
    size_bytes: int


__all__ = [
    "PLATFORM_ALIASES",
    "ArtifactLocation",
    "JobStatus",
    "Platform",
]
