"""Archive staging for builds.

This module handles:
- Validating uploaded archive names before anything touches the disk
- Saving uploads into the uploads root
- Unpacking an archive into a fresh, job-scoped staging directory

Entry names are checked before extraction: absolute paths, ``..``
components and anything resolving outside the staging root abort the
whole extraction.
"""

from __future__ import annotations

import logging
import shutil
import zipfile
import zlib
from pathlib import Path, PurePosixPath
from typing import BinaryIO

logger = logging.getLogger(__name__)

# Chunk size for streaming uploads to disk
COPY_CHUNK_SIZE = 1024 * 1024  # 1 MB


class InvalidInputError(Exception):
    """Raised when a submission is rejected before a job is created."""

    def __init__(self, message: str, code: str = "invalid_input") -> None:
        super().__init__(message)
        self.code = code


class ExtractionError(Exception):
    """Raised when archive extraction fails."""

    def __init__(self, message: str, code: str = "extraction_error") -> None:
        super().__init__(message)
        self.code = code


def validate_archive_name(filename: str | None, extension: str = ".zip") -> str:
    """Check an uploaded file name and derive the display name from it.

    Args:
        filename: Name declared by the uploader.
        extension: Accepted archive extension.

    Returns:
        Display name (base name without the extension).

    Raises:
        InvalidInputError: If the name is missing or has the wrong extension.
    """
    if not filename:
        raise InvalidInputError("No files were uploaded.", code="no_file")

    base_name = PurePosixPath(filename.replace("\\", "/")).name
    if not base_name.lower().endswith(extension.lower()):
        raise InvalidInputError(
            f"Only {extension.lstrip('.').upper()} files are allowed.",
            code="invalid_extension",
        )

    display_name = base_name[: -len(extension)]
    if not display_name:
        raise InvalidInputError(f"Archive name is empty: {filename}")
    return display_name


def save_upload(stream: BinaryIO, dest: Path) -> int:
    """Stream an upload to disk.

    Args:
        stream: Binary file object positioned at the start of the upload.
        dest: Destination path.

    Returns:
        Number of bytes written.

    Raises:
        InvalidInputError: If the upload is empty (the file is removed).
    """
    dest.parent.mkdir(parents=True, exist_ok=True)
    with dest.open("wb") as out:
        shutil.copyfileobj(stream, out, COPY_CHUNK_SIZE)
    size_bytes = dest.stat().st_size
    if size_bytes == 0:
        dest.unlink()
        raise InvalidInputError("Uploaded file is empty.", code="empty_upload")
    return size_bytes


def check_member_path(name: str, dest_dir: Path) -> Path:
    """Resolve an archive entry name inside the destination directory.

    Args:
        name: Entry name as stored in the archive.
        dest_dir: Staging root.

    Returns:
        Absolute target path of the entry.

    Raises:
        ExtractionError: If the entry would land outside ``dest_dir``.
    """
    member_path = PurePosixPath(name.replace("\\", "/"))
    if (
        member_path.is_absolute()
        or ".." in member_path.parts
        or (member_path.parts and ":" in member_path.parts[0])
    ):
        raise ExtractionError(
            f"Refusing to extract {name}: path traversal detected",
            code="path_traversal",
        )

    root = dest_dir.resolve()
    target = (root / Path(*member_path.parts)).resolve()
    if not target.is_relative_to(root):
        raise ExtractionError(
            f"Refusing to extract {name}: path traversal detected",
            code="path_traversal",
        )
    return target


def extract_archive(archive_path: Path, dest_dir: Path) -> Path:
    """Extract a game archive into a fresh staging directory.

    Args:
        archive_path: Path to the uploaded archive.
        dest_dir: Staging directory; must not exist yet.

    Returns:
        Path to the staged root.

    Raises:
        ExtractionError: If the archive is corrupt, empty, hostile, or
            cannot be written out.
    """
    logger.info("Extracting %s to %s", archive_path.name, dest_dir)

    try:
        dest_dir.mkdir(parents=True, exist_ok=False)
    except FileExistsError as e:
        raise ExtractionError(
            f"Staging directory already exists: {dest_dir}",
            code="staging_exists",
        ) from e
    except OSError as e:
        raise ExtractionError(
            f"OS error creating {dest_dir}: {e}",
            code="os_error",
        ) from e

    try:
        with zipfile.ZipFile(archive_path) as archive:
            members = archive.infolist()
            if not members:
                raise ExtractionError(
                    f"Archive {archive_path.name} is empty",
                    code="empty_archive",
                )

            # Validate every entry before writing anything
            targets = [(m, check_member_path(m.filename, dest_dir)) for m in members]

            for member, target in targets:
                if member.is_dir():
                    target.mkdir(parents=True, exist_ok=True)
                    continue
                target.parent.mkdir(parents=True, exist_ok=True)
                with archive.open(member) as src, target.open("wb") as out:
                    shutil.copyfileobj(src, out, COPY_CHUNK_SIZE)

    except (zipfile.BadZipFile, zlib.error, EOFError) as e:
        raise ExtractionError(
            f"Failed to extract {archive_path.name}: {e}",
            code="corrupt_archive",
        ) from e
    except (NotImplementedError, RuntimeError) as e:
        # Unsupported compression method or encrypted entries
        raise ExtractionError(
            f"Cannot extract {archive_path.name}: {e}",
            code="unsupported_archive",
        ) from e
    except OSError as e:
        raise ExtractionError(
            f"OS error extracting {archive_path.name}: {e}",
            code="os_error",
        ) from e

    if not (dest_dir / "index.html").is_file():
        logger.warning("No index.html at the root of %s", archive_path.name)

    logger.info("Extracted %d entries to %s", len(members), dest_dir)
    return dest_dir


__all__ = [
    "ExtractionError",
    "InvalidInputError",
    "check_member_path",
    "extract_archive",
    "save_upload",
    "validate_archive_name",
]
