"""File-level packaging operations used by platform profiles.

This module handles:
- Generating the Capacitor configuration document
- Mirroring game assets into the wrapper's web directory
- Re-packing a staged game into a single optimized zip
- Publishing finished files into the artifact store atomically
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import shutil
import uuid
import zipfile
from pathlib import Path
from typing import Any

from webgame_builder.builds.runner import MissingOutputError

logger = logging.getLogger(__name__)

CAPACITOR_CONFIG_NAME = "capacitor.config.json"
WEB_DIR_NAME = "www"

# Default chunk size for hashing
HASH_CHUNK_SIZE = 64 * 1024  # 64KB


def capacitor_config(
    app_id: str,
    app_name: str,
    min_sdk: int = 21,
    target_sdk: int = 33,
    web_dir: str = WEB_DIR_NAME,
) -> dict[str, Any]:
    """Build the Capacitor configuration for a wrapped game."""
    return {
        "appId": app_id,
        "appName": app_name,
        "webDir": web_dir,
        "server": {
            "androidScheme": "file",
            "cleartext": True,
            "allowNavigation": ["*"],
        },
        "android": {
            "buildOptions": {
                "minSdkVersion": min_sdk,
                "targetSdkVersion": target_sdk,
            },
        },
    }


def write_capacitor_config(project_dir: Path, config: dict[str, Any]) -> Path:
    """Write ``capacitor.config.json`` into the project directory.

    Returns:
        Path of the written file.
    """
    config_path = project_dir / CAPACITOR_CONFIG_NAME
    config_path.write_text(json.dumps(config, indent=2) + "\n", encoding="utf-8")
    logger.debug("Wrote %s", config_path)
    return config_path


def mirror_web_assets(project_dir: Path, web_dir_name: str = WEB_DIR_NAME) -> Path:
    """Copy the game's files into the wrapper's web directory.

    Everything at the project root is copied except the web directory
    itself and the Capacitor configuration.

    Returns:
        Path of the web directory.
    """
    web_dir = project_dir / web_dir_name
    web_dir.mkdir(parents=True, exist_ok=True)
    skip = {web_dir_name, CAPACITOR_CONFIG_NAME}

    copied = 0
    for entry in sorted(project_dir.iterdir()):
        if entry.name in skip:
            continue
        dest = web_dir / entry.name
        if entry.is_dir():
            shutil.copytree(entry, dest, dirs_exist_ok=True)
        else:
            shutil.copy2(entry, dest)
        copied += 1

    logger.debug("Mirrored %d top-level entries into %s", copied, web_dir)
    return web_dir


def repack_directory(source_dir: Path, dest_path: Path) -> int:
    """Pack a directory into a deflate-compressed zip.

    Entry names are relative to ``source_dir`` so the top-level layout of
    the game is preserved. Every sub-directory gets its own directory
    entry, empty or not.

    Returns:
        Number of files written.
    """
    dest_path.parent.mkdir(parents=True, exist_ok=True)
    files = 0
    with zipfile.ZipFile(
        dest_path, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=9
    ) as archive:
        for path in sorted(source_dir.rglob("*")):
            arcname = path.relative_to(source_dir).as_posix()
            if path.is_dir():
                archive.writestr(f"{arcname}/", b"")
                continue
            archive.write(path, arcname)
            files += 1

    logger.info("Packed %d files from %s into %s", files, source_dir, dest_path.name)
    return files


def require_output(path: Path) -> Path:
    """Check that a toolchain produced an expected file.

    Raises:
        MissingOutputError: If the file does not exist.
    """
    if not path.is_file():
        raise MissingOutputError(path)
    return path


def publish_artifact(source: Path, dest: Path, move: bool = False) -> Path:
    """Place a finished file into the artifact store.

    The file is first written under a temporary name in the destination
    directory and then renamed, so ``dest`` never holds a partial file.

    Args:
        source: Finished file.
        dest: Final artifact path.
        move: Move instead of copy.

    Returns:
        The artifact path.

    Raises:
        MissingOutputError: If ``source`` does not exist.
    """
    require_output(source)
    dest.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = dest.with_name(f".{dest.name}.{uuid.uuid4().hex[:8]}.part")
    try:
        if move:
            shutil.move(source, tmp_path)
        else:
            shutil.copyfile(source, tmp_path)
        os.replace(tmp_path, dest)
    finally:
        if tmp_path.exists():
            tmp_path.unlink()

    logger.info("Published artifact %s", dest)
    return dest


def compute_file_hash(file_path: Path, chunk_size: int = HASH_CHUNK_SIZE) -> str:
    """Compute SHA-256 hash of a file.

    Args:
        file_path: Path to the file.
        chunk_size: Size of chunks for streaming hash.

    Returns:
        SHA-256 hex digest.
    """
    sha256 = hashlib.sha256()
    with file_path.open("rb") as f:
        while chunk := f.read(chunk_size):
            sha256.update(chunk)
    return sha256.hexdigest()


__all__ = [
    "CAPACITOR_CONFIG_NAME",
    "WEB_DIR_NAME",
    "capacitor_config",
    "compute_file_hash",
    "mirror_web_assets",
    "publish_artifact",
    "repack_directory",
    "require_output",
    "write_capacitor_config",
]
