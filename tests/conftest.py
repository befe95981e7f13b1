"""Shared fixtures for webgame_builder tests.

Every filesystem root lives under ``tmp_path`` and the Android toolchain
(npm, npx, gradle) is replaced by a stub of ``subprocess.run``.
"""

import io
import subprocess
import zipfile
from collections.abc import Callable, Iterator
from pathlib import Path
from unittest.mock import patch

import pytest

from webgame_builder.builds.profiles import DEBUG_APK_PATH
from webgame_builder.config import Settings

FAKE_APK_BYTES = b"PK\x03\x04fake-apk-contents"


def make_zip_bytes(files: dict[str, bytes | str]) -> bytes:
    """Build an in-memory zip archive from a name -> content mapping."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for name, content in files.items():
            archive.writestr(name, content)
    return buffer.getvalue()


GAME_FILES: dict[str, bytes | str] = {
    "index.html": "<html><body><canvas id='game'></canvas></body></html>",
    "game.js": "console.log('hello');",
    "assets/sprite.png": b"\x89PNG\r\n\x1a\nfake",
}


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings with every directory inside tmp_path."""
    return Settings(
        uploads_dir=tmp_path / "uploads",
        workspace_dir=tmp_path / "workspace",
        artifacts_dir=tmp_path / "artifacts",
        max_concurrent_builds=2,
        max_pending_builds=4,
        step_timeout=30,
    )


@pytest.fixture
def game_files() -> dict[str, bytes | str]:
    """Entries of the sample game archive."""
    return dict(GAME_FILES)


@pytest.fixture
def fake_apk_bytes() -> bytes:
    """Contents of the APK the fake gradle produces."""
    return FAKE_APK_BYTES


@pytest.fixture
def game_zip() -> bytes:
    """A small, well-formed game archive."""
    return make_zip_bytes(GAME_FILES)


@pytest.fixture
def game_zip_with_dirs() -> bytes:
    """A game archive with explicit directory entries, as `zip -r` writes."""
    return make_zip_bytes(
        {
            "index.html": GAME_FILES["index.html"],
            "assets/": b"",
            "assets/sprite.png": GAME_FILES["assets/sprite.png"],
            "js/": b"",
            "js/lib/": b"",
            "js/lib/engine.js": "export const engine = {};",
        }
    )


@pytest.fixture
def game_zip_path(tmp_path: Path, game_zip: bytes) -> Path:
    """The game archive written to disk as game.zip."""
    path = tmp_path / "game.zip"
    path.write_bytes(game_zip)
    return path


class FakeToolchain:
    """Stand-in for subprocess.run that records calls.

    ``fail_step`` names a program argument (e.g. ``assembleDebug``) whose
    invocation exits non-zero. ``produce_apk`` controls whether the gradle
    call leaves an APK behind.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[list[str], Path]] = []
        self.fail_step: str | None = None
        self.produce_apk = True

    def __call__(
        self, argv: list[str], cwd: Path | None = None, **kwargs: object
    ) -> subprocess.CompletedProcess:
        assert cwd is not None
        self.calls.append((list(argv), Path(cwd)))
        if self.fail_step is not None and self.fail_step in argv:
            return subprocess.CompletedProcess(
                argv, 1, stdout="FAILURE: Build failed with an exception.\n"
            )
        if argv[-1] == "assembleDebug" and self.produce_apk:
            # gradle runs inside <project>/android
            apk = Path(cwd).parent / DEBUG_APK_PATH
            apk.parent.mkdir(parents=True, exist_ok=True)
            apk.write_bytes(FAKE_APK_BYTES)
        return subprocess.CompletedProcess(argv, 0, stdout=f"ran {argv[0]}\n")


@pytest.fixture
def toolchain() -> Iterator[FakeToolchain]:
    """Patch subprocess.run used by the runner with a FakeToolchain."""
    fake = FakeToolchain()
    with patch("webgame_builder.builds.runner.subprocess.run", side_effect=fake):
        yield fake


@pytest.fixture
def zip_factory(tmp_path: Path) -> Callable[..., Path]:
    """Write archives with arbitrary entries to disk."""

    def _make(name: str, files: dict[str, bytes | str]) -> Path:
        path = tmp_path / name
        path.write_bytes(make_zip_bytes(files))
        return path

    return _make
