"""Tests for builds/staging.py module.

Covers upload validation, saving, and archive extraction including
hostile entry names.
"""

import io
from collections.abc import Callable
from pathlib import Path

import pytest

from webgame_builder.builds.staging import (
    ExtractionError,
    InvalidInputError,
    check_member_path,
    extract_archive,
    save_upload,
    validate_archive_name,
)


class TestValidateArchiveName:
    """Tests for validate_archive_name."""

    def test_display_name_strips_extension(self) -> None:
        """The display name is the file name without .zip."""
        assert validate_archive_name("My Game.zip") == "My Game"

    def test_extension_case_insensitive(self) -> None:
        """Upper-case extensions are accepted."""
        assert validate_archive_name("GAME.ZIP") == "GAME"

    def test_directory_components_dropped(self) -> None:
        """Client-side directories never reach the display name."""
        assert validate_archive_name("C:\\Users\\me\\game.zip") == "game"
        assert validate_archive_name("../../game.zip") == "game"

    @pytest.mark.parametrize("name", [None, ""])
    def test_missing_name(self, name: str | None) -> None:
        """A missing file is rejected with no_file."""
        with pytest.raises(InvalidInputError) as exc_info:
            validate_archive_name(name)
        assert exc_info.value.code == "no_file"

    @pytest.mark.parametrize("name", ["notes.txt", "game.zip.exe", "game"])
    def test_wrong_extension(self, name: str) -> None:
        """Non-archive names are rejected."""
        with pytest.raises(InvalidInputError) as exc_info:
            validate_archive_name(name)
        assert exc_info.value.code == "invalid_extension"
        assert "ZIP" in str(exc_info.value)

    def test_bare_extension(self) -> None:
        """A name that is only the extension is rejected."""
        with pytest.raises(InvalidInputError):
            validate_archive_name(".zip")


class TestSaveUpload:
    """Tests for save_upload."""

    def test_writes_stream(self, tmp_path: Path) -> None:
        """The stream is written in full and its size returned."""
        dest = tmp_path / "uploads" / "a.zip"
        size = save_upload(io.BytesIO(b"x" * 3000), dest)
        assert size == 3000
        assert dest.read_bytes() == b"x" * 3000

    def test_empty_upload_rejected(self, tmp_path: Path) -> None:
        """Empty uploads are rejected and leave no file."""
        dest = tmp_path / "a.zip"
        with pytest.raises(InvalidInputError) as exc_info:
            save_upload(io.BytesIO(b""), dest)
        assert exc_info.value.code == "empty_upload"
        assert not dest.exists()


class TestCheckMemberPath:
    """Tests for check_member_path."""

    def test_nested_entry_allowed(self, tmp_path: Path) -> None:
        """Nested relative entries stay inside the root."""
        target = check_member_path("assets/img/a.png", tmp_path)
        assert target == (tmp_path / "assets" / "img" / "a.png").resolve()

    @pytest.mark.parametrize(
        "name",
        [
            "../evil.txt",
            "assets/../../evil.txt",
            "/etc/passwd",
            "..\\evil.txt",
            "C:/evil.txt",
        ],
    )
    def test_traversal_rejected(self, tmp_path: Path, name: str) -> None:
        """Entries escaping the root are refused."""
        with pytest.raises(ExtractionError) as exc_info:
            check_member_path(name, tmp_path)
        assert exc_info.value.code == "path_traversal"


class TestExtractArchive:
    """Tests for extract_archive."""

    def test_extracts_all_entries(
        self, tmp_path: Path, game_zip_path: Path
    ) -> None:
        """Files keep their relative layout."""
        dest = extract_archive(game_zip_path, tmp_path / "staged")
        assert (dest / "index.html").is_file()
        assert (dest / "game.js").read_text() == "console.log('hello');"
        assert (dest / "assets" / "sprite.png").is_file()

    def test_destination_must_be_fresh(
        self, tmp_path: Path, game_zip_path: Path
    ) -> None:
        """An existing staging directory is never reused."""
        dest = tmp_path / "staged"
        dest.mkdir()
        with pytest.raises(ExtractionError) as exc_info:
            extract_archive(game_zip_path, dest)
        assert exc_info.value.code == "staging_exists"

    def test_corrupt_archive(self, tmp_path: Path) -> None:
        """Garbage bytes are reported as a corrupt archive."""
        bad = tmp_path / "bad.zip"
        bad.write_bytes(b"this is not a zip file at all")
        with pytest.raises(ExtractionError) as exc_info:
            extract_archive(bad, tmp_path / "staged")
        assert exc_info.value.code == "corrupt_archive"

    def test_empty_archive(
        self, tmp_path: Path, zip_factory: Callable[..., Path]
    ) -> None:
        """An archive without entries is rejected."""
        empty = zip_factory("empty.zip", {})
        with pytest.raises(ExtractionError) as exc_info:
            extract_archive(empty, tmp_path / "staged")
        assert exc_info.value.code == "empty_archive"

    def test_traversal_writes_nothing(
        self, tmp_path: Path, zip_factory: Callable[..., Path]
    ) -> None:
        """A hostile entry aborts extraction before any file is written."""
        hostile = zip_factory(
            "hostile.zip",
            {"index.html": "<html></html>", "../../escaped.txt": "pwned"},
        )
        dest = tmp_path / "work" / "staged"
        with pytest.raises(ExtractionError) as exc_info:
            extract_archive(hostile, dest)
        assert exc_info.value.code == "path_traversal"
        assert not (dest / "index.html").exists()
        assert not (tmp_path / "escaped.txt").exists()

    def test_missing_index_still_extracts(
        self, tmp_path: Path, zip_factory: Callable[..., Path]
    ) -> None:
        """Archives without a root index.html are staged anyway."""
        archive = zip_factory("nested.zip", {"game/index.html": "<html></html>"})
        dest = extract_archive(archive, tmp_path / "staged")
        assert (dest / "game" / "index.html").is_file()
