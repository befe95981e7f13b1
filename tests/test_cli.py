"""Tests for the CLI.

These tests run without network access or Android tooling; directories
come from WGB_* environment variables pointing into tmp_path.
"""

import json
import os
from pathlib import Path
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from webgame_builder import __version__
from webgame_builder.cli import app

runner = CliRunner()


@pytest.fixture
def cli_env(tmp_path: Path):
    """Point every directory setting into tmp_path."""
    env = {
        "WGB_UPLOADS_DIR": str(tmp_path / "uploads"),
        "WGB_WORKSPACE_DIR": str(tmp_path / "workspace"),
        "WGB_ARTIFACTS_DIR": str(tmp_path / "artifacts"),
        "WGB_LOG_LEVEL": "CRITICAL",
    }
    with patch.dict(os.environ, env):
        yield tmp_path


class TestCLIHelp:
    """Test CLI help and version commands."""

    def test_help_returns_zero(self) -> None:
        """CLI --help should return exit code 0."""
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "Web Game Builder" in result.stdout

    def test_version_flag(self) -> None:
        """CLI --version should print version and exit 0."""
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_short_version_flag(self) -> None:
        """CLI -V should print version and exit 0."""
        result = runner.invoke(app, ["-V"])
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_no_args_shows_help(self) -> None:
        """CLI with no args should show help."""
        result = runner.invoke(app, [])
        assert "Usage:" in result.stdout


class TestCLIConfig:
    """Test CLI config command."""

    def test_config_command_shows_all_sections(self, cli_env: Path) -> None:
        """CLI config should show every configuration group."""
        result = runner.invoke(app, ["config"])
        assert result.exit_code == 0
        for section in ("Paths:", "Uploads:", "Concurrency:", "Lifecycle:"):
            assert section in result.stdout
        assert "Uploads directory" in result.stdout
        assert "Artifacts directory" in result.stdout
        assert "Max builds" in result.stdout
        assert "App ID" in result.stdout
        assert "Log level" in result.stdout

    def test_config_json(self, cli_env: Path) -> None:
        """CLI config --json should output parseable JSON."""
        result = runner.invoke(app, ["config", "--json"])
        assert result.exit_code == 0
        config_data = json.loads(result.stdout)
        assert config_data["artifacts_dir"] == str(cli_env / "artifacts")
        for key in (
            "uploads_dir",
            "workspace_dir",
            "max_upload_bytes",
            "max_concurrent_builds",
            "step_timeout",
            "app_id",
        ):
            assert key in config_data, f"Missing key: {key}"


class TestCLIBuild:
    """Test the foreground build command."""

    def test_build_help(self) -> None:
        """CLI build --help should describe the command."""
        result = runner.invoke(app, ["build", "--help"])
        assert result.exit_code == 0
        assert "--platform" in result.stdout

    def test_desktop_build_json(self, cli_env: Path, game_zip_path: Path) -> None:
        """A desktop build reports the artifact path."""
        result = runner.invoke(
            app, ["build", str(game_zip_path), "--platform", "desktop", "--json"]
        )
        assert result.exit_code == 0, result.stdout
        data = json.loads(result.stdout)
        assert data["status"] == "completed"
        assert data["platform"] == "desktop"
        assert Path(data["artifact_path"]).is_file()
        assert Path(data["artifact_path"]).parent == cli_env / "artifacts"
        assert data["error"] is None

    def test_mobile_build_failure_exit_code(
        self, cli_env: Path, game_zip_path: Path, toolchain
    ) -> None:
        """A failed build exits with code 1 and reports the step."""
        toolchain.fail_step = "assembleDebug"
        result = runner.invoke(app, ["build", str(game_zip_path), "--json"])
        assert result.exit_code == 1
        data = json.loads(result.stdout)
        assert data["status"] == "failed"
        assert data["error_code"] == "build_step_error"
        assert "gradle-assemble-debug" in data["error"]

    def test_invalid_archive_name(self, cli_env: Path, tmp_path: Path) -> None:
        """A non-zip file is rejected with exit code 2."""
        notes = tmp_path / "notes.txt"
        notes.write_text("hello")
        result = runner.invoke(app, ["build", str(notes), "--json"])
        assert result.exit_code == 2
        assert json.loads(result.stdout)["error"]["code"] == "invalid_extension"

    def test_invalid_platform(self, cli_env: Path, game_zip_path: Path) -> None:
        """An unknown platform is rejected with exit code 2."""
        result = runner.invoke(
            app, ["build", str(game_zip_path), "--platform", "ios"]
        )
        assert result.exit_code == 2
        assert "Invalid platform" in result.stdout


class TestCLIServe:
    """Test the serve command wiring."""

    def test_serve_runs_uvicorn(self, cli_env: Path) -> None:
        """serve should hand the app to uvicorn with host and port."""
        with patch("uvicorn.run") as mock_run:
            result = runner.invoke(app, ["serve", "--host", "0.0.0.0", "-p", "8080"])
        assert result.exit_code == 0
        mock_run.assert_called_once()
        kwargs = mock_run.call_args.kwargs
        assert kwargs["host"] == "0.0.0.0"
        assert kwargs["port"] == 8080
