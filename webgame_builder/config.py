"""Configuration settings for webgame_builder.

Uses pydantic-settings for config parsing from environment variables
and defaults. Configuration precedence: CLI flags > env vars > defaults.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _data_root() -> Path:
    """Return the default data root directory."""
    return Path.home() / ".local" / "share" / "webgame-builder"


def _default_uploads_dir() -> Path:
    """Return the default uploads directory."""
    return _data_root() / "uploads"


def _default_workspace_dir() -> Path:
    """Return the default per-job workspace root."""
    return _data_root() / "workspace"


def _default_artifacts_dir() -> Path:
    """Return the default artifacts directory."""
    return _data_root() / "artifacts"


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from environment variables with the WGB_ prefix.
    CLI flags can override these at runtime.
    """

    model_config = SettingsConfigDict(
        env_prefix="WGB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Paths
    uploads_dir: Path = Field(
        default_factory=_default_uploads_dir,
        description="Directory holding uploaded archives until their build ends",
    )
    workspace_dir: Path = Field(
        default_factory=_default_workspace_dir,
        description="Root directory for per-job extraction workspaces",
    )
    artifacts_dir: Path = Field(
        default_factory=_default_artifacts_dir,
        description="Root directory for finished build artifacts",
    )

    # Upload boundary
    max_upload_bytes: int = Field(
        default=50 * 1024 * 1024,
        ge=1,
        description="Maximum accepted upload size in bytes",
    )
    archive_extension: str = Field(
        default=".zip",
        description="File extension accepted for uploaded game archives",
    )

    # Concurrency
    max_concurrent_builds: int = Field(
        default=2,
        ge=1,
        le=32,
        description="Maximum builds running at the same time",
    )
    max_pending_builds: int = Field(
        default=16,
        ge=0,
        description="Maximum builds waiting for a worker before new ones are rejected",
    )

    # Timeouts (in seconds)
    step_timeout: int = Field(
        default=1800,
        ge=1,
        description="Timeout for a single external toolchain step",
    )

    # Lifecycle policies
    keep_failed_workspaces: bool = Field(
        default=True,
        description="Keep the workspace and upload of failed jobs for inspection",
    )
    job_retention_seconds: int | None = Field(
        default=None,
        ge=1,
        description="Forget finished jobs after this many seconds (unset keeps them)",
    )

    # Mobile wrapper
    app_id: str = Field(
        default="com.gameconverter.app",
        description="Application identifier baked into Android packages",
    )
    app_name: str = Field(
        default="AppZorb App",
        description="Application name baked into Android packages",
    )
    android_min_sdk: int = Field(default=21, ge=1)
    android_target_sdk: int = Field(default=33, ge=1)
    npm_command: str = Field(default="npm", description="npm executable")
    npx_command: str = Field(default="npx", description="npx executable")
    gradle_command: str = Field(
        default="./gradlew",
        description="Gradle wrapper, resolved inside the generated android/ project",
    )

    # Server
    host: str = Field(default="127.0.0.1", description="Bind address for serve")
    port: int = Field(default=3001, ge=1, le=65535, description="Port for serve")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    def ensure_directories(self) -> None:
        """Create the uploads, workspace and artifacts roots if missing."""
        for directory in (self.uploads_dir, self.workspace_dir, self.artifacts_dir):
            directory.mkdir(parents=True, exist_ok=True)


def get_settings() -> Settings:
    """Get the application settings singleton.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()


def print_settings_json(settings: Settings | None = None) -> str:
    """Render effective settings as JSON.

    Args:
        settings: Optional settings instance; uses default if not provided.

    Returns:
        JSON string of effective settings.
    """
    if settings is None:
        settings = get_settings()
    return settings.model_dump_json(indent=2)


__all__ = ["Settings", "get_settings", "print_settings_json"]
