"""Thin CLI wrapper for webgame_builder.

This module provides the command-line interface using Typer.
All business logic is delegated to core modules.
"""

import json
import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from webgame_builder import __version__
from webgame_builder.config import Settings, get_settings, print_settings_json

app = typer.Typer(
    name="webgame-builder",
    help="Web Game Builder - package HTML5 games as Android or desktop builds",
    no_args_is_help=True,
)
console = Console()


def configure_logging(level: str) -> None:
    """Configure root logging for CLI entry points."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"webgame-builder version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """Web Game Builder - package HTML5 games as Android or desktop builds."""


@app.command()
def config(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show effective configuration."""
    settings = get_settings()
    if json_output:
        console.print(print_settings_json(settings), soft_wrap=True, markup=False)
        return

    retention = (
        f"{settings.job_retention_seconds}s"
        if settings.job_retention_seconds
        else "(keep until restart)"
    )
    console.print("[bold]Effective Configuration:[/bold]")
    console.print()
    console.print("[bold]Paths:[/bold]")
    console.print(f"  Uploads directory:   {settings.uploads_dir}")
    console.print(f"  Workspace directory: {settings.workspace_dir}")
    console.print(f"  Artifacts directory: {settings.artifacts_dir}")
    console.print()
    console.print("[bold]Uploads:[/bold]")
    console.print(f"  Max upload bytes:    {settings.max_upload_bytes}")
    console.print(f"  Archive extension:   {settings.archive_extension}")
    console.print()
    console.print("[bold]Concurrency:[/bold]")
    console.print(f"  Max builds:          {settings.max_concurrent_builds}")
    console.print(f"  Max pending builds:  {settings.max_pending_builds}")
    console.print(f"  Step timeout:        {settings.step_timeout}s")
    console.print()
    console.print("[bold]Lifecycle:[/bold]")
    console.print(f"  Keep failed work:    {settings.keep_failed_workspaces}")
    console.print(f"  Job retention:       {retention}")
    console.print()
    console.print("[bold]Android:[/bold]")
    console.print(f"  App ID:              {settings.app_id}")
    console.print(f"  App name:            {settings.app_name}")
    console.print(
        f"  SDK (min/target):    {settings.android_min_sdk}/"
        f"{settings.android_target_sdk}"
    )
    console.print()
    console.print("[bold]Server:[/bold]")
    console.print(f"  Listen:              {settings.host}:{settings.port}")
    console.print(f"  Log level:           {settings.log_level}")


@app.command()
def serve(
    host: Annotated[
        str | None,
        typer.Option("--host", help="Bind address (default from settings)"),
    ] = None,
    port: Annotated[
        int | None,
        typer.Option("--port", "-p", help="Port (default from settings)"),
    ] = None,
) -> None:
    """Run the HTTP API server."""
    import uvicorn

    from web.app import create_app

    settings = get_settings()
    configure_logging(settings.log_level)
    uvicorn.run(
        create_app(settings),
        host=host or settings.host,
        port=port or settings.port,
        log_level=settings.log_level.lower(),
    )


@app.command()
def build(
    archive: Annotated[
        Path,
        typer.Argument(
            help="Zipped web game to package",
            exists=True,
            dir_okay=False,
            readable=True,
        ),
    ],
    platform: Annotated[
        str,
        typer.Option("--platform", "-p", help="Target platform: mobile or desktop"),
    ] = "mobile",
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Build one archive in the foreground and report the artifact."""
    from webgame_builder.builds.service import BuildService
    from webgame_builder.builds.staging import InvalidInputError
    from webgame_builder.types import JobStatus

    settings: Settings = get_settings()
    configure_logging(settings.log_level)
    service = BuildService(settings)

    try:
        with archive.open("rb") as stream:
            job = service.submit(archive.name, stream, platform)
        job = service.wait(job.id)
    except InvalidInputError as e:
        if json_output:
            console.print(
                json.dumps({"error": {"code": e.code, "message": str(e)}}),
                soft_wrap=True,
                markup=False,
            )
        else:
            console.print(f"Error: {e}", style="red", markup=False)
        raise typer.Exit(code=2) from None
    finally:
        service.shutdown()

    succeeded = job.status is JobStatus.COMPLETED
    if json_output:
        console.print(
            json.dumps(
                {
                    "id": job.id,
                    "status": job.status.value,
                    "platform": job.platform.value,
                    "artifact_path": str(job.artifact_path)
                    if job.artifact_path
                    else None,
                    "sha256": job.sha256,
                    "error_code": job.error_code,
                    "error": job.error_detail,
                },
                indent=2,
            ),
            soft_wrap=True,
            markup=False,
        )
    elif succeeded:
        console.print(f"[green]Build {job.id} completed[/green]")
        console.print(f"  Artifact: {job.artifact_path}")
        console.print(f"  SHA-256:  {job.sha256}")
    else:
        console.print(f"[red]Build {job.id} failed[/red] ({job.error_code})")
        console.print(job.error_detail or "", markup=False)

    if not succeeded:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
