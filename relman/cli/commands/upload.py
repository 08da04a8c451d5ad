"""``relman upload ARCHIVE``: store a release archive and commit its metadata."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

import typer

from relman.cli.render import ReleaseRenderer
from relman.cli.support import console, domain_errors, open_service
from relman.models.releases import ReleaseMetadata


def upload_cmd(
    ctx: typer.Context,
    archive: Path = typer.Argument(
        ...,
        help="Path to a finished .tgz archive.",
    ),
    name: str = typer.Option(..., "--name", "-n", help="Software package name."),
    version: str = typer.Option(..., "--version", "-v", help="Release version (X.Y.Z)."),
    changelog: str = typer.Option("", "--changelog", "-c", help="Release notes."),
    release_date: datetime = typer.Option(
        None,
        "--release-date",
        "-d",
        formats=["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S"],
        help="Nominal release date (defaults to the upload time).",
    ),
) -> None:
    """Upload a release archive.

    The archive is copied into the repository tree and its metadata is
    committed. If the commit fails, the copied file is removed again.
    """
    service = open_service(ctx)
    metadata = ReleaseMetadata(
        software_name=name,
        version=version,
        changelog=changelog,
        release_date=release_date,
    )
    with domain_errors():
        committed = service.upload(archive, metadata)
        path = service.resolve_path(committed)
    console.print(f"[bold green]Uploaded {committed.software_name} {committed.version}.[/bold green]")
    ReleaseRenderer(console=console).print_release(committed, path)
