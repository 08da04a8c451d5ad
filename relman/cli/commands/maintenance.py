"""Maintenance commands: ``status``, ``reconcile``, ``delete``."""

from __future__ import annotations

import typer

from relman.cli.render import ReleaseRenderer
from relman.cli.support import console, domain_errors, open_service


def status_cmd(ctx: typer.Context) -> None:
    """Show repository counters."""
    service = open_service(ctx)
    ReleaseRenderer(console=console).print_status(service.status())


def reconcile_cmd(ctx: typer.Context) -> None:
    """Align release metadata with the archive files on disk.

    Exits with status 1 if the pass is aborted; nothing is corrected then.
    """
    service = open_service(ctx, reconcile=False)
    with domain_errors():
        report = service.reconcile()
    ReleaseRenderer(console=console).print_report(report)


def delete_cmd(
    ctx: typer.Context,
    software_name: str = typer.Argument(..., help="Software package name."),
    version: str = typer.Argument(..., help="Release version (X.Y.Z)."),
    keep_file: bool = typer.Option(
        False,
        "--keep-file",
        help="Remove only the metadata and leave the archive on disk.",
    ),
) -> None:
    """Delete a release."""
    service = open_service(ctx)
    with domain_errors():
        removed = service.delete_release(software_name, version, purge_file=not keep_file)
    console.print(
        f"[bold green]Deleted {removed.software_name} {removed.version}.[/bold green]"
    )
