"""Read-only commands: ``packages``, ``releases``, ``latest``, ``show``."""

from __future__ import annotations

import typer

from relman.cli.render import ReleaseRenderer
from relman.cli.support import console, domain_errors, open_service
from relman.core.version_comparator import SORT_FIELDS, SORT_ORDERS


def packages_cmd(ctx: typer.Context) -> None:
    """List software packages with their latest version."""
    service = open_service(ctx)
    with domain_errors():
        packages = service.list_packages()
    ReleaseRenderer(console=console).print_packages(packages)


def releases_cmd(
    ctx: typer.Context,
    software_name: str = typer.Argument(..., help="Software package name."),
    sort: str = typer.Option(
        "version", "--sort", "-s", help="Sort field: version or date."
    ),
    order: str = typer.Option(
        "desc", "--order", "-o", help="Sort order: asc or desc."
    ),
) -> None:
    """List the releases of one software package."""
    if sort not in SORT_FIELDS or order not in SORT_ORDERS:
        console.print("[bold red]--sort must be version|date and --order asc|desc.[/bold red]")
        raise typer.Exit(code=2)
    service = open_service(ctx)
    with domain_errors():
        releases = service.list_releases(software_name, sort_by=sort, order=order)
    ReleaseRenderer(console=console).print_releases(software_name, releases)


def latest_cmd(
    ctx: typer.Context,
    software_name: str = typer.Argument(..., help="Software package name."),
) -> None:
    """Show the latest release of a software package."""
    service = open_service(ctx)
    with domain_errors():
        release = service.latest_release(software_name)
    ReleaseRenderer(console=console).print_release(release, service.resolve_path(release))


def show_cmd(
    ctx: typer.Context,
    software_name: str = typer.Argument(..., help="Software package name."),
    version: str = typer.Argument(..., help="Release version (X.Y.Z)."),
) -> None:
    """Show one release and the path of its archive."""
    service = open_service(ctx)
    with domain_errors():
        release = service.get_release(software_name, version)
        path = service.resolve_path(release)
    ReleaseRenderer(console=console).print_release(release, path)
