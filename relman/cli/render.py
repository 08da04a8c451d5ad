"""Rich terminal rendering for release listings, status, and reconciliation.

Color scheme
------------
- green : available
- red   : unavailable
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from relman.models.packages import RepositoryStatus, SoftwarePackageInfo
from relman.models.releases import ReleaseMetadata, ReleaseState
from relman.models.reports import ReconciliationReport

_STATE_LABELS: dict[ReleaseState, str] = {
    ReleaseState.AVAILABLE: "[green]available[/green]",
    ReleaseState.UNAVAILABLE: "[bold red]unavailable[/bold red]",
}


def _fmt_date(value: datetime | None) -> str:
    return value.strftime("%Y-%m-%d") if value else "[dim]-[/dim]"


def _fmt_size(size: int) -> str:
    for unit in ("B", "KiB", "MiB"):
        if size < 1024:
            return f"{size} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GiB"


class ReleaseRenderer:
    """Renders repository views as Rich terminal output.

    Parameters
    ----------
    console:
        Rich Console instance.  A new one is created if not provided.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def print_releases(self, software_name: str, releases: list[ReleaseMetadata]) -> None:
        table = Table(title=f"Releases of {software_name}", header_style="bold cyan")
        table.add_column("Version", style="cyan")
        table.add_column("State", justify="center")
        table.add_column("Size", justify="right")
        table.add_column("Release date")
        table.add_column("Changelog", overflow="fold")

        for release in releases:
            table.add_row(
                release.version,
                _STATE_LABELS[release.release_state],
                _fmt_size(release.file_size),
                _fmt_date(release.release_date),
                release.changelog or "[dim]-[/dim]",
            )
        self.console.print(table)

    def print_release(self, release: ReleaseMetadata, path: Path | None = None) -> None:
        lines = [
            f"[bold]Software:[/bold]  {release.software_name}",
            f"[bold]Version:[/bold]   {release.version}",
            f"[bold]State:[/bold]     {_STATE_LABELS[release.release_state]}",
            f"[bold]Size:[/bold]      {_fmt_size(release.file_size)}",
            f"[bold]Released:[/bold]  {_fmt_date(release.release_date)}",
            f"[bold]Committed:[/bold] {release.release_timestamp.isoformat()}",
            f"[bold]ID:[/bold]        {release.id}",
        ]
        if path is not None:
            lines.append(f"[bold]Path:[/bold]      {path}")
        if release.changelog:
            lines += ["", release.changelog]
        self.console.print(
            Panel(
                "\n".join(lines),
                title=f"[bold]{release.software_name} {release.version}[/bold]",
                border_style="green" if release.is_available else "red",
                padding=(1, 2),
            )
        )

    def print_packages(self, packages: list[SoftwarePackageInfo]) -> None:
        if not packages:
            self.console.print("[dim]No packages in the repository.[/dim]")
            return
        table = Table(title="Software Packages", header_style="bold cyan")
        table.add_column("Name", style="cyan")
        table.add_column("Latest", style="green")
        table.add_column("Release date")
        table.add_column("Releases", justify="right")
        table.add_column("Available", justify="right")
        for pkg in packages:
            table.add_row(
                pkg.name,
                pkg.latest_version,
                _fmt_date(pkg.latest_release_date),
                str(pkg.release_count),
                str(pkg.available_count),
            )
        self.console.print(table)

    def print_status(self, status: RepositoryStatus) -> None:
        self.console.print(
            Panel(
                "\n".join([
                    f"[bold]Version:[/bold]     {status.server_version}",
                    f"[bold]Packages:[/bold]    {status.total_packages}",
                    f"[bold]Releases:[/bold]    {status.total_releases}",
                    f"[bold]Available:[/bold]   [green]{status.available_releases}[/green]",
                    f"[bold]Unavailable:[/bold] [red]{status.unavailable_releases}[/red]",
                ]),
                title="[bold]Release Repository[/bold]",
                border_style="blue",
                padding=(1, 2),
            )
        )

    def print_report(self, report: ReconciliationReport) -> None:
        summary = (
            f"[bold]Checked:[/bold] {report.checked}  |  "
            f"[bold]Corrected:[/bold] {report.mutations}"
        )
        if not report.corrections:
            self.console.print(f"[green]Repository in sync.[/green]  {summary}")
            return

        table = Table(title="Reconciliation", header_style="bold cyan")
        table.add_column("Software", style="cyan")
        table.add_column("Version")
        table.add_column("Reason", style="yellow")
        table.add_column("State")
        table.add_column("Size", justify="right")
        for c in report.corrections:
            table.add_row(
                c.software_name,
                c.version,
                c.reason.value,
                f"{c.previous_state.value} -> {_STATE_LABELS[c.new_state]}",
                f"{c.previous_size} -> {c.new_size}",
            )
        self.console.print(table)
        self.console.print(summary)
