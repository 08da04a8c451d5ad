"""Main Typer application: imports and registers all CLI commands.

Entry point: ``relman`` (configured via pyproject.toml project.scripts).
"""

from __future__ import annotations

from pathlib import Path

import typer
from pydantic import ValidationError

from relman.cli.commands.maintenance import delete_cmd, reconcile_cmd, status_cmd
from relman.cli.commands.query import latest_cmd, packages_cmd, releases_cmd, show_cmd
from relman.cli.commands.upload import upload_cmd
from relman.cli.support import configure_logging, console
from relman.config import RelmanConfig, config as default_config

app = typer.Typer(
    name="relman",
    help="relman: versioned release repository manager.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)


@app.callback()
def main_callback(
    ctx: typer.Context,
    data_path: Path = typer.Option(
        None, "--data-path", help="Directory holding the metadata and identifier files."
    ),
    repo_path: Path = typer.Option(
        None, "--repo-path", help="Root of the release archive tree."
    ),
    log_level: str = typer.Option(None, "--log-level", help="Logging level."),
) -> None:
    """Load configuration and set up logging for every command."""
    overrides = {
        key: value
        for key, value in (
            ("data_path", data_path),
            ("repository_path", repo_path),
            ("log_level", log_level),
        )
        if value is not None
    }
    try:
        config = RelmanConfig(**overrides) if overrides else default_config
    except ValidationError as exc:
        console.print(f"[bold red]Invalid configuration:[/bold red] {exc}")
        raise typer.Exit(code=2)
    configure_logging(config)
    ctx.obj = config


# Register subcommands
app.command(name="status", help="Show repository counters.")(status_cmd)
app.command(name="reconcile", help="Align metadata with archives on disk.")(reconcile_cmd)
app.command(name="upload", help="Upload a release archive.")(upload_cmd)
app.command(name="packages", help="List software packages.")(packages_cmd)
app.command(name="releases", help="List releases of a package.")(releases_cmd)
app.command(name="latest", help="Show the latest release of a package.")(latest_cmd)
app.command(name="show", help="Show one release.")(show_cmd)
app.command(name="delete", help="Delete a release.")(delete_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
