"""Shared plumbing for CLI commands: logging setup, service access, error exits."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

import typer
from rich.console import Console
from rich.logging import RichHandler

from relman.config import RelmanConfig
from relman.core.errors import CompensationFailure, RepositoryError
from relman.core.release_service import ReleaseService

console = Console()


def configure_logging(config: RelmanConfig) -> None:
    """Route log records to stderr through Rich, and to a file if configured."""
    handlers: list[logging.Handler] = [
        RichHandler(console=Console(stderr=True), show_path=False, rich_tracebacks=True)
    ]
    if config.log_file_path is not None:
        config.log_file_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(config.log_file_path, encoding="utf-8")
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        handlers.append(file_handler)
    logging.basicConfig(
        level=config.log_level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=handlers,
        force=True,
    )


@contextmanager
def domain_errors() -> Iterator[None]:
    """Print repository errors in red and exit with status 1."""
    try:
        yield
    except CompensationFailure as exc:
        console.print(f"[bold red]{exc.kind}:[/bold red] {exc.message}")
        console.print(f"  [red]primary:[/red] {exc.primary}")
        console.print(f"  [red]cleanup:[/red] {exc.cleanup_error}")
        raise typer.Exit(code=1)
    except RepositoryError as exc:
        console.print(f"[bold red]{exc.kind}:[/bold red] {exc.message}")
        raise typer.Exit(code=1)


def open_service(ctx: typer.Context, *, reconcile: bool | None = None) -> ReleaseService:
    """Build the release service from the config stored on the Typer context."""
    config: RelmanConfig = ctx.obj
    if reconcile is not None:
        config = config.model_copy(update={"reconcile_on_startup": reconcile})
    with domain_errors():
        service = ReleaseService.from_config(config)
    report = service.last_reconciliation
    if report is not None and report.mutations:
        console.print(
            f"[yellow]Startup reconciliation corrected {report.mutations} release(s).[/yellow]"
        )
    return service
