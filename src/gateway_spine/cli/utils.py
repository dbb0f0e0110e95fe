"""
CLI utility helpers: settings, client construction and output formatting.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from gateway_spine.client.apim import ApimResourceClient
from gateway_spine.client.protocol import ResourceClient
from gateway_spine.core.errors import BatchFatalError, GatewaySpineError
from gateway_spine.core.logging import configure_logging, shutdown_logging
from gateway_spine.core.models import ProvisioningOutcome
from gateway_spine.core.settings import GatewaySettings, get_settings

console = Console()
err_console = Console(stderr=True)

EXIT_FATAL = 2


# ── Settings & client ────────────────────────────────────────────────────


def load_settings(**overrides: Any) -> GatewaySettings:
    """Cached environment settings with CLI options applied on top."""
    updates = {key: value for key, value in overrides.items() if value is not None}
    settings = get_settings()
    return settings.model_copy(update=updates) if updates else settings


def make_client(settings: GatewaySettings) -> ResourceClient:
    """Build the management client.  Tests replace this with an in-memory double."""
    return ApimResourceClient(settings)


def close_client(client: ResourceClient) -> None:
    close = getattr(client, "close", None)
    if callable(close):
        close()


@contextmanager
def cli_session(settings: GatewaySettings, run_name: str) -> Iterator[ResourceClient]:
    """
    Logging + credentials + client for one command.

    ``BatchFatalError`` (and any other error that escapes the command) is
    printed and turned into exit code 2.
    """
    configure_logging(
        level=settings.log_level,
        format=settings.log_format,
        log_dir=settings.log_dir,
        run_name=run_name,
        force=True,
    )
    client: ResourceClient | None = None
    try:
        settings.require_credentials()
        client = make_client(settings)
        yield client
    except BatchFatalError as e:
        err_console.print(f"[bold red]Fatal:[/bold red] {escape(e.message)}")
        raise typer.Exit(code=EXIT_FATAL) from e
    except GatewaySpineError as e:
        err_console.print(f"[bold red]Error[/bold red] ({e.category.value}): {escape(e.message)}")
        raise typer.Exit(code=EXIT_FATAL) from e
    finally:
        if client is not None:
            close_client(client)
        shutdown_logging()


# ── Output helpers ───────────────────────────────────────────────────────


def print_outcomes(outcomes: Sequence[ProvisioningOutcome], *, title: str, show_all: bool = False) -> None:
    """Summary line plus a table of failed rows (all rows with ``show_all``)."""
    failed = [o for o in outcomes if not o.succeeded]
    warned = [o for o in outcomes if o.succeeded and o.warnings]
    console.print(
        f"[bold]{title}[/bold]: {len(outcomes)} row(s), "
        f"[green]{len(outcomes) - len(failed)} succeeded[/green], "
        f"[red]{len(failed)} failed[/red], "
        f"[yellow]{len(warned)} with warnings[/yellow]"
    )
    rows = list(outcomes) if show_all else failed
    if not rows:
        return

    table = Table(title=title, show_lines=False, pad_edge=False)
    table.add_column("Row", justify="right")
    table.add_column("API")
    table.add_column("Status")
    table.add_column("Step")
    table.add_column("Reason", overflow="fold")
    for outcome in rows:
        config = outcome.row_config
        row_number = str(config.row_number) if config and config.row_number is not None else "-"
        api = outcome.api_id or (config.api_display_name if config else "-")
        status = "[green]ok[/green]" if outcome.succeeded else "[red]failed[/red]"
        reason = outcome.error_message or "; ".join(outcome.warnings)
        table.add_row(row_number, escape(api), status, escape(outcome.failed_step or ""), escape(reason))
    console.print(table)


def print_counts(counts: dict[str, int], *, title: str) -> None:
    table = Table(title=title, show_header=False, pad_edge=False)
    table.add_column("key", style="cyan")
    table.add_column("value", justify="right")
    for key, value in counts.items():
        table.add_row(escape(key), str(value))
    console.print(table)


def print_artifact(path: Path | None) -> None:
    if path is not None:
        console.print(f"[yellow]Failed rows written to[/yellow] {escape(str(path))}")
