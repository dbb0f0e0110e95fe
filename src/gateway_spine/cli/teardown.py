"""
CLI: ``gateway-spine teardown``: delete every API or product.
"""

from __future__ import annotations

import typer

from gateway_spine.cli import utils
from gateway_spine.provisioning.maintenance import delete_all_apis, delete_all_products

app = typer.Typer(no_args_is_help=True)


def _confirm(yes: bool, what: str) -> None:
    if not yes:
        utils.err_console.print(f"[bold red]Refusing to delete all {what} without --yes.[/bold red]")
        raise typer.Exit(code=1)


@app.command("apis")
def teardown_apis(
    yes: bool = typer.Option(False, "--yes", help="Confirm deleting every API"),
    log_level: str | None = typer.Option(None, "--log-level"),
) -> None:
    """Delete every API of the service."""
    _confirm(yes, "APIs")
    settings = utils.load_settings(log_level=log_level)
    with utils.cli_session(settings, "teardown_apis") as client:
        summary = delete_all_apis(client)
    utils.print_counts(summary.to_dict(), title="APIs deleted")


@app.command("products")
def teardown_products(
    yes: bool = typer.Option(False, "--yes", help="Confirm deleting every product"),
    log_level: str | None = typer.Option(None, "--log-level"),
) -> None:
    """Delete every product of the service."""
    _confirm(yes, "products")
    settings = utils.load_settings(log_level=log_level)
    with utils.cli_session(settings, "teardown_products") as client:
        summary = delete_all_products(client)
    utils.print_counts(summary.to_dict(), title="Products deleted")
