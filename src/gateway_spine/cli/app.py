"""
Root Typer application for the gateway-spine CLI.

Commands::

    gateway-spine provision            create APIs, products, tags, operations, policies
    gateway-spine refresh-operations   re-apply operations and policies only
    gateway-spine sync-products        upsert products and label subscriptions by key
    gateway-spine import-keys          set subscription primary keys per product
    gateway-spine export-keys          key-store JSON export to a packageName/apikey table
    gateway-spine teardown apis|products --yes
    gateway-spine policy preview       print generated policies, no remote calls

Exit codes: 0 when the batch ran (row failures go to the failure record),
1 for usage errors, 2 when the run could not start.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as pkg_version
from pathlib import Path

import typer
from rich.markup import escape
from typer import Typer

from gateway_spine import __version__
from gateway_spine.cli import utils
from gateway_spine.cli.policy import app as policy_app
from gateway_spine.cli.teardown import app as teardown_app
from gateway_spine.core.errors import GatewaySpineError
from gateway_spine.core.logging import configure_logging, shutdown_logging
from gateway_spine.provisioning.batch import BatchOrchestrator
from gateway_spine.provisioning.failures import FailureRecorder
from gateway_spine.provisioning.maintenance import (
    export_key_rows,
    import_subscription_keys,
    load_key_export,
    sync_products,
)
from gateway_spine.provisioning.refresh import refresh_operations
from gateway_spine.provisioning.row import RowProvisioner
from gateway_spine.sources.mapping import map_rows
from gateway_spine.sources.tabular import read_rows, write_rows

app = Typer(
    name="gateway-spine",
    help="gateway-spine: provision API gateway resources from a workbook.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        try:
            v = pkg_version("gateway-spine")
        except PackageNotFoundError:
            v = __version__
        typer.echo(f"gateway-spine {v}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """gateway-spine CLI: provision, refresh, maintain and tear down gateway resources."""


# ------------------------------------------------------------------ #
# Provisioning
# ------------------------------------------------------------------ #


@app.command("provision")
def provision(
    input_path: Path | None = typer.Option(None, "--input", "-i", help="Input workbook or CSV"),
    sheet: int | None = typer.Option(None, "--sheet", "-s", min=0, help="0-based worksheet index"),
    failed_output: Path | None = typer.Option(None, "--failed-output", "-o", help="Failure record path"),
    log_level: str | None = typer.Option(None, "--log-level"),
    show_all: bool = typer.Option(False, "--all", help="List every row, not only failures"),
) -> None:
    """Provision every row of the input table."""
    settings = utils.load_settings(
        input_path=input_path,
        sheet_num=sheet,
        failed_path=failed_output,
        log_level=log_level,
    )
    with utils.cli_session(settings, "provision") as client:
        records = read_rows(settings.input_path, settings.sheet_num)
        configs, mapping_failures = map_rows(records)
        orchestrator = BatchOrchestrator(
            RowProvisioner.from_settings(client, settings),
            FailureRecorder(settings.failed_path, input_path=settings.input_path),
        )
        outcomes = orchestrator.run_batch(configs, prior_failures=mapping_failures)

    utils.print_outcomes(outcomes, title="Provisioning", show_all=show_all)
    utils.print_artifact(orchestrator.context.artifact if orchestrator.context else None)


@app.command("refresh-operations")
def refresh(
    input_path: Path | None = typer.Option(None, "--input", "-i", help="Input workbook or CSV"),
    sheet: int | None = typer.Option(None, "--sheet", "-s", min=0),
    failed_output: Path | None = typer.Option(None, "--failed-output", "-o"),
    wildcard: bool = typer.Option(True, "--wildcard/--no-wildcard", help="Append {*path} to open-ended paths"),
    log_level: str | None = typer.Option(None, "--log-level"),
) -> None:
    """Re-apply operations and policies to APIs that already exist."""
    settings = utils.load_settings(
        input_path=input_path,
        sheet_num=sheet,
        failed_operations_path=failed_output,
        log_level=log_level,
    )
    with utils.cli_session(settings, "refresh_operations") as client:
        records = read_rows(settings.input_path, settings.sheet_num)
        configs, mapping_failures = map_rows(records, require_service=False)
        recorder = FailureRecorder(
            settings.failed_operations_path,
            input_path=settings.input_path,
            sheet_title="Failed Operations",
        )
        outcomes = refresh_operations(
            configs,
            client,
            wildcard=wildcard,
            recorder=recorder,
            prior_failures=mapping_failures,
        )

    utils.print_outcomes(outcomes, title="Operation refresh")
    if any(not o.succeeded for o in outcomes):
        utils.print_artifact(recorder.output_path)


# ------------------------------------------------------------------ #
# Products & subscription keys
# ------------------------------------------------------------------ #


@app.command("sync-products")
def sync_products_command(
    input_path: Path | None = typer.Option(None, "--input", "-i", help="Workbook with packageName/apikey"),
    log_level: str | None = typer.Option(None, "--log-level"),
) -> None:
    """Upsert products and name each subscription after its product."""
    settings = utils.load_settings(keys_path=input_path, log_level=log_level)
    with utils.cli_session(settings, "sync_products") as client:
        summary = sync_products(read_rows(settings.keys_path), client)
    utils.print_counts(summary.to_dict(), title="Product sync")


@app.command("import-keys")
def import_keys_command(
    input_path: Path | None = typer.Option(None, "--input", "-i", help="Workbook with packageName/apikey"),
    log_level: str | None = typer.Option(None, "--log-level"),
) -> None:
    """Set the primary key of each product's subscription."""
    settings = utils.load_settings(keys_path=input_path, log_level=log_level)
    with utils.cli_session(settings, "import_keys") as client:
        summary = import_subscription_keys(read_rows(settings.keys_path), client)
    utils.print_counts(summary.to_dict(), title="Key import")


@app.command("export-keys")
def export_keys_command(
    json_path: Path = typer.Option(Path("api_key.json"), "--json", "-j", help="Key-store JSON export"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Table to write (default: KEYS_PATH)"),
) -> None:
    """Convert a key-store JSON export into the table import-keys reads. No remote calls."""
    settings = utils.load_settings(keys_path=output)
    configure_logging(
        level=settings.log_level,
        format=settings.log_format,
        log_dir=settings.log_dir,
        run_name="export_keys",
        force=True,
    )
    try:
        rows = export_key_rows(load_key_export(json_path))
        path = write_rows(settings.keys_path, rows, sheet_title="API Keys")
    except GatewaySpineError as e:
        utils.err_console.print(f"[bold red]Error[/bold red] ({e.category.value}): {escape(e.message)}")
        raise typer.Exit(code=1) from e
    finally:
        shutdown_logging()
    utils.console.print(f"[green]Wrote {len(rows)} key row(s) to[/green] {escape(str(path))}")


# ── Sub-command registration ─────────────────────────────────────────────

app.add_typer(teardown_app, name="teardown", help="Delete every API or product of the service.")
app.add_typer(policy_app, name="policy", help="Inspect generated policy documents.")
