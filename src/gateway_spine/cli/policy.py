"""
CLI: ``gateway-spine policy``: inspect generated policy documents.

Runs entirely offline: no credentials, no management calls.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.markup import escape

from gateway_spine.cli import utils
from gateway_spine.core.errors import GatewaySpineError
from gateway_spine.core.identity import derive_identity
from gateway_spine.policy.templates import build_policy
from gateway_spine.provisioning.operations import build_operation_spec
from gateway_spine.sources.mapping import map_row
from gateway_spine.sources.tabular import read_rows

app = typer.Typer(no_args_is_help=True)


@app.command("preview")
def preview(
    row: int = typer.Option(1, "--row", "-r", min=1, help="1-based data row"),
    input_path: Path | None = typer.Option(None, "--input", "-i", help="Input workbook or CSV"),
    sheet: int | None = typer.Option(None, "--sheet", "-s", min=0),
    wildcard: bool = typer.Option(False, "--wildcard", help="Preview the refresh-operations variant"),
) -> None:
    """Print the operations and policy documents one row would produce."""
    settings = utils.load_settings(input_path=input_path, sheet_num=sheet)
    try:
        records = read_rows(settings.input_path, settings.sheet_num)
        if row > len(records):
            utils.err_console.print(f"[bold red]Row {row} out of range;[/bold red] table has {len(records)} row(s).")
            raise typer.Exit(code=1)
        config = map_row(records[row - 1], row, require_service=False)
        api_id = derive_identity(config.api_display_name)
        specs = [build_operation_spec(config, method, wildcard=wildcard) for method in config.http_methods]
    except GatewaySpineError as e:
        utils.err_console.print(f"[bold red]Error[/bold red] ({e.category.value}): {escape(e.message)}")
        raise typer.Exit(code=1) from e

    utils.console.print(f"[bold]API[/bold] {api_id} ({escape(config.api_display_name)})")
    for spec in specs:
        document = build_policy(config, api_id=api_id, operation_id=spec.operation_id, wildcard=wildcard)
        params = ", ".join(p.name for p in spec.template_parameters) or "-"
        detail = escape(f"{spec.operation_id}  template={spec.url_template}  params={params}")
        utils.console.print(
            f"\n[cyan]{escape(spec.method)}[/cyan] {detail}",
            markup=True,
            highlight=False,
        )
        typer.echo(document.to_xml())
