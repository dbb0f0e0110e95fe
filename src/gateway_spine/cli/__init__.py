"""
CLI layer for gateway-spine.

Provides a Typer application whose commands read the input table, build the
management client, and delegate to ``gateway_spine.provisioning``.  This
package handles only terminal transport: argument parsing, coloured output
and summary tables.

Entry point::

    gateway-spine --help
"""

from gateway_spine.cli.app import app

__all__ = ["app"]
