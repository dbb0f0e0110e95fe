"""Tabular input: file reading/writing and record → RowConfig mapping."""

from gateway_spine.sources.mapping import map_row, map_rows
from gateway_spine.sources.tabular import read_rows, write_rows

__all__ = ["map_row", "map_rows", "read_rows", "write_rows"]
