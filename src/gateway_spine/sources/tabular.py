"""
Tabular file reader/writer for provisioning input and failure records.

Supports:
- XLSX (openpyxl; worksheet chosen by 0-based index, first row is the header)
- CSV (comma-separated, first row is the header)

Design Principles:
- Blank cells are omitted from the record, so a record only carries the
  columns the operator actually filled in
- Fully blank rows are skipped
- Writing uses the union of record keys (first-seen order) as the header,
  so a failure record re-reads with the same columns plus the error column

Usage:
    from gateway_spine.sources.tabular import read_rows, write_rows

    records = read_rows("mashery.xlsx", sheet_index=0)
    write_rows("failed_apis.xlsx", failed, sheet_title="Failed APIs")
"""

from __future__ import annotations

import csv
from collections.abc import Iterable, Sequence
from enum import Enum
from pathlib import Path
from typing import Any

from openpyxl import Workbook, load_workbook

from gateway_spine.core.errors import SourceError, SourceNotFoundError
from gateway_spine.core.logging import get_logger

logger = get_logger(__name__)


class TableFormat(str, Enum):
    """Supported file formats."""

    XLSX = "xlsx"
    CSV = "csv"


EXTENSION_MAP = {
    ".xlsx": TableFormat.XLSX,
    ".xlsm": TableFormat.XLSX,
    ".csv": TableFormat.CSV,
}


def detect_format(path: str | Path) -> TableFormat:
    """Detect format from file extension."""
    ext = Path(path).suffix.lower()
    if ext in EXTENSION_MAP:
        return EXTENSION_MAP[ext]
    raise SourceError(f"Cannot detect table format for extension: {ext or '(none)'}").with_context(path=str(path))


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _records(header: Sequence[Any], rows: Iterable[Sequence[Any]]) -> list[dict[str, Any]]:
    columns = [str(name).strip() if not _is_blank(name) else None for name in header]
    records = []
    for row in rows:
        record = {
            column: value
            for column, value in zip(columns, row)
            if column is not None and not _is_blank(value)
        }
        if record:
            records.append(record)
    return records


def _read_xlsx(path: Path, sheet_index: int) -> list[dict[str, Any]]:
    workbook = load_workbook(filename=str(path), read_only=True, data_only=True)
    try:
        if sheet_index >= len(workbook.worksheets):
            raise SourceError(
                f"Sheet index {sheet_index} out of range; workbook has {len(workbook.worksheets)} sheet(s)"
            ).with_context(path=str(path))
        rows = workbook.worksheets[sheet_index].iter_rows(values_only=True)
        header = next(rows, None)
        if header is None:
            return []
        return _records(header, rows)
    finally:
        workbook.close()


def _read_csv(path: Path, encoding: str) -> list[dict[str, Any]]:
    with open(path, "r", encoding=encoding, newline="") as f:
        reader = csv.reader(f)
        header = next(reader, None)
        if header is None:
            return []
        return _records(header, reader)


def read_rows(path: str | Path, sheet_index: int = 0, *, encoding: str = "utf-8-sig") -> list[dict[str, Any]]:
    """
    Read every data row of a table as a dict keyed by header.

    Raises:
        SourceNotFoundError: the file does not exist
        SourceError: unknown extension, bad sheet index, or unreadable file
    """
    path = Path(path)
    table_format = detect_format(path)
    if not path.exists():
        raise SourceNotFoundError(f"File not found: {path}").with_context(path=str(path))

    try:
        match table_format:
            case TableFormat.XLSX:
                records = _read_xlsx(path, sheet_index)
            case TableFormat.CSV:
                records = _read_csv(path, encoding)
    except SourceError:
        raise
    except Exception as e:
        raise SourceError(f"Failed to read table: {path}: {e}", cause=e).with_context(path=str(path)) from e

    logger.info("table.read", path=str(path), sheet=sheet_index, rows=len(records))
    return records


def _header(rows: Sequence[dict[str, Any]]) -> list[str]:
    header: list[str] = []
    for row in rows:
        for key in row:
            if key not in header:
                header.append(key)
    return header


def _cell(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


def write_rows(path: str | Path, rows: Sequence[dict[str, Any]], *, sheet_title: str = "Sheet1") -> Path:
    """Write records to ``path`` (xlsx or csv), replacing any existing file."""
    path = Path(path)
    table_format = detect_format(path)
    header = _header(rows)
    if path.parent and not path.parent.exists():
        path.parent.mkdir(parents=True, exist_ok=True)

    match table_format:
        case TableFormat.XLSX:
            workbook = Workbook()
            sheet = workbook.active
            # Excel caps sheet titles at 31 characters.
            sheet.title = sheet_title[:31]
            sheet.append(header)
            for row in rows:
                sheet.append([_cell(row.get(column)) for column in header])
            workbook.save(str(path))
        case TableFormat.CSV:
            with open(path, "w", encoding="utf-8", newline="") as f:
                writer = csv.DictWriter(f, fieldnames=header)
                writer.writeheader()
                for row in rows:
                    writer.writerow({column: _cell(row.get(column)) for column in header})

    logger.info("table.written", path=str(path), rows=len(rows))
    return path


__all__ = ["TableFormat", "detect_format", "read_rows", "write_rows"]
