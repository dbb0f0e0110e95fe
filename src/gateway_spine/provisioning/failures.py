"""
Failure Recorder: write failed rows to a retry-ready table.

Each failed outcome becomes one row holding the original record's fields
plus an ``_error`` column (``<step>: <reason>``). The mapper ignores
unknown columns, so the artifact can be fed straight back in as input once
the cause is fixed. A stale ``_error`` from an earlier run is replaced, not
duplicated.

The recorder never writes over its input table: if the configured output
path is the input path, ``<stem>_failed<suffix>`` is used instead.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Any

from gateway_spine.core.logging import get_logger
from gateway_spine.core.models import ProvisioningOutcome
from gateway_spine.sources.tabular import detect_format, write_rows

logger = get_logger(__name__)

ERROR_COLUMN = "_error"


def failure_row(outcome: ProvisioningOutcome) -> dict[str, Any]:
    row = {key: value for key, value in outcome.source_record.items() if key != ERROR_COLUMN}
    reason = outcome.error_message or "unknown error"
    row[ERROR_COLUMN] = f"{outcome.failed_step}: {reason}" if outcome.failed_step else reason
    return row


def _same_file(a: Path, b: Path) -> bool:
    return a.expanduser().resolve() == b.expanduser().resolve()


class FailureRecorder:
    """
    Writes failed outcomes to ``output_path`` (xlsx or csv).

    Raises:
        SourceError: ``output_path`` has an extension no table writer supports.
    """

    def __init__(
        self,
        output_path: str | Path,
        *,
        input_path: str | Path | None = None,
        sheet_title: str = "Failed APIs",
    ):
        self.input_path = Path(input_path) if input_path is not None else None
        self.output_path = self._safe_output(Path(output_path))
        detect_format(self.output_path)
        self.sheet_title = sheet_title

    def _safe_output(self, output: Path) -> Path:
        if self.input_path is not None and _same_file(output, self.input_path):
            derived = output.with_name(f"{output.stem}_failed{output.suffix}")
            logger.warning("failures.output_redirected", requested=str(output), path=str(derived))
            return derived
        return output

    def record(self, outcomes: Sequence[ProvisioningOutcome]) -> Path | None:
        """
        Write every failed outcome; returns the artifact path, or None when
        nothing failed (no file is created or touched in that case).
        """
        failed = [o for o in outcomes if not o.succeeded]
        if not failed:
            logger.info("failures.none")
            return None
        path = write_rows(self.output_path, [failure_row(o) for o in failed], sheet_title=self.sheet_title)
        logger.warning("failures.recorded", path=str(path), count=len(failed))
        return path


__all__ = ["ERROR_COLUMN", "FailureRecorder", "failure_row"]
