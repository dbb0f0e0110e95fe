"""Batch Orchestrator: run every row in order, contain failures, record them.

Manifesto:
    The batch must always attempt every row.  A row whose critical block
    fails becomes a failed outcome and the loop moves on; nothing a single
    row does can stop the batch.  Order matters: the first row for an API
    identity sets the API up, later rows for the same identity only add
    their operations.

    All run state (the dedup set, the outcomes, the failures) lives in a
    ``BatchContext`` built fresh for each run.  Nothing is module-level,
    so two runs in one process never see each other's state.

ARCHITECTURE
────────────
::

    BatchOrchestrator.run_batch(configs)
      │
      ├── context = BatchContext()               fresh per run
      ├── for config in configs (input order):
      │     with LogContext(row=..., api=...):
      │       report = provisioner.run_row(config, context.is_provisioned)
      │       report.aborted?  → context.fail(outcome)
      │       else            → context.mark_provisioned(api_id) if setup ran
      │
      └── recorder.record(context.outcomes)      no-op when nothing failed

Tags:
    gateway-spine, provisioning, batch, dedup, failure-containment

Doc-Types:
    api-reference
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from gateway_spine.core.logging import LogContext, get_logger
from gateway_spine.core.models import ProvisioningOutcome, RowConfig
from gateway_spine.provisioning.failures import FailureRecorder
from gateway_spine.provisioning.row import RowProvisioner

logger = get_logger(__name__)


@dataclass
class BatchContext:
    """Mutable state of one batch run."""

    provisioned: set[str] = field(default_factory=set)
    outcomes: list[ProvisioningOutcome] = field(default_factory=list)
    failures: list[ProvisioningOutcome] = field(default_factory=list)
    artifact: Path | None = None

    def is_provisioned(self, api_id: str) -> bool:
        return api_id in self.provisioned

    def mark_provisioned(self, api_id: str) -> None:
        self.provisioned.add(api_id)

    def add(self, outcome: ProvisioningOutcome) -> None:
        self.outcomes.append(outcome)
        if not outcome.succeeded:
            self.failures.append(outcome)

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.succeeded)

    @property
    def failed(self) -> int:
        return len(self.failures)


class BatchOrchestrator:
    """Drives a :class:`RowProvisioner` over an ordered sequence of rows."""

    def __init__(self, provisioner: RowProvisioner, recorder: FailureRecorder | None = None):
        self.provisioner = provisioner
        self.recorder = recorder
        self.context: BatchContext | None = None

    def run_batch(
        self,
        configs: Sequence[RowConfig],
        *,
        prior_failures: Sequence[ProvisioningOutcome] = (),
    ) -> list[ProvisioningOutcome]:
        """
        Provision ``configs`` in order and return one outcome per row.

        ``prior_failures`` (rows that failed before provisioning, e.g. in
        the mapper) are reported and recorded together with this run's
        failures. The context of the run stays available as ``self.context``.
        """
        context = BatchContext()
        self.context = context
        for outcome in prior_failures:
            context.add(outcome)

        started = time.perf_counter()
        logger.info("batch.started", rows=len(configs))

        for config in configs:
            with LogContext(row=config.row_number, api=config.api_display_name):
                context.add(self._run_one(context, config))

        if self.recorder is not None:
            context.artifact = self.recorder.record(context.outcomes)

        logger.info(
            "batch.completed",
            rows=len(context.outcomes),
            succeeded=context.succeeded,
            failed=context.failed,
            apis=len(context.provisioned),
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        return list(context.outcomes)

    def _run_one(self, context: BatchContext, config: RowConfig) -> ProvisioningOutcome:
        report = self.provisioner.run_row(config, context.is_provisioned)
        outcome = report.to_outcome()
        if not outcome.succeeded:
            logger.error("row.failed", api_id=report.api_id, step=outcome.failed_step, error=outcome.error_message)
            return outcome

        if report.setup_ran and report.api_id:
            context.mark_provisioned(report.api_id)
        if outcome.warnings:
            logger.warning("row.completed_with_warnings", api_id=outcome.api_id, warnings=list(outcome.warnings))
        else:
            logger.info("row.completed", api_id=outcome.api_id)
        return outcome


__all__ = ["BatchContext", "BatchOrchestrator"]
