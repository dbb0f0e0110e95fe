"""
Operation refresh: re-apply operations and policies to existing APIs.

No API, gateway, product or tag calls are made; only the per-method
operation and policy steps run. Since those steps are the whole job here, a
row counts as failed when any of its operations or policies failed, so the
failure record lists every row worth re-running.

Wildcard mode (the default) appends a ``{*path}`` catch-all to operation
paths that are ``/`` or end in ``/`` and rewrites to
``rewriteBase + <matched path>``.
"""

from __future__ import annotations

from collections.abc import Sequence

from gateway_spine.client.protocol import ResourceClient
from gateway_spine.core.identity import derive_identity
from gateway_spine.core.logging import LogContext, get_logger
from gateway_spine.core.models import ProvisioningOutcome, RowConfig
from gateway_spine.provisioning.failures import FailureRecorder
from gateway_spine.provisioning.row import STEP_SANITIZE, RowProvisioner
from gateway_spine.provisioning.step_result import RowReport, StepSeverity, run_step

logger = get_logger(__name__)


def refresh_row(provisioner: RowProvisioner, config: RowConfig) -> ProvisioningOutcome:
    report = RowReport(config)
    identity = report.add(
        run_step(STEP_SANITIZE, StepSeverity.CRITICAL, lambda: {"api_id": derive_identity(config.api_display_name)})
    )
    if not identity.success:
        return report.to_outcome()

    report.api_id = identity.output["api_id"]
    provisioner.provision_operations(config, report.api_id, report)
    if report.warnings:
        first = report.warnings[0]
        message = "; ".join(r.describe() for r in report.warnings)
        return ProvisioningOutcome.failure(config, first.step, message, api_id=report.api_id)
    return report.to_outcome()


def refresh_operations(
    configs: Sequence[RowConfig],
    client: ResourceClient,
    *,
    wildcard: bool = True,
    recorder: FailureRecorder | None = None,
    prior_failures: Sequence[ProvisioningOutcome] = (),
) -> list[ProvisioningOutcome]:
    """Re-apply operations and policies for every row, in order."""
    provisioner = RowProvisioner(client, wildcard=wildcard)
    outcomes: list[ProvisioningOutcome] = list(prior_failures)
    logger.info("refresh.started", rows=len(configs), wildcard=wildcard)

    for config in configs:
        with LogContext(row=config.row_number, api=config.api_display_name):
            outcome = refresh_row(provisioner, config)
            if not outcome.succeeded:
                logger.error("refresh.row_failed", step=outcome.failed_step, error=outcome.error_message)
            outcomes.append(outcome)

    if recorder is not None:
        recorder.record(outcomes)
    logger.info(
        "refresh.completed",
        rows=len(outcomes),
        failed=sum(1 for o in outcomes if not o.succeeded),
    )
    return outcomes


__all__ = ["refresh_operations", "refresh_row"]
