"""Step Result: uniform envelope for provisioning step outcomes.

Manifesto:
    A row is provisioned by a fixed sequence of steps with two severity
    tiers.  Instead of leaning on nested try/except blocks to decide which
    failures abort a row, every step returns a ``StepResult`` and the
    ``RowReport`` aggregates them.  Whether a row aborted is then a question
    you can ask the report, and test.

ARCHITECTURE
────────────
::

    StepResult
      ├── .ok(step, severity, target, output)     → success
      ├── .fail(step, severity, error, target)    → failure with reason
      └── .skip(step, severity, reason)           → no-op success

    StepSeverity ── CRITICAL       failure aborts the row's remaining setup
                    NON_CRITICAL   failure is logged, siblings still run

    RowReport
      ├── .add(result)
      ├── .aborted / .critical_failure
      ├── .warnings                 → non-critical failures
      └── .to_outcome()             → ProvisioningOutcome

    run_step(step, severity, fn)  executes fn, converts any exception to
                                  StepResult.fail; nothing escapes it

Related modules:
    row.py     - RowProvisioner produces StepResults per step
    batch.py   - BatchOrchestrator turns RowReports into outcomes

Tags:
    gateway-spine, provisioning, step-result, envelope, success-failure

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from gateway_spine.core.errors import (
    CriticalStepFailure,
    ErrorCategory,
    GatewaySpineError,
    NonCriticalStepFailure,
    describe_error,
)
from gateway_spine.core.logging import get_logger
from gateway_spine.core.models import ProvisioningOutcome, RowConfig

logger = get_logger(__name__)


class StepSeverity(str, Enum):
    """Severity tier of a provisioning step."""

    CRITICAL = "critical"
    NON_CRITICAL = "non_critical"


class StepStatus(str, Enum):
    OK = "ok"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class StepResult:
    """
    Result of one provisioning step.

    Attributes:
        step: Step name (``upsert-api``, ``apply-policy``, ...)
        severity: Tier deciding whether a failure aborts the row
        status: ok, failed or skipped
        target: Resource the step acted on (product id, operation id, ...)
        error: Error message if status is failed
        error_category: Category of the error for log routing
        output: Data produced by the step (e.g. the resolved api_id)
    """

    step: str
    severity: StepSeverity
    status: StepStatus
    target: str | None = None
    error: str | None = None
    error_category: str | None = None
    output: dict[str, Any] = field(default_factory=dict)

    # =========================================================================
    # Factories
    # =========================================================================

    @classmethod
    def ok(
        cls,
        step: str,
        severity: StepSeverity,
        *,
        target: str | None = None,
        output: dict[str, Any] | None = None,
    ) -> StepResult:
        return cls(step=step, severity=severity, status=StepStatus.OK, target=target, output=output or {})

    @classmethod
    def fail(
        cls,
        step: str,
        severity: StepSeverity,
        error: str,
        *,
        target: str | None = None,
        category: ErrorCategory | str = ErrorCategory.PROVISIONING,
    ) -> StepResult:
        if isinstance(category, ErrorCategory):
            category = category.value
        return cls(
            step=step,
            severity=severity,
            status=StepStatus.FAILED,
            target=target,
            error=error or "Step failed without error message",
            error_category=category,
        )

    @classmethod
    def skip(cls, step: str, severity: StepSeverity, reason: str, *, target: str | None = None) -> StepResult:
        """Success, but no work done (e.g. API already set up earlier in the batch)."""
        return cls(
            step=step,
            severity=severity,
            status=StepStatus.SKIPPED,
            target=target,
            output={"skip_reason": reason},
        )

    # =========================================================================
    # Queries
    # =========================================================================

    @property
    def success(self) -> bool:
        return self.status is not StepStatus.FAILED

    @property
    def is_critical_failure(self) -> bool:
        return self.status is StepStatus.FAILED and self.severity is StepSeverity.CRITICAL

    def describe(self) -> str:
        label = f"{self.step}[{self.target}]" if self.target else self.step
        return f"{label}: {self.error}" if self.error else label

    def to_dict(self) -> dict[str, Any]:
        """Serialize for logging."""
        result: dict[str, Any] = {
            "step": self.step,
            "severity": self.severity.value,
            "status": self.status.value,
        }
        if self.target:
            result["target"] = self.target
        if self.error:
            result["error"] = self.error
        if self.error_category:
            result["error_category"] = self.error_category
        if self.output:
            result["output"] = self.output
        return result

    def __repr__(self) -> str:
        return f"StepResult({self.step}, {self.status.value}, target={self.target!r})"


def run_step(
    step: str,
    severity: StepSeverity,
    fn: Callable[[], Any],
    *,
    target: str | None = None,
) -> StepResult:
    """
    Execute ``fn`` as one step and convert its outcome to a ``StepResult``.

    A dict returned by ``fn`` becomes the step output. Any exception becomes
    a failed result. The failure is logged here at ERROR for both tiers,
    with the tier in the ``severity`` field.
    """
    try:
        value = fn()
    except Exception as exc:  # noqa: BLE001 - step isolation, the result carries the failure
        category = exc.category if isinstance(exc, GatewaySpineError) else ErrorCategory.INTERNAL
        message = describe_error(exc)
        if severity is StepSeverity.CRITICAL:
            failure: GatewaySpineError = CriticalStepFailure(step, message, cause=exc)
        else:
            failure = NonCriticalStepFailure(step, message, cause=exc)
        if target:
            failure.with_context(target=target)
        logger.error("step.failed", severity=severity.value, **failure.to_dict())
        return StepResult.fail(step, severity, message, target=target, category=category)
    output = value if isinstance(value, dict) else {}
    return StepResult.ok(step, severity, target=target, output=output)


@dataclass
class RowReport:
    """Every StepResult of one row, in execution order."""

    config: RowConfig
    api_id: str | None = None
    setup_ran: bool = False
    steps: list[StepResult] = field(default_factory=list)

    def add(self, result: StepResult) -> StepResult:
        self.steps.append(result)
        return result

    @property
    def critical_failure(self) -> StepResult | None:
        for result in self.steps:
            if result.is_critical_failure:
                return result
        return None

    @property
    def aborted(self) -> bool:
        return self.critical_failure is not None

    @property
    def warnings(self) -> list[StepResult]:
        return [r for r in self.steps if r.status is StepStatus.FAILED and r.severity is StepSeverity.NON_CRITICAL]

    def results_for(self, step: str) -> list[StepResult]:
        return [r for r in self.steps if r.step == step]

    def to_outcome(self) -> ProvisioningOutcome:
        failure = self.critical_failure
        if failure is not None:
            return ProvisioningOutcome.failure(self.config, failure.step, failure.error or "", api_id=self.api_id)
        return ProvisioningOutcome.success(
            self.config,
            self.api_id or "",
            warnings=tuple(r.describe() for r in self.warnings),
        )


__all__ = [
    "StepSeverity",
    "StepStatus",
    "StepResult",
    "RowReport",
    "run_step",
]
