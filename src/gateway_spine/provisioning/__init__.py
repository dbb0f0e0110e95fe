"""
Provisioning core: per-row step sequence, batch orchestration, failure
recording, plus the operation refresh and maintenance tools.
"""

from gateway_spine.provisioning.batch import BatchContext, BatchOrchestrator
from gateway_spine.provisioning.failures import ERROR_COLUMN, FailureRecorder
from gateway_spine.provisioning.maintenance import (
    delete_all_apis,
    delete_all_products,
    import_subscription_keys,
    sync_products,
)
from gateway_spine.provisioning.operations import build_operation_spec
from gateway_spine.provisioning.refresh import refresh_operations
from gateway_spine.provisioning.row import RowProvisioner
from gateway_spine.provisioning.step_result import RowReport, StepResult, StepSeverity, StepStatus

__all__ = [
    "BatchContext",
    "BatchOrchestrator",
    "ERROR_COLUMN",
    "FailureRecorder",
    "RowProvisioner",
    "RowReport",
    "StepResult",
    "StepSeverity",
    "StepStatus",
    "build_operation_spec",
    "refresh_operations",
    "sync_products",
    "import_subscription_keys",
    "delete_all_apis",
    "delete_all_products",
]
