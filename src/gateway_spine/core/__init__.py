"""Gateway Spine Core -- domain primitives shared by every command.

Architecture::

    errors.py      Structured error hierarchy (GatewaySpineError and tiers)
    identity.py    Display name -> canonical resource identity
    models.py      RowConfig, RateLimit, ProvisioningOutcome
    settings.py    Environment-driven GatewaySettings
    logging.py     structlog configuration, stdout/stderr + append-only files
"""

from gateway_spine.core.errors import (
    BatchFatalError,
    CriticalStepFailure,
    ErrorCategory,
    ErrorContext,
    GatewaySpineError,
    InvalidIdentitySource,
    NonCriticalStepFailure,
    ResourceClientError,
    ResourceNotFoundError,
    RowMappingError,
    SourceError,
    SourceNotFoundError,
)
from gateway_spine.core.identity import derive_identity, sanitize
from gateway_spine.core.models import (
    PERIOD_SECONDS,
    ProvisioningOutcome,
    RateLimit,
    RateLimitPeriod,
    OperationSpec,
    RowConfig,
    TemplateParameter,
)

__all__ = [
    "BatchFatalError",
    "CriticalStepFailure",
    "ErrorCategory",
    "ErrorContext",
    "GatewaySpineError",
    "InvalidIdentitySource",
    "NonCriticalStepFailure",
    "ResourceClientError",
    "ResourceNotFoundError",
    "RowMappingError",
    "SourceError",
    "SourceNotFoundError",
    "derive_identity",
    "sanitize",
    "PERIOD_SECONDS",
    "ProvisioningOutcome",
    "RateLimit",
    "RateLimitPeriod",
    "OperationSpec",
    "RowConfig",
    "TemplateParameter",
]
