"""
Structured error types for gateway-spine.

Every failure raised while provisioning carries enough metadata for the batch
orchestrator to decide what to do with it: abort the row, log and continue,
or abort the whole run before any row is touched.

Manifesto:
    - **Typed Error Hierarchy:** One class per failure tier, not ad-hoc strings
    - **Rich Context:** Errors carry row number, API id, step and HTTP details
    - **Error Chaining:** The original exception is kept as ``cause``
    - **Explicit Retry Semantics:** Remote 5xx/429 are marked retryable

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                     GatewaySpineError                            │
        │  (category, retryable, context, cause)                           │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  InvalidIdentitySource   RowMappingError     BatchFatalError     │
        │  (VALIDATION)            (VALIDATION)        (CONFIG)            │
        │                                                                  │
        │  ProvisioningError       ResourceClientError SourceError         │
        │  (PROVISIONING)          (REMOTE)            (SOURCE)            │
        │       │                       │                   │              │
        │  CriticalStepFailure     ResourceNotFound    SourceNotFound      │
        │  NonCriticalStepFailure                                          │
        └─────────────────────────────────────────────────────────────────┘

Guardrails:
    ❌ DON'T: Let a CriticalStepFailure escape the row provisioner
    ✅ DO: Convert it to a failed ProvisioningOutcome

    ❌ DON'T: Swallow the original exception
    ✅ DO: Pass it as cause= for error chaining

Tags:
    error-handling, exception-hierarchy, provisioning, gateway-spine

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """
    Standard error categories for classification and log routing.

    Categories are grouped by their typical handling:
    - **Input errors (fix the row):** VALIDATION, SOURCE
    - **Configuration (fix the environment):** CONFIG
    - **Remote errors (may be retried):** REMOTE
    - **Provisioning step errors:** PROVISIONING
    - **Internal errors:** INTERNAL
    """

    VALIDATION = "VALIDATION"  # Bad row data, unsanitizable names
    SOURCE = "SOURCE"  # Input file missing or unreadable
    CONFIG = "CONFIG"  # Missing credential or service identifier
    REMOTE = "REMOTE"  # Management API rejected or failed the call
    PROVISIONING = "PROVISIONING"  # A provisioning step failed
    INTERNAL = "INTERNAL"  # Bugs, unexpected state


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Attributes:
        row: 1-based data row number in the input table
        api_id: Sanitized API identity the row maps to
        step: Provisioning step name (e.g. ``upsert-api``)
        url: Management API URL that was being called
        http_status: HTTP status code if applicable
        metadata: Additional key-value pairs
    """

    row: int | None = None
    api_id: str | None = None
    step: str | None = None
    url: str | None = None
    http_status: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["row", "api_id", "step", "url", "http_status"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class GatewaySpineError(Exception):
    """
    Base exception for all gateway-spine errors.

    Subclasses set ``default_category`` and ``default_retryable`` so that
    call sites only pass what differs from the norm.

    Examples:
        >>> error = GatewaySpineError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.with_context(api_id="weather-api").context.api_id
        'weather-api'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> GatewaySpineError:
        """
        Add context to this error (fluent API).

        Usage:
            raise CriticalStepFailure("bind-gateway", "boom").with_context(api_id="orders")
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# INPUT ERRORS
# =============================================================================


class InvalidIdentitySource(GatewaySpineError):
    """
    Display name is empty (or blank) and cannot produce a resource identity.

    Callers treat this as a row-level error, never a crash.
    """

    default_category = ErrorCategory.VALIDATION

    def __init__(self, value: Any = None, message: str | None = None, **kwargs: Any):
        self.value = value
        super().__init__(message or f"Cannot derive a resource identity from {value!r}", **kwargs)


class RowMappingError(GatewaySpineError):
    """A tabular record is missing a required field or holds an unusable value."""

    default_category = ErrorCategory.VALIDATION

    def __init__(self, message: str, *, field: str | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.field = field

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.field:
            result["field"] = self.field
        return result


class SourceError(GatewaySpineError):
    """The input table could not be read."""

    default_category = ErrorCategory.SOURCE


class SourceNotFoundError(SourceError):
    """Input file does not exist."""


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class BatchFatalError(GatewaySpineError):
    """
    Aborts the entire run before any row is processed.

    Raised for missing credentials or service identifiers.
    """

    default_category = ErrorCategory.CONFIG


# =============================================================================
# REMOTE ERRORS
# =============================================================================


class ResourceClientError(GatewaySpineError):
    """
    The management API returned a non-success status or could not be reached.

    Retryable when the remote side is throttling (429) or failing (5xx).
    """

    default_category = ErrorCategory.REMOTE

    def __init__(
        self,
        message: str,
        *,
        http_status: int | None = None,
        url: str | None = None,
        body: str | None = None,
        **kwargs: Any,
    ):
        if "retryable" not in kwargs and http_status is not None:
            kwargs["retryable"] = http_status == 429 or http_status >= 500
        super().__init__(message, **kwargs)
        self.http_status = http_status
        self.body = body
        self.context.http_status = http_status
        self.context.url = url


class ResourceNotFoundError(ResourceClientError):
    """The addressed remote resource does not exist (HTTP 404)."""


# =============================================================================
# PROVISIONING ERRORS
# =============================================================================


class ProvisioningError(GatewaySpineError):
    """A provisioning step failed."""

    default_category = ErrorCategory.PROVISIONING

    def __init__(self, step: str, message: str, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.step = step
        self.context.step = step


class CriticalStepFailure(ProvisioningError):
    """
    API creation, header update, gateway bind/unbind, or every product
    assignment failed. Aborts the current row only.
    """


class NonCriticalStepFailure(ProvisioningError):
    """A single tag or operation/policy failed. Logged, never aborts the row."""


def describe_error(error: BaseException) -> str:
    """One-line reason suitable for the failure record."""
    if isinstance(error, ResourceClientError) and error.http_status is not None:
        return f"{error.message} (HTTP {error.http_status})"
    if isinstance(error, GatewaySpineError):
        return error.message
    return str(error) or error.__class__.__name__


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "GatewaySpineError",
    "InvalidIdentitySource",
    "RowMappingError",
    "SourceError",
    "SourceNotFoundError",
    "BatchFatalError",
    "ResourceClientError",
    "ResourceNotFoundError",
    "ProvisioningError",
    "CriticalStepFailure",
    "NonCriticalStepFailure",
    "describe_error",
]
