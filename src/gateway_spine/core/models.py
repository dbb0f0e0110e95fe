"""
Typed records for the provisioning pipeline.

``RowConfig`` is produced once, at the boundary with the tabular loader, and
is immutable afterwards. ``ProvisioningOutcome`` is produced once per row by
the batch orchestrator and is terminal.

Tags:
    models, dataclasses, provisioning, gateway-spine

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class RateLimitPeriod(str, Enum):
    """Quota window. ``UNKNOWN`` covers blank or unrecognised input."""

    MINUTE = "minute"
    HOUR = "hour"
    DAY = "day"
    UNKNOWN = ""

    @classmethod
    def parse(cls, value: Any) -> RateLimitPeriod:
        text = str(value or "").strip().lower()
        for member in cls:
            if member.value and member.value == text:
                return member
        return cls.UNKNOWN


PERIOD_SECONDS: dict[RateLimitPeriod, int] = {
    RateLimitPeriod.MINUTE: 60,
    RateLimitPeriod.HOUR: 3600,
    RateLimitPeriod.DAY: 86400,
}


@dataclass(frozen=True)
class RateLimit:
    """Call ceiling per period (the quota half of a row's limits)."""

    ceiling: int = 0
    period: RateLimitPeriod = RateLimitPeriod.UNKNOWN

    @property
    def period_seconds(self) -> int:
        """Window length in seconds; 0 for an unknown period."""
        return PERIOD_SECONDS.get(self.period, 0)


@dataclass(frozen=True)
class RowConfig:
    """
    One declarative unit of desired gateway state.

    Attributes:
        api_display_name: Display name; its sanitized form is the API identity
        url_path_suffix: Public path of the API on the gateway (no leading ``/``)
        service_protocol: Backend scheme (``https``/``http``)
        service_host: Backend host, used to build the service URL
        endpoint_name: Name of the endpoint; keys the operation identities
        http_methods: Methods to expose, upper-case, in declaration order
        operation_path_template: URL template, may contain ``{param}`` segments
        outbound_rewrite_target: Backend path the policy rewrites to
        auth_key_header_name: Header carrying the subscription key
        rate_limit: Quota ceiling and period
        qps_limit: Per-second call ceiling
        organization_tag: Owning organisation, always applied as a tag
        product_names: Products the API belongs to, in declaration order
        tags: Every tag display name to apply (domains and organisation)
        row_number: 1-based data row in the input table
        source_record: Original tabular record, written back on failure
    """

    api_display_name: str
    url_path_suffix: str = ""
    service_protocol: str = "https"
    service_host: str = ""
    description: str = ""
    endpoint_name: str = ""
    http_methods: tuple[str, ...] = ("GET",)
    operation_path_template: str = "/"
    outbound_rewrite_target: str | None = None
    auth_key_header_name: str = "Ocp-Apim-Subscription-Key"
    rate_limit: RateLimit = field(default_factory=RateLimit)
    qps_limit: int = 0
    organization_tag: str | None = None
    product_names: tuple[str, ...] = ("Default Product",)
    tags: tuple[str, ...] = ()
    row_number: int | None = None
    source_record: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @property
    def service_url(self) -> str:
        host = self.service_host.rstrip("/")
        return f"{self.service_protocol}://{host}"


@dataclass(frozen=True)
class TemplateParameter:
    """A ``{name}`` segment of an operation URL template."""

    name: str
    required: bool = True
    type: str = "string"
    description: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type,
            "required": self.required,
            "description": self.description or self.name,
        }


@dataclass(frozen=True)
class OperationSpec:
    """Desired state of one API operation (one HTTP method of an endpoint)."""

    operation_id: str
    display_name: str
    method: str
    url_template: str
    template_parameters: tuple[TemplateParameter, ...] = ()

    def to_properties(self) -> dict[str, Any]:
        properties: dict[str, Any] = {
            "displayName": self.display_name,
            "method": self.method,
            "urlTemplate": self.url_template,
            "responses": [{"statusCode": 200, "description": "OK"}],
        }
        if self.template_parameters:
            properties["templateParameters"] = [p.to_dict() for p in self.template_parameters]
        return properties


@dataclass(frozen=True)
class ProvisioningOutcome:
    """Terminal result of running one row."""

    row_config: RowConfig | None
    succeeded: bool
    failed_step: str | None = None
    error_message: str | None = None
    api_id: str | None = None
    source_record: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)
    warnings: tuple[str, ...] = ()

    @classmethod
    def success(cls, config: RowConfig, api_id: str, warnings: tuple[str, ...] = ()) -> ProvisioningOutcome:
        return cls(
            row_config=config,
            succeeded=True,
            api_id=api_id,
            source_record=config.source_record,
            warnings=warnings,
        )

    @classmethod
    def failure(
        cls,
        config: RowConfig | None,
        step: str,
        message: str,
        *,
        api_id: str | None = None,
        source_record: dict[str, Any] | None = None,
    ) -> ProvisioningOutcome:
        record = source_record if source_record is not None else (config.source_record if config else {})
        return cls(
            row_config=config,
            succeeded=False,
            failed_step=step,
            error_message=message,
            api_id=api_id,
            source_record=record,
        )


__all__ = [
    "RateLimitPeriod",
    "PERIOD_SECONDS",
    "RateLimit",
    "RowConfig",
    "TemplateParameter",
    "OperationSpec",
    "ProvisioningOutcome",
]
