"""
Map raw tabular records to typed ``RowConfig`` objects.

This is the only place that knows the workbook's column names. Required
fields are validated here so that the provisioning core never has to
second-guess its input.

Column → field
──────────────
    APIName                    api_display_name          (required)
    urlSuffix                  url_path_suffix           leading "/" removed
    outboundTransportProtocol  service_protocol          default "https"
    systemDomains              service_host              first entry (required)
    description                description
    EndpointName               endpoint_name             default APIName
    supportedHttpMethods       http_methods              "GET, post" → ("GET", "POST")
    operationPath              operation_path_template   default "/"
    outboundRequestTargetPath  outbound_rewrite_target
    apiKeyValueLocationKey     auth_key_header_name
    rateLimitCeiling           rate_limit.ceiling
    rateLimitPeriod            rate_limit.period         unknown → RateLimitPeriod.UNKNOWN
    qpsLimitCeiling            qps_limit
    Organization               organization_tag
    packageName                product_names             "A, B; C" → ("A", "B", "C")
    publicDomains/systemDomains + Organization → tags

Rows that cannot be mapped become failed outcomes (step ``map-row``) and are
written to the failure record with their original fields.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from typing import Any

from gateway_spine.core.errors import RowMappingError
from gateway_spine.core.logging import get_logger
from gateway_spine.core.models import ProvisioningOutcome, RateLimit, RateLimitPeriod, RowConfig

logger = get_logger(__name__)

MAP_STEP = "map-row"
DEFAULT_PRODUCT = "Default Product"
DEFAULT_KEY_HEADER = "Ocp-Apim-Subscription-Key"

_LIST_SPLIT = re.compile(r"[,;]")
_DOMAIN_LABEL = re.compile(r"^([a-zA-Z0-9-]+)\.")


def _text(record: dict[str, Any], column: str) -> str:
    value = record.get(column)
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def _int(record: dict[str, Any], column: str) -> int:
    value = record.get(column)
    if value is None or (isinstance(value, str) and not value.strip()):
        return 0
    if isinstance(value, bool):
        raise RowMappingError(f"{column} must be a number, got {value!r}", field=column)
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError) as e:
        raise RowMappingError(f"{column} must be a finite number, got {value!r}", field=column, cause=e) from e


def _ordered_unique(values: Iterable[str]) -> tuple[str, ...]:
    seen: list[str] = []
    for value in values:
        if value and value not in seen:
            seen.append(value)
    return tuple(seen)


def split_list(value: str) -> list[str]:
    return [item.strip() for item in _LIST_SPLIT.split(value) if item.strip()]


def parse_methods(value: str) -> tuple[str, ...]:
    methods = _ordered_unique(m.strip().upper() for m in value.split(","))
    return methods or ("GET",)


def extract_domain_tags(record: dict[str, Any]) -> tuple[str, ...]:
    """First DNS label of every public/system domain, then the organisation."""
    tags: list[str] = []
    for column in ("publicDomains", "systemDomains"):
        for domain in _text(record, column).split(","):
            match = _DOMAIN_LABEL.match(domain.strip())
            if match:
                tags.append(match.group(1))
    organization = _text(record, "Organization")
    if organization:
        tags.append(organization)
    return _ordered_unique(tags)


def map_row(record: dict[str, Any], row_number: int | None = None, *, require_service: bool = True) -> RowConfig:
    """
    Build a ``RowConfig`` from one raw record.

    Raises:
        RowMappingError: ``APIName`` is blank, ``systemDomains`` is blank
            while ``require_service`` is set, or a numeric column is not a number.
    """
    api_name = _text(record, "APIName")
    if not api_name:
        raise RowMappingError("APIName is required", field="APIName").with_context(row=row_number)

    system_domains = split_list(_text(record, "systemDomains"))
    if require_service and not system_domains:
        raise RowMappingError("systemDomains is required", field="systemDomains").with_context(row=row_number)

    try:
        ceiling = _int(record, "rateLimitCeiling")
        qps = _int(record, "qpsLimitCeiling")
    except RowMappingError as e:
        raise e.with_context(row=row_number)

    organization = _text(record, "Organization") or None
    products = _ordered_unique(split_list(_text(record, "packageName"))) or (DEFAULT_PRODUCT,)

    return RowConfig(
        api_display_name=api_name,
        url_path_suffix=_text(record, "urlSuffix").lstrip("/"),
        service_protocol=(_text(record, "outboundTransportProtocol") or "https").lower(),
        service_host=system_domains[0] if system_domains else "",
        description=_text(record, "description"),
        endpoint_name=_text(record, "EndpointName") or api_name,
        http_methods=parse_methods(_text(record, "supportedHttpMethods")),
        operation_path_template=_text(record, "operationPath") or "/",
        outbound_rewrite_target=_text(record, "outboundRequestTargetPath") or None,
        auth_key_header_name=_text(record, "apiKeyValueLocationKey") or DEFAULT_KEY_HEADER,
        rate_limit=RateLimit(ceiling=ceiling, period=RateLimitPeriod.parse(record.get("rateLimitPeriod"))),
        qps_limit=qps,
        organization_tag=organization,
        product_names=products,
        tags=extract_domain_tags(record),
        row_number=row_number,
        source_record=dict(record),
    )


def map_rows(
    records: Sequence[dict[str, Any]],
    *,
    require_service: bool = True,
) -> tuple[list[RowConfig], list[ProvisioningOutcome]]:
    """Map every record; unmappable ones come back as failed outcomes."""
    configs: list[RowConfig] = []
    failures: list[ProvisioningOutcome] = []
    for index, record in enumerate(records, start=1):
        try:
            configs.append(map_row(record, index, require_service=require_service))
        except RowMappingError as e:
            logger.error("row.unmappable", row=index, field=e.field, error=e.message)
            failures.append(ProvisioningOutcome.failure(None, MAP_STEP, e.message, source_record=dict(record)))
    return configs, failures


__all__ = [
    "MAP_STEP",
    "DEFAULT_PRODUCT",
    "DEFAULT_KEY_HEADER",
    "split_list",
    "parse_methods",
    "extract_domain_tags",
    "map_row",
    "map_rows",
]
