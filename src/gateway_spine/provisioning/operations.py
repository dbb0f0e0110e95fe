"""Operation specs: one per declared HTTP method of a row."""

from __future__ import annotations

import re

from gateway_spine.core.identity import derive_identity
from gateway_spine.core.models import OperationSpec, RowConfig, TemplateParameter

WILDCARD_SEGMENT = "{*path}"

_TEMPLATE_PARAM = re.compile(r"\{\*?([^}]+)\}")


def operation_id_for(method: str, endpoint_name: str) -> str:
    return derive_identity(f"{method}-{endpoint_name}")


def adjust_operation_path(path: str | None) -> str:
    """Append a ``{*path}`` catch-all to ``/`` and to paths ending in ``/``."""
    path = path or "/"
    if path == "/" or path.endswith("/"):
        return path.rstrip("/") + "/" + WILDCARD_SEGMENT
    return path


def extract_template_parameters(url_template: str, *, wildcard: bool = False) -> tuple[TemplateParameter, ...]:
    """
    Template parameters declared by ``{name}`` (or ``{*name}``) segments.

    Parameters are required strings; in wildcard mode they are optional,
    since the catch-all segment may match nothing.
    """
    names: list[str] = []
    for name in _TEMPLATE_PARAM.findall(url_template):
        if name not in names:
            names.append(name)
    if wildcard:
        return tuple(
            TemplateParameter(name=name, required=False, description=f"Parameter {name}") for name in names
        )
    return tuple(TemplateParameter(name=name) for name in names)


def build_operation_spec(config: RowConfig, method: str, *, wildcard: bool = False) -> OperationSpec:
    """
    Desired operation for ``method`` on ``config``'s endpoint.

    Raises:
        InvalidIdentitySource: method and endpoint name sanitize to nothing.
    """
    endpoint = config.endpoint_name or config.api_display_name
    url_template = config.operation_path_template or "/"
    if wildcard:
        url_template = adjust_operation_path(url_template)
    return OperationSpec(
        operation_id=operation_id_for(method, endpoint),
        display_name=endpoint,
        method=method.upper(),
        url_template=url_template,
        template_parameters=extract_template_parameters(url_template, wildcard=wildcard),
    )


__all__ = [
    "WILDCARD_SEGMENT",
    "operation_id_for",
    "adjust_operation_path",
    "extract_template_parameters",
    "build_operation_spec",
]
