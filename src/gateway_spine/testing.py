"""Test Harness: doubles and assertions for provisioning tests.

Manifesto:
Testing provisioning logic against a live management plane is slow and
destructive.  This module provides an in-memory ``ResourceClient`` that
keeps remote state in dicts, records every call, and can be scripted to
fail specific calls, so tests can assert on the resulting state as well
as on outcomes.

ARCHITECTURE
────────────
::

    Test doubles:
      RecordingResourceClient   → in-memory remote state + call log
        .fail_on(verb, target, error)   script a failure

    Assertion helpers:
      assert_row_succeeded(outcome)
      assert_row_failed(outcome, step=None, error_contains=None)

    Factories:
      make_row(**overrides)     → RowConfig with sensible defaults

Example::

    from gateway_spine.testing import RecordingResourceClient, make_row

    def test_api_created():
        client = RecordingResourceClient()
        RowProvisioner(client).provision(make_row(api_display_name="Weather API"))
        assert "weather-api" in client.apis

Tags:
    gateway-spine, testing, harness, assertions, doubles

Doc-Types:
    api-reference
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from gateway_spine.core.errors import ResourceClientError, ResourceNotFoundError
from gateway_spine.core.models import OperationSpec, ProvisioningOutcome, RateLimit, RateLimitPeriod, RowConfig

# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------


@dataclass
class _ScriptedFailure:
    verb: str
    target: str | None
    error: Exception
    remaining: int | None


class RecordingResourceClient:
    """In-memory :class:`~gateway_spine.client.protocol.ResourceClient`.

    Attributes
    ----------
    calls
        Every call as ``(verb, identities)`` in order.
    apis, products, tags, subscriptions
        Resource properties keyed by identity.
    operations, policies
        Keyed by ``(api_id, operation_id)``.
    gateway_apis, product_apis, api_tags
        Sets of ``(container, member)`` bindings.

    Example::

        client = RecordingResourceClient()
        client.fail_on("assign_api_to_product", target="broken-product")
    """

    def __init__(self, subscriptions: dict[str, dict[str, Any]] | None = None) -> None:
        self.calls: list[tuple[str, tuple[str, ...]]] = []
        self.apis: dict[str, dict[str, Any]] = {}
        self.products: dict[str, dict[str, Any]] = {}
        self.tags: dict[str, str] = {}
        self.subscriptions: dict[str, dict[str, Any]] = dict(subscriptions or {})
        self.operations: dict[tuple[str, str], OperationSpec] = {}
        self.policies: dict[tuple[str, str], str] = {}
        self.gateway_apis: set[tuple[str, str]] = set()
        self.product_apis: set[tuple[str, str]] = set()
        self.api_tags: set[tuple[str, str]] = set()
        self._failures: list[_ScriptedFailure] = []

    # ── scripting ────────────────────────────────────────────────

    def fail_on(
        self,
        verb: str,
        target: str | None = None,
        error: Exception | str = "Simulated failure",
        times: int | None = None,
    ) -> None:
        """Make ``verb`` raise when any identity it touches equals ``target``.

        ``target=None`` fails every call of the verb. ``times`` limits how
        many calls fail; None fails forever.
        """
        if isinstance(error, str):
            error = ResourceClientError(f"{verb}: {error}", http_status=500)
        self._failures.append(_ScriptedFailure(verb, target, error, times))

    def clear_failures(self) -> None:
        self._failures.clear()

    def _record(self, verb: str, *identities: str) -> None:
        self.calls.append((verb, identities))
        for failure in self._failures:
            if failure.verb != verb or (failure.target is not None and failure.target not in identities):
                continue
            if failure.remaining is not None:
                if failure.remaining <= 0:
                    continue
                failure.remaining -= 1
            raise failure.error

    def calls_to(self, verb: str) -> list[tuple[str, ...]]:
        return [identities for name, identities in self.calls if name == verb]

    # ── APIs ─────────────────────────────────────────────────────

    def upsert_api(
        self,
        api_id: str,
        *,
        display_name: str,
        path: str,
        service_url: str,
        description: str = "",
        protocols: tuple[str, ...] = ("http", "https"),
        subscription_required: bool = False,
    ) -> dict[str, Any]:
        self._record("upsert_api", api_id)
        properties = {
            "displayName": display_name,
            "path": path,
            "serviceUrl": service_url,
            "description": description,
            "protocols": list(protocols),
            "subscriptionRequired": subscription_required,
        }
        existing = self.apis.setdefault(api_id, {})
        existing.update(properties)
        return {"name": api_id, "properties": dict(existing)}

    def set_subscription_key_header(self, api_id: str, header_name: str, query_name: str = "subscription-key") -> None:
        self._record("set_subscription_key_header", api_id)
        if api_id not in self.apis:
            raise ResourceNotFoundError(f"PATCH apis/{api_id}: not found", http_status=404)
        self.apis[api_id]["subscriptionKeyParameterNames"] = {"header": header_name, "query": query_name}

    def list_apis(self) -> list[dict[str, Any]]:
        self._record("list_apis")
        return [{"name": api_id, "properties": dict(props)} for api_id, props in self.apis.items()]

    def delete_api(self, api_id: str) -> None:
        self._record("delete_api", api_id)
        if self.apis.pop(api_id, None) is None:
            raise ResourceNotFoundError(f"DELETE apis/{api_id}: not found", http_status=404)
        for key in [k for k in self.operations if k[0] == api_id]:
            del self.operations[key]
            self.policies.pop(key, None)

    # ── gateways ─────────────────────────────────────────────────

    def bind_api_to_gateway(self, gateway_id: str, api_id: str) -> None:
        self._record("bind_api_to_gateway", gateway_id, api_id)
        self.gateway_apis.add((gateway_id, api_id))

    def unbind_api_from_gateway(self, gateway_id: str, api_id: str) -> bool:
        self._record("unbind_api_from_gateway", gateway_id, api_id)
        if (gateway_id, api_id) not in self.gateway_apis:
            return False
        self.gateway_apis.discard((gateway_id, api_id))
        return True

    # ── products ─────────────────────────────────────────────────

    def get_product(self, product_id: str) -> dict[str, Any] | None:
        self._record("get_product", product_id)
        props = self.products.get(product_id)
        return {"name": product_id, "properties": dict(props)} if props is not None else None

    def upsert_product(
        self,
        product_id: str,
        *,
        display_name: str,
        description: str = "",
        subscription_required: bool = False,
        approval_required: bool | None = None,
        terms: str | None = None,
        state: str = "published",
    ) -> dict[str, Any]:
        self._record("upsert_product", product_id)
        self.products[product_id] = {
            "displayName": display_name,
            "description": description,
            "subscriptionRequired": subscription_required,
            "approvalRequired": approval_required,
            "terms": terms,
            "state": state,
        }
        return {"name": product_id, "properties": dict(self.products[product_id])}

    def assign_api_to_product(self, product_id: str, api_id: str) -> None:
        self._record("assign_api_to_product", product_id, api_id)
        if product_id not in self.products:
            raise ResourceNotFoundError(f"PUT products/{product_id}/apis/{api_id}: not found", http_status=404)
        self.product_apis.add((product_id, api_id))

    def list_products(self) -> list[dict[str, Any]]:
        self._record("list_products")
        return [{"name": product_id, "properties": dict(props)} for product_id, props in self.products.items()]

    def delete_product(self, product_id: str) -> None:
        self._record("delete_product", product_id)
        if self.products.pop(product_id, None) is None:
            raise ResourceNotFoundError(f"DELETE products/{product_id}: not found", http_status=404)

    # ── tags ─────────────────────────────────────────────────────

    def upsert_tag(self, tag_id: str, display_name: str) -> None:
        self._record("upsert_tag", tag_id)
        self.tags[tag_id] = display_name

    def assign_tag_to_api(self, api_id: str, tag_id: str) -> None:
        self._record("assign_tag_to_api", api_id, tag_id)
        self.api_tags.add((api_id, tag_id))

    # ── operations & policies ────────────────────────────────────

    def upsert_operation(self, api_id: str, spec: OperationSpec) -> dict[str, Any]:
        self._record("upsert_operation", api_id, spec.operation_id)
        if api_id not in self.apis:
            raise ResourceNotFoundError(f"PUT apis/{api_id}/operations: not found", http_status=404)
        self.operations[(api_id, spec.operation_id)] = spec
        return {"name": spec.operation_id, "properties": spec.to_properties()}

    def upsert_operation_policy(self, api_id: str, operation_id: str, policy_xml: str) -> None:
        self._record("upsert_operation_policy", api_id, operation_id)
        if (api_id, operation_id) not in self.operations:
            raise ResourceNotFoundError(f"PUT apis/{api_id}/operations/{operation_id}: not found", http_status=404)
        self.policies[(api_id, operation_id)] = policy_xml

    # ── subscriptions ────────────────────────────────────────────

    def list_subscriptions(self) -> list[dict[str, Any]]:
        self._record("list_subscriptions")
        return [{"name": name, "properties": dict(props)} for name, props in self.subscriptions.items()]

    def update_subscription(self, subscription_id: str, properties: dict[str, Any]) -> None:
        self._record("update_subscription", subscription_id)
        if subscription_id not in self.subscriptions:
            raise ResourceNotFoundError(f"PATCH subscriptions/{subscription_id}: not found", http_status=404)
        self.subscriptions[subscription_id].update(properties)


# ---------------------------------------------------------------------------
# Assertion helpers
# ---------------------------------------------------------------------------


class OutcomeAssertionError(AssertionError):
    """Raised when an outcome assertion fails."""

    def __init__(self, message: str, outcome: ProvisioningOutcome) -> None:
        self.outcome = outcome
        super().__init__(
            f"{message}\n  API: {outcome.api_id}\n  Step: {outcome.failed_step}\n  Error: {outcome.error_message}"
        )


def assert_row_succeeded(outcome: ProvisioningOutcome) -> None:
    if not outcome.succeeded:
        raise OutcomeAssertionError("Expected row to succeed", outcome)


def assert_row_failed(
    outcome: ProvisioningOutcome,
    step: str | None = None,
    error_contains: str | None = None,
) -> None:
    """Assert that a row failed, optionally at ``step`` with a given error."""
    if outcome.succeeded:
        raise OutcomeAssertionError("Expected row to fail", outcome)
    if step and outcome.failed_step != step:
        raise OutcomeAssertionError(f"Expected failure at '{step}', got '{outcome.failed_step}'", outcome)
    if error_contains and error_contains not in (outcome.error_message or ""):
        raise OutcomeAssertionError(f"Expected error containing '{error_contains}'", outcome)


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


def make_row(**overrides: Any) -> RowConfig:
    """RowConfig for ``Weather API`` with one GET; override any field."""
    fields: dict[str, Any] = {
        "api_display_name": "Weather API",
        "url_path_suffix": "weather",
        "service_host": "weather.internal.example.com",
        "endpoint_name": "forecast",
        "http_methods": ("GET",),
        "operation_path_template": "/forecast/{city}",
        "rate_limit": RateLimit(ceiling=100, period=RateLimitPeriod.HOUR),
        "qps_limit": 5,
        "product_names": ("Default Product",),
    }
    fields.update(overrides)
    if "source_record" not in overrides:
        fields["source_record"] = {
            "APIName": fields["api_display_name"],
            "systemDomains": fields["service_host"],
            "EndpointName": fields["endpoint_name"],
            "supportedHttpMethods": ",".join(fields["http_methods"]),
        }
    return RowConfig(**fields)


__all__ = [
    "RecordingResourceClient",
    "OutcomeAssertionError",
    "assert_row_succeeded",
    "assert_row_failed",
    "make_row",
]
