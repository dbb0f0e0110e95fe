"""
Resource Client contract.

The provisioning core depends on this shape only, never on HTTP. Every verb
is an idempotent create-or-update keyed by identity, a read-if-exists, or a
delete. Calling a verb twice with the same inputs leaves the remote state
unchanged and must not raise.

    ResourceClient
    ├── api          upsert_api, set_subscription_key_header, list_apis, delete_api
    ├── gateway      bind_api_to_gateway, unbind_api_from_gateway (404 → False)
    ├── product      get_product (404 → None), upsert_product,
    │                assign_api_to_product, list_products, delete_product
    ├── tag          upsert_tag, assign_tag_to_api
    ├── operation    upsert_operation, upsert_operation_policy
    └── subscription list_subscriptions, update_subscription

Implementations:
    client/apim.py         ApimResourceClient (httpx, management REST API)
    testing.py             RecordingResourceClient (in-memory double)
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from gateway_spine.core.models import OperationSpec


@runtime_checkable
class ResourceClient(Protocol):
    """Idempotent verbs over the gateway's management surface."""

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
    ) -> dict[str, Any]: ...

    def set_subscription_key_header(self, api_id: str, header_name: str, query_name: str = "subscription-key") -> None: ...

    def list_apis(self) -> list[dict[str, Any]]: ...

    def delete_api(self, api_id: str) -> None: ...

    # ── Gateways ─────────────────────────────────────────────────
    def bind_api_to_gateway(self, gateway_id: str, api_id: str) -> None: ...

    def unbind_api_from_gateway(self, gateway_id: str, api_id: str) -> bool: ...

    # ── Products ─────────────────────────────────────────────────
    def get_product(self, product_id: str) -> dict[str, Any] | None: ...

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
    ) -> dict[str, Any]: ...

    def assign_api_to_product(self, product_id: str, api_id: str) -> None: ...

    def list_products(self) -> list[dict[str, Any]]: ...

    def delete_product(self, product_id: str) -> None: ...

    # ── Tags ─────────────────────────────────────────────────────
    def upsert_tag(self, tag_id: str, display_name: str) -> None: ...

    def assign_tag_to_api(self, api_id: str, tag_id: str) -> None: ...

    # ── Operations ───────────────────────────────────────────────
    def upsert_operation(self, api_id: str, spec: OperationSpec) -> dict[str, Any]: ...

    def upsert_operation_policy(self, api_id: str, operation_id: str, policy_xml: str) -> None: ...

    # ── Subscriptions ────────────────────────────────────────────
    def list_subscriptions(self) -> list[dict[str, Any]]: ...

    def update_subscription(self, subscription_id: str, properties: dict[str, Any]) -> None: ...


__all__ = ["ResourceClient"]
