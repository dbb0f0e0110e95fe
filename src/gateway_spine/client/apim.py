"""
API Management resource client over the Azure management REST API.

Usage:
    settings = get_settings()
    with ApimResourceClient(settings) as client:
        client.upsert_api("weather-api", display_name="Weather API", path="weather",
                          service_url="https://weather.internal")

Every call targets
``{endpoint}/subscriptions/{sub}/resourceGroups/{rg}/providers/Microsoft.ApiManagement/service/{apim}/...``
with ``api-version`` attached and a bearer token in ``Authorization``. Tag
endpoints use ``tag_api_version``.

Errors:
    - 404                → ResourceNotFoundError
    - any other non-2xx  → ResourceClientError (retryable for 429/5xx)
    - transport failure  → ResourceClientError(retryable=True)

An ``httpx.Client`` can be injected (tests pass one built on
``httpx.MockTransport``); otherwise one is created and owned by the client.
"""

from __future__ import annotations

from typing import Any

import httpx

from gateway_spine.core.errors import ResourceClientError, ResourceNotFoundError
from gateway_spine.core.logging import get_logger
from gateway_spine.core.models import OperationSpec
from gateway_spine.core.settings import GatewaySettings

logger = get_logger(__name__)

_BODY_EXCERPT = 500


def _error_message(response: httpx.Response) -> str:
    """Pull ``error.message`` out of an ARM error body, else the raw text."""
    try:
        payload = response.json()
    except ValueError:
        return response.text[:_BODY_EXCERPT] or response.reason_phrase
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            code = error.get("code")
            return f"{code}: {error['message']}" if code else str(error["message"])
    return response.text[:_BODY_EXCERPT]


class ApimResourceClient:
    """httpx implementation of :class:`~gateway_spine.client.protocol.ResourceClient`."""

    def __init__(self, settings: GatewaySettings, http_client: httpx.Client | None = None):
        self._settings = settings
        self._owns_http = http_client is None
        self._http = http_client or httpx.Client(timeout=settings.http_timeout_s)
        self._base = settings.management_endpoint.rstrip("/") + settings.service_path
        self._headers = {
            "Authorization": f"Bearer {settings.access_token}",
            "Content-Type": "application/json",
        }

    # ------------------------------------------------------------------ #
    # Plumbing
    # ------------------------------------------------------------------ #

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def __enter__(self) -> ApimResourceClient:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def url(self, path: str) -> str:
        return f"{self._base}/{path.lstrip('/')}"

    def _send(
        self,
        method: str,
        path: str,
        *,
        body: dict[str, Any] | None = None,
        api_version: str | None = None,
        absolute_url: str | None = None,
    ) -> httpx.Response:
        url = absolute_url or self.url(path)
        params = None if absolute_url else {"api-version": api_version or self._settings.api_version}
        logger.debug("apim.request", method=method, path=path)
        try:
            response = self._http.request(method, url, params=params, json=body, headers=self._headers)
        except httpx.HTTPError as exc:
            raise ResourceClientError(
                f"{method} {path or url} failed: {exc}",
                url=url,
                retryable=True,
                cause=exc,
            ) from exc

        if response.status_code == 404:
            raise ResourceNotFoundError(
                f"{method} {path or url}: not found",
                http_status=404,
                url=url,
                body=response.text[:_BODY_EXCERPT],
            )
        if response.is_error:
            raise ResourceClientError(
                f"{method} {path or url}: {_error_message(response)}",
                http_status=response.status_code,
                url=url,
                body=response.text[:_BODY_EXCERPT],
            )
        return response

    @staticmethod
    def _json(response: httpx.Response) -> dict[str, Any]:
        if not response.content:
            return {}
        try:
            payload = response.json()
        except ValueError:
            return {}
        return payload if isinstance(payload, dict) else {}

    def _list(self, path: str) -> list[dict[str, Any]]:
        """GET a collection, following ``nextLink`` pages."""
        items: list[dict[str, Any]] = []
        payload = self._json(self._send("GET", path))
        while True:
            items.extend(payload.get("value") or [])
            next_link = payload.get("nextLink")
            if not next_link:
                return items
            payload = self._json(self._send("GET", path, absolute_url=next_link))

    # ------------------------------------------------------------------ #
    # APIs
    # ------------------------------------------------------------------ #

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
        body = {
            "properties": {
                "displayName": display_name,
                "path": path,
                "protocols": list(protocols),
                "serviceUrl": service_url,
                "description": description,
                "subscriptionRequired": subscription_required,
            }
        }
        return self._json(self._send("PUT", f"apis/{api_id}", body=body))

    def set_subscription_key_header(self, api_id: str, header_name: str, query_name: str = "subscription-key") -> None:
        body = {
            "properties": {
                "subscriptionKeyParameterNames": {"header": header_name, "query": query_name},
            }
        }
        self._send("PATCH", f"apis/{api_id}", body=body)

    def list_apis(self) -> list[dict[str, Any]]:
        return self._list("apis")

    def delete_api(self, api_id: str) -> None:
        self._send("DELETE", f"apis/{api_id}")

    # ------------------------------------------------------------------ #
    # Gateways
    # ------------------------------------------------------------------ #

    def bind_api_to_gateway(self, gateway_id: str, api_id: str) -> None:
        self._send("PUT", f"gateways/{gateway_id}/apis/{api_id}")

    def unbind_api_from_gateway(self, gateway_id: str, api_id: str) -> bool:
        """Delete the binding; False when the API was not bound."""
        try:
            self._send("DELETE", f"gateways/{gateway_id}/apis/{api_id}")
        except ResourceNotFoundError:
            return False
        return True

    # ------------------------------------------------------------------ #
    # Products
    # ------------------------------------------------------------------ #

    def get_product(self, product_id: str) -> dict[str, Any] | None:
        try:
            return self._json(self._send("GET", f"products/{product_id}"))
        except ResourceNotFoundError:
            return None

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
        properties: dict[str, Any] = {
            "displayName": display_name,
            "description": description,
            "subscriptionRequired": subscription_required,
            "state": state,
        }
        if terms is not None:
            properties["terms"] = terms
        # APIM rejects approvalRequired on products that do not require a subscription.
        if approval_required is not None and subscription_required:
            properties["approvalRequired"] = approval_required
        return self._json(self._send("PUT", f"products/{product_id}", body={"properties": properties}))

    def assign_api_to_product(self, product_id: str, api_id: str) -> None:
        self._send("PUT", f"products/{product_id}/apis/{api_id}")

    def list_products(self) -> list[dict[str, Any]]:
        return self._list("products")

    def delete_product(self, product_id: str) -> None:
        self._send("DELETE", f"products/{product_id}")

    # ------------------------------------------------------------------ #
    # Tags
    # ------------------------------------------------------------------ #

    def upsert_tag(self, tag_id: str, display_name: str) -> None:
        self._send(
            "PUT",
            f"tags/{tag_id}",
            body={"properties": {"displayName": display_name}},
            api_version=self._settings.tag_api_version,
        )

    def assign_tag_to_api(self, api_id: str, tag_id: str) -> None:
        self._send("PUT", f"apis/{api_id}/tags/{tag_id}", api_version=self._settings.tag_api_version)

    # ------------------------------------------------------------------ #
    # Operations & policies
    # ------------------------------------------------------------------ #

    def upsert_operation(self, api_id: str, spec: OperationSpec) -> dict[str, Any]:
        response = self._send(
            "PUT",
            f"apis/{api_id}/operations/{spec.operation_id}",
            body={"properties": spec.to_properties()},
        )
        return self._json(response)

    def upsert_operation_policy(self, api_id: str, operation_id: str, policy_xml: str) -> None:
        self._send(
            "PUT",
            f"apis/{api_id}/operations/{operation_id}/policies/policy",
            body={"properties": {"format": "rawxml", "value": policy_xml}},
        )

    # ------------------------------------------------------------------ #
    # Subscriptions
    # ------------------------------------------------------------------ #

    def list_subscriptions(self) -> list[dict[str, Any]]:
        return self._list("subscriptions")

    def update_subscription(self, subscription_id: str, properties: dict[str, Any]) -> None:
        self._send("PATCH", f"subscriptions/{subscription_id}", body={"properties": properties})


__all__ = ["ApimResourceClient"]
