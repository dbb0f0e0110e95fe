"""
Product and subscription-key maintenance, plus bulk teardown.

Input rows for the key tools carry ``packageName`` and ``apikey``:

- ``sync_products``: upsert the product (subscription required, published)
  and label the subscription that owns ``apikey`` with the product name.
- ``import_subscription_keys``: find the subscription for the product (by
  the product id in its scope, else by display name) and PATCH its primary
  key and display name.
- ``delete_all_apis`` / ``delete_all_products``: list, then delete each.
- ``export_key_rows``: flatten a key-store JSON export (``apikey`` plus
  ``package.name``) into the packageName/apikey table ``import-keys`` reads.

Per-row and per-resource failures are logged and counted; only failing to
list the remote collection stops a run.
"""

from __future__ import annotations

import json
import re
from collections.abc import Sequence
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from gateway_spine.client.protocol import ResourceClient
from gateway_spine.core.errors import GatewaySpineError, SourceError, SourceNotFoundError, describe_error
from gateway_spine.core.identity import derive_identity, sanitize
from gateway_spine.core.logging import LogContext, get_logger

logger = get_logger(__name__)

_SCOPE_PRODUCT = re.compile(r"/products/([^/]+)")


@dataclass
class ProductSyncSummary:
    products: int = 0
    labelled: int = 0
    not_found: int = 0
    failed: int = 0
    skipped: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass
class KeyImportSummary:
    updated: int = 0
    not_found: int = 0
    failed: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass
class TeardownSummary:
    deleted: int = 0
    failed: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


def _field(row: dict[str, Any], name: str) -> str:
    value = row.get(name)
    return str(value).strip() if value is not None else ""


def product_from_scope(scope: Any) -> str | None:
    """``.../products/{id}`` → ``id``; None for non-product scopes."""
    if not isinstance(scope, str):
        return None
    match = _SCOPE_PRODUCT.search(scope)
    return match.group(1) if match else None


def find_subscription_by_key(subscriptions: Sequence[dict[str, Any]], api_key: str) -> dict[str, Any] | None:
    for subscription in subscriptions:
        props = subscription.get("properties") or {}
        if api_key in (props.get("primaryKey"), props.get("secondaryKey")):
            return subscription
    return None


def find_subscription_for_product(
    subscriptions: Sequence[dict[str, Any]],
    product_name: str,
) -> dict[str, Any] | None:
    """Match by the product id in the subscription scope, then by display name."""
    wanted = {product_name.lower(), sanitize(product_name)} - {""}
    for subscription in subscriptions:
        props = subscription.get("properties") or {}
        product_id = product_from_scope(props.get("scope"))
        if product_id and product_id.lower() in wanted:
            return subscription
        display_name = props.get("displayName")
        if isinstance(display_name, str) and display_name.strip().lower() == product_name.lower():
            return subscription
    return None


def sync_products(rows: Sequence[dict[str, Any]], client: ResourceClient) -> ProductSyncSummary:
    summary = ProductSyncSummary()
    subscriptions: list[dict[str, Any]] | None = None

    for index, row in enumerate(rows, start=1):
        product_name = _field(row, "packageName")
        api_key = _field(row, "apikey")
        if not product_name or not api_key:
            logger.warning("keys.row_skipped", row=index, reason="missing packageName or apikey")
            summary.skipped += 1
            continue

        with LogContext(row=index, product=product_name):
            try:
                product_id = derive_identity(product_name)
                existed = client.get_product(product_id) is not None
                client.upsert_product(
                    product_id,
                    display_name=product_name,
                    description=f"Product for {product_name}",
                    subscription_required=True,
                    approval_required=False,
                )
                summary.products += 1
                logger.info("product.synced", product_id=product_id, created=not existed)

                if subscriptions is None:
                    subscriptions = client.list_subscriptions()
                match = find_subscription_by_key(subscriptions, api_key)
                if match is None:
                    logger.warning("subscription.not_found", product_id=product_id)
                    summary.not_found += 1
                    continue
                client.update_subscription(match["name"], {"displayName": product_name})
                summary.labelled += 1
                logger.info("subscription.labelled", subscription=match["name"])
            except GatewaySpineError as e:
                logger.error("product.sync_failed", error=describe_error(e))
                summary.failed += 1

    logger.info("products.sync_completed", **summary.to_dict())
    return summary


def import_subscription_keys(rows: Sequence[dict[str, Any]], client: ResourceClient) -> KeyImportSummary:
    """
    Set each product's subscription primary key to the row's ``apikey``.

    Raises:
        ResourceClientError: the subscription list could not be fetched.
    """
    summary = KeyImportSummary()
    subscriptions = client.list_subscriptions()

    for index, row in enumerate(rows, start=1):
        product_name = _field(row, "packageName")
        api_key = _field(row, "apikey")
        if not product_name or not api_key:
            logger.warning("keys.row_skipped", row=index, reason="missing packageName or apikey")
            summary.failed += 1
            continue

        match = find_subscription_for_product(subscriptions, product_name)
        if match is None:
            logger.warning("subscription.not_found", row=index, product=product_name)
            summary.not_found += 1
            continue

        try:
            client.update_subscription(match["name"], {"primaryKey": api_key, "displayName": product_name})
        except GatewaySpineError as e:
            logger.error("subscription.update_failed", row=index, subscription=match["name"], error=describe_error(e))
            summary.failed += 1
            continue
        logger.info("subscription.updated", row=index, subscription=match["name"], display_name=product_name)
        summary.updated += 1

    logger.info("keys.import_completed", **summary.to_dict())
    return summary


def _delete_each(kind: str, items: Sequence[dict[str, Any]], delete: Any) -> TeardownSummary:
    summary = TeardownSummary()
    for item in items:
        name = item.get("name")
        if not name:
            continue
        try:
            delete(name)
        except GatewaySpineError as e:
            logger.error(f"{kind}.delete_failed", name=name, error=describe_error(e))
            summary.failed += 1
            continue
        logger.info(f"{kind}.deleted", name=name)
        summary.deleted += 1
    logger.info(f"{kind}.teardown_completed", **summary.to_dict())
    return summary


def delete_all_apis(client: ResourceClient) -> TeardownSummary:
    return _delete_each("api", client.list_apis(), client.delete_api)


def delete_all_products(client: ResourceClient) -> TeardownSummary:
    return _delete_each("product", client.list_products(), client.delete_product)


# Key export conversion


def load_key_export(path: str | Path) -> list[Any]:
    """
    Read a key-store JSON export: a list of key items.

    Raises:
        SourceNotFoundError: the file does not exist
        SourceError: the file is not JSON or does not hold a list
    """
    path = Path(path)
    if not path.exists():
        raise SourceNotFoundError(f"File not found: {path}").with_context(path=str(path))
    try:
        items = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, ValueError) as e:
        raise SourceError(f"Cannot read key export {path.name}: {e}", cause=e).with_context(path=str(path)) from e
    if not isinstance(items, list):
        raise SourceError(f"Key export {path.name} must hold a JSON list").with_context(path=str(path))
    return items


def export_key_rows(items: Sequence[Any]) -> list[dict[str, str]]:
    """One ``{"apikey", "packageName"}`` row per item; missing values become ``""``."""
    rows: list[dict[str, str]] = []
    for index, item in enumerate(items, start=1):
        if not isinstance(item, dict):
            logger.warning("keys.export_item_skipped", item=index, reason="not an object")
            continue
        package = item.get("package")
        package_name = package.get("name") if isinstance(package, dict) else None
        rows.append(
            {
                "apikey": str(item.get("apikey") or ""),
                "packageName": str(package_name or ""),
            }
        )
    logger.info("keys.exported", items=len(items), rows=len(rows))
    return rows


__all__ = [
    "ProductSyncSummary",
    "KeyImportSummary",
    "TeardownSummary",
    "product_from_scope",
    "find_subscription_by_key",
    "find_subscription_for_product",
    "sync_products",
    "import_subscription_keys",
    "delete_all_apis",
    "delete_all_products",
    "load_key_export",
    "export_key_rows",
]
