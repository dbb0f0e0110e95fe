"""
Centralized settings for gateway-spine.

Manifesto:
    Credentials and service identifiers are supplied by the environment, not
    by the input table. One validated, cached settings object threads them
    through every remote call; the provisioning core treats them as opaque
    constants.

    - **Pydantic validation:** Type-checked at startup
    - **Environment-driven:** Reads env vars and a ``.env`` file
    - **No prefix:** ``SUBSCRIPTION_ID``, ``RESOURCE_GROUP``, ``APIM_NAME``,
      ``AZURE_ACCESS_TOKEN`` and ``SHEET_NUM`` are read as-is
    - **Fail before work:** :meth:`GatewaySettings.require_credentials` runs
      before a single row is read

Examples:
    >>> settings = GatewaySettings(subscription_id="s", resource_group="rg",
    ...                            apim_name="apim", azure_access_token="t")
    >>> settings.service_path
    '/subscriptions/s/resourceGroups/rg/providers/Microsoft.ApiManagement/service/apim'

Tags:
    settings, configuration, pydantic, environment, gateway-spine

Doc-Types:
    - API Reference
    - Configuration Guide
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from gateway_spine.core.errors import BatchFatalError


class GatewaySettings(BaseSettings):
    """Management-plane coordinates, file locations and logging options.

    Fields
    ──────
    subscription_id / resource_group / apim_name : target API Management service
    azure_access_token   : bearer token for the management API
    sheet_num            : 0-based worksheet index of the input workbook
    self_hosted_gateway  : gateway every provisioned API is bound to
    managed_gateway      : built-in gateway every provisioned API is removed from
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Management plane ─────────────────────────────────────────
    subscription_id: str = ""
    resource_group: str = ""
    apim_name: str = ""
    azure_access_token: SecretStr = SecretStr("")
    management_endpoint: str = "https://management.azure.com"
    api_version: str = "2022-08-01"
    # Tag endpoints need a newer contract than the rest of the surface.
    tag_api_version: str = "2024-05-01"
    http_timeout_s: float = 30.0

    # ── Gateways ─────────────────────────────────────────────────
    self_hosted_gateway: str = "swarm-vm-gw"
    managed_gateway: str = "managed"

    # ── Files ────────────────────────────────────────────────────
    input_path: Path = Path("mashery.xlsx")
    sheet_num: int = Field(default=0, ge=0)
    failed_path: Path = Path("failed_apis.xlsx")
    failed_operations_path: Path = Path("failed_operations.xlsx")
    keys_path: Path = Path("apikeys_output.xlsx")

    # ── Observability ────────────────────────────────────────────
    log_dir: Path = Path("logs")
    log_level: str = "INFO"
    log_format: Literal["console", "json"] = "console"

    @property
    def service_path(self) -> str:
        return (
            f"/subscriptions/{self.subscription_id}"
            f"/resourceGroups/{self.resource_group}"
            f"/providers/Microsoft.ApiManagement/service/{self.apim_name}"
        )

    @property
    def access_token(self) -> str:
        return self.azure_access_token.get_secret_value()

    def require_credentials(self) -> None:
        """Raise :class:`BatchFatalError` when anything needed to call the
        management API is missing."""
        missing = [
            name
            for name, value in (
                ("AZURE_ACCESS_TOKEN", self.access_token),
                ("SUBSCRIPTION_ID", self.subscription_id),
                ("RESOURCE_GROUP", self.resource_group),
                ("APIM_NAME", self.apim_name),
            )
            if not value.strip()
        ]
        if missing:
            raise BatchFatalError(f"{', '.join(missing)} is missing.").with_context(missing=missing)


@lru_cache(maxsize=1)
def get_settings() -> GatewaySettings:
    """Load and cache settings from the environment."""
    return GatewaySettings()


def clear_settings_cache() -> None:
    """Drop the cached settings (tests, CLI overrides)."""
    get_settings.cache_clear()


__all__ = ["GatewaySettings", "get_settings", "clear_settings_cache"]
