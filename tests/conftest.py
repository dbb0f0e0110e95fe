"""
Shared pytest fixtures for gateway-spine tests.

This module provides:
- Isolation: each test runs in its own working directory with no
  management-plane variables in the environment and fresh settings
- An in-memory resource client and a provisioner wired to it
- Sample workbook records shaped like the production input

Usage:
    def test_something(client, provisioner):
        provisioner.provision(make_row())
        assert "weather-api" in client.apis
"""

from __future__ import annotations

from typing import Any

import pytest

from gateway_spine.core.logging import clear_context, shutdown_logging
from gateway_spine.core.settings import GatewaySettings, clear_settings_cache
from gateway_spine.provisioning.row import RowProvisioner
from gateway_spine.testing import RecordingResourceClient

_ENV_VARS = (
    "SUBSCRIPTION_ID",
    "RESOURCE_GROUP",
    "APIM_NAME",
    "AZURE_ACCESS_TOKEN",
    "SHEET_NUM",
    "INPUT_PATH",
    "FAILED_PATH",
    "FAILED_OPERATIONS_PATH",
    "KEYS_PATH",
    "LOG_DIR",
    "LOG_LEVEL",
    "LOG_FORMAT",
    "SELF_HOSTED_GATEWAY",
    "MANAGED_GATEWAY",
)


# =============================================================================
# Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Own cwd (no stray .env), no credentials, fresh settings and log state."""
    monkeypatch.chdir(tmp_path)
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    clear_settings_cache()
    clear_context()
    yield
    shutdown_logging()
    clear_context()
    clear_settings_cache()


@pytest.fixture
def credentials_env(monkeypatch):
    """Environment with every credential the CLI requires."""
    monkeypatch.setenv("SUBSCRIPTION_ID", "sub-123")
    monkeypatch.setenv("RESOURCE_GROUP", "rg-gateway")
    monkeypatch.setenv("APIM_NAME", "apim-test")
    monkeypatch.setenv("AZURE_ACCESS_TOKEN", "token-abc")
    clear_settings_cache()


# =============================================================================
# Provisioning fixtures
# =============================================================================


@pytest.fixture
def settings() -> GatewaySettings:
    return GatewaySettings(
        subscription_id="sub-123",
        resource_group="rg-gateway",
        apim_name="apim-test",
        azure_access_token="token-abc",
    )


@pytest.fixture
def client() -> RecordingResourceClient:
    return RecordingResourceClient()


@pytest.fixture
def provisioner(client) -> RowProvisioner:
    return RowProvisioner(client)


@pytest.fixture
def weather_record() -> dict[str, Any]:
    """One workbook row as the reader returns it."""
    return {
        "APIName": "Weather API",
        "urlSuffix": "/weather",
        "outboundTransportProtocol": "HTTPS",
        "systemDomains": "weather.internal.example.com",
        "publicDomains": "api.example.com",
        "description": "Forecasts",
        "EndpointName": "forecast",
        "supportedHttpMethods": "GET, post",
        "operationPath": "/forecast/{city}",
        "outboundRequestTargetPath": "/v2/forecast",
        "rateLimitCeiling": 100,
        "rateLimitPeriod": "hour",
        "qpsLimitCeiling": 5.0,
        "Organization": "Climate",
        "packageName": "Weather Basic; Weather Pro",
    }
