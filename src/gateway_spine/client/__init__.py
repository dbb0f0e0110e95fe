"""Management-plane access: the ResourceClient contract and its httpx implementation."""

from gateway_spine.client.apim import ApimResourceClient
from gateway_spine.client.protocol import ResourceClient

__all__ = ["ApimResourceClient", "ResourceClient"]
