"""
gateway-spine - bulk provisioning of API gateway resources from tabular input.

Packages:
- gateway_spine.core: identity, models, errors, settings, logging
- gateway_spine.policy: inbound policy documents (rewrite, quota, rate limit)
- gateway_spine.client: management API client and its contract
- gateway_spine.sources: workbook/CSV reading and row mapping
- gateway_spine.provisioning: row provisioner, batch orchestrator, failure record
- gateway_spine.cli: the ``gateway-spine`` command
"""

__version__ = "0.1.0"
