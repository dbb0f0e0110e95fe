"""Row Provisioner: converge the remote resource graph for one row.

Manifesto:
    A row declares one API, the products and tags it belongs to, and the
    operations it exposes.  Resources depend on each other (an operation
    needs its API, a policy needs its operation), so steps run in a fixed
    order.  Two severity tiers decide what a failure costs:

    - CRITICAL: the API cannot be served without it. The first critical
      failure ends the row; nothing after it runs.
    - NON_CRITICAL: one tag or one operation. The failure is logged and the
      loop moves on to the next sibling.

    Product assignment sits in between: each product is tried
    independently, and only when every product fails does the step count
    as a critical failure.

STEP ORDER
──────────
::

    sanitize-api-id ─► upsert-api ─► set-key-header ─► bind-gateway
        ─► unbind-managed-gateway ─► assign-products ─► assign-tag (each)
        ─► upsert-operation ─► apply-policy (per HTTP method)

    When the API identity is already provisioned in this batch, everything
    from upsert-api through assign-tag is skipped; operations still run.

Every call is an idempotent upsert, so re-running a row converges to the
same remote state.

Tags:
    gateway-spine, provisioning, row, critical, non-critical

Doc-Types:
    api-reference, design-doc
"""

from __future__ import annotations

from collections.abc import Callable

from gateway_spine.client.protocol import ResourceClient
from gateway_spine.core.identity import derive_identity
from gateway_spine.core.logging import get_logger
from gateway_spine.core.models import ProvisioningOutcome, RowConfig
from gateway_spine.core.settings import GatewaySettings
from gateway_spine.policy.templates import build_policy
from gateway_spine.provisioning.operations import build_operation_spec
from gateway_spine.provisioning.step_result import RowReport, StepResult, StepSeverity, run_step

logger = get_logger(__name__)

CRITICAL = StepSeverity.CRITICAL
NON_CRITICAL = StepSeverity.NON_CRITICAL

STEP_SANITIZE = "sanitize-api-id"
STEP_UPSERT_API = "upsert-api"
STEP_KEY_HEADER = "set-key-header"
STEP_BIND_GATEWAY = "bind-gateway"
STEP_UNBIND_MANAGED = "unbind-managed-gateway"
STEP_ASSIGN_PRODUCT = "assign-product"
STEP_ASSIGN_PRODUCTS = "assign-products"
STEP_ASSIGN_TAG = "assign-tag"
STEP_UPSERT_OPERATION = "upsert-operation"
STEP_APPLY_POLICY = "apply-policy"

SETUP_SKIPPED = "api already provisioned in this batch"


class RowProvisioner:
    """
    Runs the step sequence for one row against a :class:`ResourceClient`.

    The provisioner holds no batch state: whether an API identity was
    already set up is asked through the ``is_provisioned`` callback, which
    the batch orchestrator backs with its dedup set.
    """

    def __init__(
        self,
        client: ResourceClient,
        *,
        self_hosted_gateway: str = "swarm-vm-gw",
        managed_gateway: str = "managed",
        wildcard: bool = False,
    ):
        self.client = client
        self.self_hosted_gateway = self_hosted_gateway
        self.managed_gateway = managed_gateway
        self.wildcard = wildcard

    @classmethod
    def from_settings(
        cls,
        client: ResourceClient,
        settings: GatewaySettings,
        *,
        wildcard: bool = False,
    ) -> RowProvisioner:
        return cls(
            client,
            self_hosted_gateway=settings.self_hosted_gateway,
            managed_gateway=settings.managed_gateway,
            wildcard=wildcard,
        )

    # =========================================================================
    # Entry points
    # =========================================================================

    def provision(self, config: RowConfig) -> ProvisioningOutcome:
        """Provision a single row on its own (no batch dedup)."""
        return self.run_row(config).to_outcome()

    def run_row(
        self,
        config: RowConfig,
        is_provisioned: Callable[[str], bool] | None = None,
    ) -> RowReport:
        """
        Run every step for ``config`` and return the aggregated report.

        Never raises for remote or identity failures; they are in the report.
        """
        report = RowReport(config)

        identity = report.add(
            run_step(STEP_SANITIZE, CRITICAL, lambda: {"api_id": derive_identity(config.api_display_name)})
        )
        if not identity.success:
            return report
        api_id = identity.output["api_id"]
        report.api_id = api_id

        if is_provisioned is not None and is_provisioned(api_id):
            report.add(StepResult.skip(STEP_UPSERT_API, CRITICAL, SETUP_SKIPPED, target=api_id))
            logger.info("row.setup_skipped", api_id=api_id)
        else:
            report.setup_ran = True
            self.setup_api(config, api_id, report)
            if report.aborted:
                return report

        self.provision_operations(config, api_id, report)
        return report

    # =========================================================================
    # Critical block
    # =========================================================================

    def setup_api(self, config: RowConfig, api_id: str, report: RowReport) -> None:
        """API, key header, gateway bindings, products, then tags."""
        client = self.client
        critical_steps: list[tuple[str, Callable[[], object]]] = [
            (
                STEP_UPSERT_API,
                lambda: client.upsert_api(
                    api_id,
                    display_name=config.api_display_name,
                    path=config.url_path_suffix,
                    service_url=config.service_url,
                    description=config.description,
                ),
            ),
            (STEP_KEY_HEADER, lambda: client.set_subscription_key_header(api_id, config.auth_key_header_name)),
            (STEP_BIND_GATEWAY, lambda: client.bind_api_to_gateway(self.self_hosted_gateway, api_id)),
            (STEP_UNBIND_MANAGED, lambda: self._unbind_managed(api_id)),
        ]
        for step, fn in critical_steps:
            result = report.add(run_step(step, CRITICAL, fn, target=api_id))
            if not result.success:
                return

        report.add(self.assign_products(config, api_id, report))
        if report.aborted:
            return

        logger.info("api.ready", api_id=api_id, gateway=self.self_hosted_gateway)
        self.assign_tags(config, api_id, report)

    def _unbind_managed(self, api_id: str) -> dict[str, bool]:
        removed = self.client.unbind_api_from_gateway(self.managed_gateway, api_id)
        if not removed:
            logger.debug("gateway.not_bound", gateway=self.managed_gateway, api_id=api_id)
        return {"removed": removed}

    def assign_products(self, config: RowConfig, api_id: str, report: RowReport) -> StepResult:
        """
        Ensure and assign every product of the row.

        Each product gets its own non-critical result; the returned aggregate
        is a critical failure only when none of them succeeded.
        """
        assigned: list[str] = []
        for name in config.product_names:
            result = report.add(
                run_step(
                    STEP_ASSIGN_PRODUCT,
                    NON_CRITICAL,
                    lambda name=name: self._assign_product(name, api_id),
                    target=name,
                )
            )
            if result.success:
                assigned.append(result.output["product_id"])

        if config.product_names and not assigned:
            return StepResult.fail(
                STEP_ASSIGN_PRODUCTS,
                CRITICAL,
                f"no product could be assigned: {', '.join(config.product_names)}",
                target=api_id,
            )
        return StepResult.ok(STEP_ASSIGN_PRODUCTS, CRITICAL, target=api_id, output={"products": assigned})

    def _assign_product(self, name: str, api_id: str) -> dict[str, str]:
        product_id = derive_identity(name)
        if self.client.get_product(product_id) is None:
            self.client.upsert_product(
                product_id,
                display_name=name,
                description=f"Auto-created for {name}",
                terms="Auto-generated terms",
                subscription_required=False,
            )
            logger.info("product.created", product_id=product_id)
        self.client.assign_api_to_product(product_id, api_id)
        logger.info("product.assigned", product_id=product_id, api_id=api_id)
        return {"product_id": product_id}

    # =========================================================================
    # Non-critical loops
    # =========================================================================

    def assign_tags(self, config: RowConfig, api_id: str, report: RowReport) -> None:
        for tag in config.tags:
            report.add(
                run_step(STEP_ASSIGN_TAG, NON_CRITICAL, lambda tag=tag: self._assign_tag(tag, api_id), target=tag)
            )

    def _assign_tag(self, tag: str, api_id: str) -> dict[str, str]:
        tag_id = derive_identity(tag)
        self.client.upsert_tag(tag_id, tag)
        self.client.assign_tag_to_api(api_id, tag_id)
        return {"tag_id": tag_id}

    def provision_operations(self, config: RowConfig, api_id: str, report: RowReport) -> None:
        """One operation plus its policy per declared HTTP method."""
        for method in config.http_methods:
            upserted = report.add(
                run_step(
                    STEP_UPSERT_OPERATION,
                    NON_CRITICAL,
                    lambda method=method: self._upsert_operation(config, api_id, method),
                    target=method,
                )
            )
            if not upserted.success:
                continue
            operation_id = upserted.output["operation_id"]
            report.add(
                run_step(
                    STEP_APPLY_POLICY,
                    NON_CRITICAL,
                    lambda: self._apply_policy(config, api_id, operation_id),
                    target=operation_id,
                )
            )

    def _upsert_operation(self, config: RowConfig, api_id: str, method: str) -> dict[str, str]:
        spec = build_operation_spec(config, method, wildcard=self.wildcard)
        self.client.upsert_operation(api_id, spec)
        logger.info("operation.upserted", api_id=api_id, operation_id=spec.operation_id, url_template=spec.url_template)
        return {"operation_id": spec.operation_id}

    def _apply_policy(self, config: RowConfig, api_id: str, operation_id: str) -> dict[str, list[str]]:
        document = build_policy(config, api_id=api_id, operation_id=operation_id, wildcard=self.wildcard)
        self.client.upsert_operation_policy(api_id, operation_id, document.to_xml())
        logger.info("policy.applied", api_id=api_id, operation_id=operation_id, clauses=document.tags)
        return {"clauses": document.tags}


__all__ = [
    "RowProvisioner",
    "STEP_SANITIZE",
    "STEP_UPSERT_API",
    "STEP_KEY_HEADER",
    "STEP_BIND_GATEWAY",
    "STEP_UNBIND_MANAGED",
    "STEP_ASSIGN_PRODUCT",
    "STEP_ASSIGN_PRODUCTS",
    "STEP_ASSIGN_TAG",
    "STEP_UPSERT_OPERATION",
    "STEP_APPLY_POLICY",
]
