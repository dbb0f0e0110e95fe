"""Tests for gateway_spine.provisioning.batch."""

from __future__ import annotations

import pytest

from gateway_spine.core.models import ProvisioningOutcome
from gateway_spine.provisioning.batch import BatchContext, BatchOrchestrator
from gateway_spine.provisioning.failures import FailureRecorder
from gateway_spine.sources.tabular import read_rows
from gateway_spine.testing import assert_row_failed, assert_row_succeeded, make_row


@pytest.fixture
def orchestrator(provisioner):
    return BatchOrchestrator(provisioner)


class TestBatchContext:
    def test_counts(self):
        context = BatchContext()
        row = make_row()
        context.add(ProvisioningOutcome.success(row, "weather-api"))
        context.add(ProvisioningOutcome.failure(row, "upsert-api", "boom"))

        assert context.succeeded == 1
        assert context.failed == 1
        assert [o.failed_step for o in context.failures] == ["upsert-api"]

    def test_dedup_set(self):
        context = BatchContext()
        assert not context.is_provisioned("weather-api")
        context.mark_provisioned("weather-api")
        assert context.is_provisioned("weather-api")


class TestDedup:
    """The first row for an API identity sets it up; later rows add operations."""

    def test_setup_runs_once_per_identity(self, client, orchestrator):
        rows = [
            make_row(endpoint_name="forecast", http_methods=("GET",), row_number=1),
            make_row(endpoint_name="alerts", http_methods=("GET", "POST"), row_number=2),
        ]

        outcomes = orchestrator.run_batch(rows)

        assert all(o.succeeded for o in outcomes)
        assert len(client.calls_to("upsert_api")) == 1
        assert len(client.calls_to("bind_api_to_gateway")) == 1
        assert len(client.calls_to("assign_api_to_product")) == 1
        assert set(client.operations) == {
            ("weather-api", "get-forecast"),
            ("weather-api", "get-alerts"),
            ("weather-api", "post-alerts"),
        }
        assert orchestrator.context.provisioned == {"weather-api"}

    def test_display_names_sharing_an_identity(self, client, orchestrator):
        orchestrator.run_batch([make_row(api_display_name="Weather API"), make_row(api_display_name="weather  api")])
        assert len(client.calls_to("upsert_api")) == 1

    def test_failed_setup_not_marked(self, client, orchestrator):
        client.fail_on("upsert_api", times=1)

        outcomes = orchestrator.run_batch([make_row(row_number=1), make_row(endpoint_name="alerts", row_number=2)])

        assert_row_failed(outcomes[0], step="upsert-api")
        assert_row_succeeded(outcomes[1])
        assert len(client.calls_to("upsert_api")) == 2
        assert set(client.operations) == {("weather-api", "get-alerts")}

    def test_fresh_context_per_run(self, client, orchestrator):
        orchestrator.run_batch([make_row()])
        first = orchestrator.context
        orchestrator.run_batch([make_row()])

        assert orchestrator.context is not first
        assert len(client.calls_to("upsert_api")) == 2


class TestContainment:
    """Every row is attempted."""

    def test_failure_does_not_stop_batch(self, client, orchestrator):
        client.fail_on("upsert_api", target="orders")

        outcomes = orchestrator.run_batch(
            [make_row(api_display_name="Orders"), make_row(api_display_name="Weather API")]
        )

        assert [o.succeeded for o in outcomes] == [False, True]
        assert "weather-api" in client.apis
        assert orchestrator.context.failed == 1

    def test_outcomes_in_input_order(self, orchestrator):
        names = ["Alpha", "!!!", "Gamma"]
        outcomes = orchestrator.run_batch([make_row(api_display_name=n) for n in names])
        assert [o.row_config.api_display_name for o in outcomes] == names
        assert [o.succeeded for o in outcomes] == [True, False, True]

    def test_empty_batch(self, orchestrator):
        assert orchestrator.run_batch([]) == []
        assert orchestrator.context.outcomes == []

    def test_prior_failures_reported_first(self, orchestrator):
        prior = ProvisioningOutcome.failure(None, "map-row", "Missing APIName", source_record={"description": "x"})

        outcomes = orchestrator.run_batch([make_row()], prior_failures=[prior])

        assert outcomes[0] is prior
        assert outcomes[1].succeeded
        assert orchestrator.context.failed == 1


class TestRecording:
    def test_failures_written(self, client, provisioner, tmp_path):
        client.fail_on("bind_api_to_gateway", target="orders", error="gateway offline")
        recorder = FailureRecorder(tmp_path / "failed.xlsx")
        orchestrator = BatchOrchestrator(provisioner, recorder)

        orchestrator.run_batch(
            [
                make_row(api_display_name="Orders", source_record={"APIName": "Orders"}),
                make_row(api_display_name="Weather API", source_record={"APIName": "Weather API"}),
            ]
        )

        assert orchestrator.context.artifact == tmp_path / "failed.xlsx"
        assert read_rows(orchestrator.context.artifact) == [
            {"APIName": "Orders", "_error": "bind-gateway: bind_api_to_gateway: gateway offline (HTTP 500)"}
        ]

    def test_nothing_written_on_success(self, provisioner, tmp_path):
        orchestrator = BatchOrchestrator(provisioner, FailureRecorder(tmp_path / "failed.xlsx"))

        orchestrator.run_batch([make_row()])

        assert orchestrator.context.artifact is None
        assert not (tmp_path / "failed.xlsx").exists()

    def test_warnings_are_not_failures(self, client, provisioner, tmp_path):
        client.fail_on("upsert_operation_policy")
        orchestrator = BatchOrchestrator(provisioner, FailureRecorder(tmp_path / "failed.xlsx"))

        outcomes = orchestrator.run_batch([make_row()])

        assert outcomes[0].succeeded
        assert outcomes[0].warnings
        assert not (tmp_path / "failed.xlsx").exists()
