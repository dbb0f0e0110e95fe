"""Tests for gateway_spine.provisioning.failures: retry-ready artifacts."""

from __future__ import annotations

import pytest

from gateway_spine.core.errors import SourceError
from gateway_spine.core.models import ProvisioningOutcome
from gateway_spine.provisioning.batch import BatchOrchestrator
from gateway_spine.provisioning.failures import ERROR_COLUMN, FailureRecorder, failure_row
from gateway_spine.provisioning.row import RowProvisioner
from gateway_spine.sources.mapping import map_rows
from gateway_spine.sources.tabular import read_rows, write_rows
from gateway_spine.testing import RecordingResourceClient, make_row


class TestFailureRow:
    def test_original_fields_plus_error(self):
        outcome = ProvisioningOutcome.failure(
            make_row(source_record={"APIName": "Orders", "rateLimitCeiling": 10}), "upsert-api", "conflict"
        )
        assert failure_row(outcome) == {"APIName": "Orders", "rateLimitCeiling": 10, "_error": "upsert-api: conflict"}

    def test_stale_error_replaced(self):
        record = {"APIName": "Orders", "_error": "bind-gateway: old"}
        outcome = ProvisioningOutcome.failure(None, "map-row", "Missing systemDomains", source_record=record)

        row = failure_row(outcome)

        assert row[ERROR_COLUMN] == "map-row: Missing systemDomains"
        assert list(row) == ["APIName", "_error"]
        assert record["_error"] == "bind-gateway: old"


class TestFailureRecorder:
    def test_no_failures_no_file(self, tmp_path):
        recorder = FailureRecorder(tmp_path / "failed.xlsx")
        assert recorder.record([ProvisioningOutcome.success(make_row(), "weather-api")]) is None
        assert not (tmp_path / "failed.xlsx").exists()

    def test_existing_artifact_untouched_when_nothing_failed(self, tmp_path):
        path = tmp_path / "failed.csv"
        path.write_text("APIName,_error\nOld,x\n", encoding="utf-8")

        FailureRecorder(path).record([])

        assert path.read_text(encoding="utf-8") == "APIName,_error\nOld,x\n"

    def test_only_failures_written(self, tmp_path):
        ok = ProvisioningOutcome.success(make_row(source_record={"APIName": "A"}), "a")
        bad = ProvisioningOutcome.failure(make_row(source_record={"APIName": "B"}), "assign-products", "none")

        path = FailureRecorder(tmp_path / "failed.csv").record([ok, bad])

        assert read_rows(path) == [{"APIName": "B", "_error": "assign-products: none"}]

    def test_never_overwrites_input(self, tmp_path):
        input_path = write_rows(tmp_path / "apis.xlsx", [{"APIName": "Orders"}])

        recorder = FailureRecorder(input_path, input_path=input_path)
        path = recorder.record([ProvisioningOutcome.failure(make_row(), "upsert-api", "boom")])

        assert recorder.output_path == tmp_path / "apis_failed.xlsx"
        assert path == tmp_path / "apis_failed.xlsx"
        assert read_rows(input_path) == [{"APIName": "Orders"}]

    def test_different_output_kept(self, tmp_path):
        recorder = FailureRecorder(tmp_path / "out.xlsx", input_path=tmp_path / "in.xlsx")
        assert recorder.output_path == tmp_path / "out.xlsx"

    def test_unsupported_format_rejected_on_construction(self, tmp_path):
        with pytest.raises(SourceError, match=".json"):
            FailureRecorder(tmp_path / "failed.json")
        assert not (tmp_path / "failed.json").exists()


class TestRetryRoundTrip:
    """The artifact can be fed straight back in once the cause is fixed."""

    def test_rerun_of_artifact(self, tmp_path, weather_record):
        orders = {"APIName": "Orders", "systemDomains": "orders.internal", "packageName": "Orders Plan"}
        input_path = write_rows(tmp_path / "apis.xlsx", [weather_record, orders])
        client = RecordingResourceClient()
        client.fail_on("assign_api_to_product", target="orders-plan")

        configs, mapping_failures = map_rows(read_rows(input_path))
        recorder = FailureRecorder(input_path, input_path=input_path)
        orchestrator = BatchOrchestrator(RowProvisioner(client), recorder)
        outcomes = orchestrator.run_batch(configs, prior_failures=mapping_failures)

        assert [o.succeeded for o in outcomes] == [True, False]
        artifact = orchestrator.context.artifact
        failed_rows = read_rows(artifact)
        assert len(failed_rows) == 1
        assert failed_rows[0]["APIName"] == "Orders"
        assert failed_rows[0][ERROR_COLUMN].startswith("assign-products: ")

        client.clear_failures()
        retry_configs, retry_mapping_failures = map_rows(failed_rows)
        retry = BatchOrchestrator(RowProvisioner(client), FailureRecorder(artifact, input_path=artifact))
        retry_outcomes = retry.run_batch(retry_configs, prior_failures=retry_mapping_failures)

        assert retry_mapping_failures == []
        assert [o.succeeded for o in retry_outcomes] == [True]
        assert retry.context.artifact is None
        assert ("orders-plan", "orders") in client.product_apis
