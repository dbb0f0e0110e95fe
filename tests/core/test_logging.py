"""Tests for gateway_spine.core.logging."""

from gateway_spine.core.logging import (
    LogContext,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    is_configured,
    shutdown_logging,
)
from gateway_spine.provisioning.row import RowProvisioner
from gateway_spine.testing import RecordingResourceClient, make_row


class TestConfigureLogging:
    """Handlers, files and rendered line shape."""

    def test_writes_info_and_error_files(self, tmp_path):
        log_dir = tmp_path / "logs"
        configure_logging(level="INFO", log_dir=log_dir, run_name="provision", force=True)
        log = get_logger("tests")
        log.info("api.created", api_id="weather-api")
        log.error("row.failed", step="upsert-api")
        shutdown_logging()

        info = (log_dir / "provision_info.log").read_text(encoding="utf-8")
        error = (log_dir / "provision_error.log").read_text(encoding="utf-8")
        assert "api.created" in info and "row.failed" in info
        assert "api.created" not in error
        assert "[ERROR]" in error and "step=upsert-api" in error

    def test_console_line_shape(self, tmp_path):
        configure_logging(level="INFO", log_dir=tmp_path, run_name="shape", force=True)
        get_logger("tests").info("policy.applied", operation_id="get-forecast")
        shutdown_logging()

        line = (tmp_path / "shape_info.log").read_text(encoding="utf-8").strip()
        assert line.startswith("[INFO] ")
        assert " - policy.applied operation_id=get-forecast" in line

    def test_files_are_appended(self, tmp_path):
        for event in ("first.run", "second.run"):
            configure_logging(log_dir=tmp_path, run_name="append", force=True)
            get_logger("tests").info(event)
            shutdown_logging()
        content = (tmp_path / "append_info.log").read_text(encoding="utf-8")
        assert "first.run" in content and "second.run" in content

    def test_level_filters_debug(self, tmp_path):
        configure_logging(level="INFO", log_dir=tmp_path, run_name="level", force=True)
        get_logger("tests").debug("hidden.event")
        shutdown_logging()
        assert "hidden.event" not in (tmp_path / "level_info.log").read_text(encoding="utf-8")

    def test_stdout_and_stderr_split(self, capsys):
        configure_logging(level="INFO", force=True)
        log = get_logger("tests")
        log.info("to.stdout")
        log.error("to.stderr")
        shutdown_logging()
        captured = capsys.readouterr()
        assert "to.stdout" in captured.out and "to.stderr" not in captured.out
        assert "to.stderr" in captured.err

    def test_json_format(self, tmp_path):
        configure_logging(format="json", log_dir=tmp_path, run_name="json", force=True)
        get_logger("tests").info("json.event", count=2)
        shutdown_logging()
        line = (tmp_path / "json_info.log").read_text(encoding="utf-8").strip()
        assert '"event": "json.event"' in line
        assert '"count": 2' in line

    def test_is_configured(self):
        configure_logging(force=True)
        assert is_configured() is True


class TestContext:
    """Context binding via structlog contextvars."""

    def test_log_context_binds_and_unbinds(self, tmp_path):
        configure_logging(log_dir=tmp_path, run_name="ctx", force=True)
        log = get_logger("tests")
        with LogContext(row=4, api="orders", skipped=None):
            log.info("inside")
        log.info("outside")
        shutdown_logging()

        inside, outside = (tmp_path / "ctx_info.log").read_text(encoding="utf-8").strip().splitlines()
        assert "row=4" in inside and "api=orders" in inside
        assert "skipped" not in inside
        assert "row=" not in outside

    def test_clear_context(self, tmp_path):
        configure_logging(log_dir=tmp_path, run_name="clear", force=True)
        bind_context(run="r1")
        clear_context()
        get_logger("tests").info("after.clear")
        shutdown_logging()
        assert "run=r1" not in (tmp_path / "clear_info.log").read_text(encoding="utf-8")


class TestStepFailureRouting:
    """Failed steps of either tier reach the error sinks."""

    def test_failed_operation_in_error_log(self, tmp_path):
        client = RecordingResourceClient()
        client.fail_on("upsert_operation", error="template rejected")
        configure_logging(log_dir=tmp_path, run_name="provision", force=True)

        outcome = RowProvisioner(client).provision(make_row())
        shutdown_logging()

        assert outcome.succeeded
        error = (tmp_path / "provision_error.log").read_text(encoding="utf-8")
        assert "step.failed" in error
        assert "severity=non_critical" in error
        assert "template rejected" in error

    def test_failed_critical_step_in_error_log(self, tmp_path):
        client = RecordingResourceClient()
        client.fail_on("bind_api_to_gateway")
        configure_logging(log_dir=tmp_path, run_name="provision", force=True)

        RowProvisioner(client).provision(make_row())
        shutdown_logging()

        error = (tmp_path / "provision_error.log").read_text(encoding="utf-8")
        assert "severity=critical" in error
