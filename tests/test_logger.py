"""
Tests for StepLogger and configure_logging - structured step events.
"""

import json
import logging
import sys
from io import StringIO

import pytest

from homelab_setup.errors import FatalStepError
from homelab_setup.logger import (
    ROOT_LOGGER,
    STEP_LOGGER,
    JsonFormatter,
    StepLogger,
    configure_logging,
)


@pytest.fixture
def captured_logs():
    """Capture log output for testing."""
    return StringIO()


@pytest.fixture
def step_logger(captured_logs):
    """StepLogger writing JSON lines to captured output."""
    logger = logging.getLogger("homelab_setup.tests.steps")
    logger.handlers.clear()
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    handler = logging.StreamHandler(captured_logs)
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    yield StepLogger(logger)
    logger.handlers.clear()


@pytest.fixture
def restore_package_logger():
    yield
    package_logger = logging.getLogger(ROOT_LOGGER)
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()
    package_logger.propagate = True
    package_logger.setLevel(logging.NOTSET)


def parse_log_lines(captured_logs) -> list:
    """Parse every captured JSON line."""
    return [json.loads(line) for line in captured_logs.getvalue().splitlines() if line]


class TestStepLogger:
    """Tests for step lifecycle events."""

    def test_started(self, step_logger, captured_logs):
        step_logger.log_started("preflight", marker="preflight-complete")

        entry = parse_log_lines(captured_logs)[0]
        assert entry["event"] == "step.started"
        assert entry["step"] == "preflight"
        assert entry["marker"] == "preflight-complete"
        assert entry["level"] == "info"

    def test_skipped(self, step_logger, captured_logs):
        step_logger.log_skipped("user", "user-setup-complete")

        entry = parse_log_lines(captured_logs)[0]
        assert entry["event"] == "step.skipped"
        assert entry["status"] == "skipped"

    def test_completed_with_warnings(self, step_logger, captured_logs):
        step_logger.log_completed("nfs", "nfs-setup-complete", duration_s=1.23456, warnings=2)

        entry = parse_log_lines(captured_logs)[0]
        assert entry["status"] == "completed"
        assert entry["duration_s"] == 1.235
        assert entry["warning_count"] == 2

    def test_warning_context_prefixed(self, step_logger, captured_logs):
        step_logger.log_warning("preflight", "gateway down", gateway="192.168.1.1")

        entry = parse_log_lines(captured_logs)[0]
        assert entry["level"] == "warning"
        assert entry["ctx_gateway"] == "192.168.1.1"
        assert entry["message"] == "Step preflight: gateway down"

    def test_failed_carries_error_kind(self, step_logger, captured_logs):
        error = FatalStepError("docker.service is not active")

        step_logger.log_failed("preflight", "preflight-complete", error, 0.5)

        entry = parse_log_lines(captured_logs)[0]
        assert entry["level"] == "error"
        assert entry["error_kind"] == "fatal_step"
        assert entry["error"] == "docker.service is not active"

    def test_failed_with_plain_exception(self, step_logger, captured_logs):
        step_logger.log_failed("user", "user-setup-complete", RuntimeError("x"), 0.0)
        assert parse_log_lines(captured_logs)[0]["error_kind"] == "RuntimeError"

    def test_disabled_has_no_marker(self, step_logger, captured_logs):
        step_logger.log_disabled("wireguard")

        entry = parse_log_lines(captured_logs)[0]
        assert entry["status"] == "disabled"
        assert "marker" not in entry

    def test_markers_cleared(self, step_logger, captured_logs):
        step_logger.log_markers_cleared(4)

        entry = parse_log_lines(captured_logs)[0]
        assert entry["event"] == "markers.cleared"
        assert entry["count"] == 4
        assert "step" not in entry


class TestJsonFormatter:
    def test_exception_included(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = logging.getLogger("x").makeRecord(
                "x", logging.ERROR, __file__, 1, "failed", None, sys.exc_info()
            )

        entry = json.loads(JsonFormatter().format(record))
        assert "ValueError: boom" in entry["exc_info"]


@pytest.mark.usefixtures("restore_package_logger")
class TestConfigureLogging:
    def test_repeat_calls_do_not_stack_handlers(self):
        configure_logging("info")
        configure_logging("debug")

        logger = logging.getLogger(ROOT_LOGGER)
        assert len(logger.handlers) == 1
        assert logger.level == logging.DEBUG

    def test_json_format(self):
        logger = configure_logging("info", fmt="json")
        assert isinstance(logger.handlers[0].formatter, JsonFormatter)

    def test_log_file(self, tmp_path):
        log_file = tmp_path / "logs" / "setup.log"
        configure_logging("info", log_file=str(log_file))

        logging.getLogger(STEP_LOGGER).info("hello")
        for handler in logging.getLogger(ROOT_LOGGER).handlers:
            handler.flush()

        assert "hello" in log_file.read_text()
