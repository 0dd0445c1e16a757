"""Tests for structured logging configuration."""

import json
import logging

import structlog
from structlog.testing import LogCapture

from provisor.core.logging import (
    LogContext,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    reset_logging,
)


class TestConfigureLogging:
    def test_writes_json_lines_to_log_file(self, tmp_path):
        log_file = tmp_path / "logs" / "deployment.log"
        configure_logging(level="INFO", json_format=True, log_file=log_file)

        get_logger("provisor.test").info("vm.created", name="vm-bastion")
        for handler in logging.getLogger().handlers:
            handler.flush()

        line = log_file.read_text(encoding="utf-8").strip().splitlines()[-1]
        event = json.loads(line)
        assert event["event"] == "vm.created"
        assert event["name"] == "vm-bastion"
        assert event["level"] == "info"
        assert event["service.name"] == "provisor"

    def test_level_filters(self, tmp_path):
        log_file = tmp_path / "deployment.log"
        configure_logging(level="WARNING", json_format=True, log_file=log_file)

        logger = get_logger("provisor.test")
        logger.info("hidden")
        logger.warning("shown")
        for handler in logging.getLogger().handlers:
            handler.flush()

        content = log_file.read_text(encoding="utf-8")
        assert "shown" in content
        assert "hidden" not in content

    def test_reconfigure_replaces_handlers(self, tmp_path):
        root = logging.getLogger()
        before = len(root.handlers)
        configure_logging(json_format=True)
        configure_logging(json_format=True, log_file=tmp_path / "a.log")
        assert len(root.handlers) == before + 2
        reset_logging()
        assert len(root.handlers) == before

    def test_reset_restores_structlog_defaults(self):
        configure_logging(json_format=True)
        reset_logging()
        assert structlog.is_configured() is False


class TestContext:
    def _capture(self) -> LogCapture:
        cap = LogCapture()
        structlog.configure(processors=[structlog.contextvars.merge_contextvars, cap])
        return cap

    def test_log_context_binds_and_unbinds(self):
        cap = self._capture()
        logger = get_logger("provisor.test")
        with LogContext(batch_id="b-1"):
            logger.info("inside")
        logger.info("outside")

        assert cap.entries[0]["batch_id"] == "b-1"
        assert "batch_id" not in cap.entries[1]

    def test_bind_and_clear(self):
        cap = self._capture()
        bind_context(resource_group="rg-dev")
        get_logger().info("bound")
        clear_context()
        get_logger().info("cleared")

        assert cap.entries[0]["resource_group"] == "rg-dev"
        assert "resource_group" not in cap.entries[1]
