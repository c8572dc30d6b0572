"""
Tests for structured logging configuration.

Validates:
  1. configure_logging() is idempotent (safe to call twice)
  2. switching text <-> json replaces the renderer instead of adding handlers
  3. third-party HTTP loggers are held at WARNING
  4. module loggers emit snake_case events with key-value context
"""

from __future__ import annotations

import json
import logging

import structlog

from commitlink.core.logging import configure_logging


def _structlog_handlers() -> int:
    return sum(
        1
        for h in logging.getLogger().handlers
        if isinstance(h.formatter, structlog.stdlib.ProcessorFormatter)
    )


class TestConfigureLogging:
    def setup_method(self) -> None:
        logging.getLogger().handlers.clear()
        structlog.reset_defaults()

    def teardown_method(self) -> None:
        logging.getLogger().handlers.clear()
        structlog.reset_defaults()

    def test_idempotent_double_call(self) -> None:
        configure_logging(level="DEBUG")
        first = _structlog_handlers()
        configure_logging(level="DEBUG")
        assert _structlog_handlers() == first == 1

    def test_sets_root_log_level(self) -> None:
        configure_logging(level="WARNING")
        assert logging.getLogger().level == logging.WARNING
        configure_logging(level="debug")
        assert logging.getLogger().level == logging.DEBUG

    def test_unknown_level_falls_back_to_warning(self) -> None:
        configure_logging(level="LOUD")
        assert logging.getLogger().level == logging.WARNING

    def test_suppresses_noisy_third_party(self) -> None:
        configure_logging(level="DEBUG")
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("httpcore").level == logging.WARNING

    def test_json_output_is_valid_json(self, capsys) -> None:
        configure_logging(level="INFO", json_output=True)
        structlog.get_logger("commitlink.test").info("issues_listed", repository="o/r", count=3)
        line = capsys.readouterr().err.strip().splitlines()[-1]
        record = json.loads(line)
        assert record["event"] == "issues_listed"
        assert record["repository"] == "o/r"
        assert record["count"] == 3
        assert record["level"] == "info"

    def test_switching_renderer_keeps_single_handler(self, capsys) -> None:
        configure_logging(level="INFO")
        configure_logging(level="INFO", json_output=True)
        assert _structlog_handlers() == 1
        structlog.get_logger("commitlink.test").info("run_started", root="/tmp")
        line = capsys.readouterr().err.strip().splitlines()[-1]
        assert json.loads(line)["event"] == "run_started"
