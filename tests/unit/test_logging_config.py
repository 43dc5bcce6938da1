"""Unit tests for loreworks/logging_config.py: structlog-based logging setup."""
# LoreWorks - World Info Activation Engine
# Copyright (C) 2026 LoreWorks Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import json
import logging

import pytest
import structlog

from loreworks.logging_config import (
    get_request_id,
    set_request_id,
    setup_logging,
)


# ── Request ID contextvars ────────────────────────────────


class TestRequestId:
    def setup_method(self):
        structlog.contextvars.clear_contextvars()

    def test_default_value(self):
        assert get_request_id() == "-"

    def test_set_and_get(self):
        set_request_id("eval-abc-123")
        assert get_request_id() == "eval-abc-123"

    def teardown_method(self):
        structlog.contextvars.clear_contextvars()


# ── setup_logging ─────────────────────────────────────────


class TestSetupLogging:
    @pytest.fixture(autouse=True)
    def _reset_logging(self):
        """Reset root logger after each test."""
        yield
        root = logging.getLogger()
        for h in root.handlers:
            h.close()
        root.handlers.clear()
        root.setLevel(logging.WARNING)
        structlog.contextvars.clear_contextvars()

    def test_console_only(self):
        setup_logging(level="DEBUG", log_dir=None)
        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0], logging.StreamHandler)

    def test_with_file_handler(self, tmp_path):
        setup_logging(level="INFO", log_dir=tmp_path, json_file=True)
        handler_types = [type(h).__name__ for h in logging.getLogger().handlers]
        assert "RotatingFileHandler" in handler_types
        assert (tmp_path / "loreworks.log").exists()

    def test_unknown_level_falls_back_to_info(self):
        setup_logging(level="chatty", log_dir=None)
        assert logging.getLogger().level == logging.INFO

    def test_json_file_carries_request_id(self, tmp_path):
        setup_logging(level="DEBUG", log_dir=tmp_path, json_file=True)
        set_request_id("req-42")
        logging.getLogger("loreworks.test").info("hello %s", "world")
        for h in logging.getLogger().handlers:
            h.flush()

        line = (tmp_path / "loreworks.log").read_text(encoding="utf-8").strip().splitlines()[-1]
        record = json.loads(line)
        assert record["event"] == "hello world"
        assert record["request_id"] == "req-42"
        assert record["logger"] == "loreworks.test"
