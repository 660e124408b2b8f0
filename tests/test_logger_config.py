"""Tests for logger_config module."""

import logging
import logging.handlers
import os
import sys
from pathlib import Path
from unittest import mock

import pytest

from msgintel.logger_config import CHATTY_LOGGERS, get_log_level, setup_logging


class TestGetLogLevel:
    """Tests for get_log_level function."""

    def test_default_is_info(self):
        """Default log level is INFO when the env var is not set."""
        with mock.patch.dict(os.environ, {}, clear=True):
            assert get_log_level() == logging.INFO

    @pytest.mark.parametrize("name", ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    def test_named_levels(self, name):
        with mock.patch.dict(os.environ, {"LOG_LEVEL": name}):
            assert get_log_level() == getattr(logging, name)

    def test_case_insensitive(self):
        with mock.patch.dict(os.environ, {"LOG_LEVEL": "Debug"}):
            assert get_log_level() == logging.DEBUG

    def test_invalid_level_falls_back_to_info(self):
        with mock.patch.dict(os.environ, {"LOG_LEVEL": "INVALID"}):
            assert get_log_level() == logging.INFO

    def test_non_level_attribute_falls_back_to_info(self):
        """Names that exist on the logging module but are not levels are rejected."""
        with mock.patch.dict(os.environ, {"LOG_LEVEL": "BASIC_FORMAT"}):
            assert get_log_level() == logging.INFO


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_sets_root_level(self):
        setup_logging(level=logging.WARNING)
        assert logging.getLogger().level == logging.WARNING

    def test_console_writes_to_stderr(self):
        """stdout carries rendered output, so logs must go to stderr."""
        setup_logging(level=logging.INFO)
        streams = [
            h.stream
            for h in logging.getLogger().handlers
            if isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
        ]
        assert streams == [sys.stderr]

    def test_log_file_handler(self, tmp_path: Path):
        log_file = tmp_path / "msgintel.log"
        setup_logging(level=logging.INFO, log_file=str(log_file))

        rotating = [
            h for h in logging.getLogger().handlers
            if isinstance(h, logging.handlers.RotatingFileHandler)
        ]
        assert len(rotating) == 1
        assert rotating[0].maxBytes == 10_485_760
        assert rotating[0].backupCount == 5

        logging.getLogger("msgintel.test").info("hello file")
        rotating[0].flush()
        assert "hello file" in log_file.read_text()

    def test_custom_format(self, tmp_path: Path):
        log_file = tmp_path / "fmt.log"
        setup_logging(level=logging.INFO, format_string="%(levelname)s|%(message)s", log_file=str(log_file))
        logging.getLogger("msgintel.test").warning("custom")
        for handler in logging.getLogger().handlers:
            handler.flush()
        assert "WARNING|custom" in log_file.read_text()

    def test_can_be_called_repeatedly(self, monkeypatch):
        monkeypatch.delenv("MSGINTEL_LOG_FILE", raising=False)
        setup_logging(level=logging.INFO)
        setup_logging(level=logging.DEBUG)
        assert logging.getLogger().level == logging.DEBUG
        assert len(logging.getLogger().handlers) == 1

    def test_env_level_used_by_default(self):
        with mock.patch.dict(os.environ, {"LOG_LEVEL": "ERROR"}):
            setup_logging()
        assert logging.getLogger().level == logging.ERROR

    def test_log_file_from_env(self, monkeypatch, tmp_path: Path):
        log_file = tmp_path / "env.log"
        monkeypatch.setenv("MSGINTEL_LOG_FILE", str(log_file))
        setup_logging(level=logging.INFO)
        assert any(
            isinstance(h, logging.handlers.RotatingFileHandler) for h in logging.getLogger().handlers
        )

    def test_chatty_loggers_quieted(self):
        setup_logging(level=logging.INFO)
        for name in CHATTY_LOGGERS:
            assert logging.getLogger(name).level == logging.WARNING

    def test_chatty_loggers_follow_debug(self):
        setup_logging(level=logging.DEBUG)
        for name in CHATTY_LOGGERS:
            assert logging.getLogger(name).level == logging.DEBUG
