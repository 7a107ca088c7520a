import logging
import os
from unittest.mock import patch

import pytest
from rich.logging import RichHandler

from autoupdateplugins import log_utils

pytestmark = [pytest.mark.unit]


class TestLogUtils:
    """Test suite for log_utils module."""

    def setup_method(self):
        """Reset logger state before each test."""
        for handler in log_utils.logger.handlers[:]:
            log_utils.logger.removeHandler(handler)
            handler.close()

        log_utils._file_handler = None
        log_utils._initialize_logger()

    def teardown_method(self):
        for handler in log_utils.logger.handlers[:]:
            log_utils.logger.removeHandler(handler)
            handler.close()
        log_utils._file_handler = None
        log_utils._initialize_logger()

    def test_logger_initialization(self):
        assert log_utils.logger.name == "autoupdateplugins"
        assert not log_utils.logger.propagate
        assert len(log_utils.logger.handlers) == 1
        assert isinstance(log_utils.logger.handlers[0], RichHandler)

    def test_provider_tags_are_not_markup(self):
        """Tags such as "[GitHub]" must be printed literally."""
        assert log_utils.logger.handlers[0].markup is False

    def test_logger_initialization_with_env_var(self):
        with patch.dict(os.environ, {"AUTOUPDATEPLUGINS_LOG_LEVEL": "DEBUG"}):
            log_utils._initialize_logger()
            assert log_utils.logger.level == logging.DEBUG
            assert log_utils.logger.handlers[0].level == logging.DEBUG

    def test_logger_initialization_with_invalid_env_var(self):
        with patch.dict(os.environ, {"AUTOUPDATEPLUGINS_LOG_LEVEL": "INVALID"}):
            log_utils._initialize_logger()
            assert log_utils.logger.level == logging.INFO

    def test_set_log_level_valid(self):
        log_utils.set_log_level("debug")
        assert log_utils.logger.level == logging.DEBUG

        log_utils.set_log_level("WARNING")
        assert log_utils.logger.level == logging.WARNING
        assert log_utils.logger.handlers[0].level == logging.WARNING

    def test_set_log_level_invalid(self):
        original_level = log_utils.logger.level
        log_utils.set_log_level("INVALID_LEVEL")
        assert log_utils.logger.level == original_level

    def test_add_file_logging(self, tmp_path):
        log_dir = tmp_path / "logs"

        log_utils.add_file_logging(log_dir, "DEBUG")
        log_utils.logger.warning("written to file")
        log_utils._file_handler.flush()

        log_file = log_dir / "autoupdateplugins.log"
        assert log_file.exists()
        assert "written to file" in log_file.read_text(encoding="utf-8")
        assert log_utils._file_handler.level == logging.DEBUG

    def test_add_file_logging_replaces_previous_handler(self, tmp_path):
        log_utils.add_file_logging(tmp_path / "one")
        first = log_utils._file_handler

        log_utils.add_file_logging(tmp_path / "two", "NOPE")

        assert first not in log_utils.logger.handlers
        assert log_utils._file_handler in log_utils.logger.handlers
        assert log_utils._file_handler.level == logging.INFO
