"""
Tests for the logging configuration module.
"""

import logging
import os
from pathlib import Path
from unittest.mock import patch

import pytest

from contact_photo_sync.utils.logging import (
    CONSOLE_FORMAT,
    DATE_FORMAT,
    LOGGER_NAME,
    NO_RUN_ID,
    VERBOSE_FORMAT,
    ColoredFormatter,
    RunContextFilter,
    current_run_id,
    get_log_file_path,
    get_log_level_from_env,
    run_context,
    set_log_level,
    setup_logging,
)


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Restore the package logger after each test."""
    logger = logging.getLogger(LOGGER_NAME)
    handlers = list(logger.handlers)
    level = logger.level
    propagate = logger.propagate
    yield
    for handler in logger.handlers:
        if handler not in handlers:
            handler.close()
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate


class TestGetLogLevelFromEnv:
    """Tests for get_log_level_from_env function."""

    @pytest.mark.parametrize("value", ["1", "true", "yes"])
    def test_debug_flag_enables_debug(self, value):
        """Test CONTACT_PHOTO_SYNC_DEBUG enables DEBUG level."""
        with patch.dict(os.environ, {"CONTACT_PHOTO_SYNC_DEBUG": value}):
            assert get_log_level_from_env() == logging.DEBUG

    @patch.dict(
        os.environ,
        {"CONTACT_PHOTO_SYNC_LOG_LEVEL": "WARNING", "CONTACT_PHOTO_SYNC_DEBUG": ""},
    )
    def test_explicit_level(self):
        """Test explicit log level from env."""
        assert get_log_level_from_env() == logging.WARNING

    @patch.dict(
        os.environ,
        {"CONTACT_PHOTO_SYNC_LOG_LEVEL": "WARN", "CONTACT_PHOTO_SYNC_DEBUG": ""},
    )
    def test_warn_alias_for_warning(self):
        """Test WARN is an alias for WARNING."""
        assert get_log_level_from_env() == logging.WARNING

    @patch.dict(
        os.environ,
        {"CONTACT_PHOTO_SYNC_LOG_LEVEL": "LOUD", "CONTACT_PHOTO_SYNC_DEBUG": ""},
    )
    def test_invalid_level_defaults_to_info(self):
        """Test invalid log level defaults to INFO."""
        assert get_log_level_from_env() == logging.INFO


class TestGetLogFilePath:
    """Tests for get_log_file_path function."""

    @patch.dict(os.environ, {"CONTACT_PHOTO_SYNC_LOG_FILE": "/custom/path/app.log"})
    def test_custom_log_file_from_env(self):
        """Test custom log file path from environment."""
        assert get_log_file_path() == Path("/custom/path/app.log")

    @pytest.mark.parametrize("value", ["none", "disabled", ""])
    def test_log_file_disabled(self, value):
        """Test file logging can be disabled from the environment."""
        with patch.dict(os.environ, {"CONTACT_PHOTO_SYNC_LOG_FILE": value}):
            assert get_log_file_path() is None

    def test_default_log_file(self, tmp_path, monkeypatch):
        """Test default log file lives in the config directory's logs."""
        monkeypatch.delenv("CONTACT_PHOTO_SYNC_LOG_FILE", raising=False)
        monkeypatch.setenv("CONTACT_PHOTO_SYNC_CONFIG_DIR", str(tmp_path))
        path = get_log_file_path()
        assert path is not None
        assert path.parent == tmp_path.resolve() / "logs"
        assert path.name.startswith("contact_photo_sync_")
        assert path.suffix == ".log"


class TestColoredFormatter:
    """Tests for ColoredFormatter class."""

    def test_formatter_with_colors_disabled(self):
        """Test formatter with colors explicitly disabled."""
        formatter = ColoredFormatter(CONSOLE_FORMAT, DATE_FORMAT, use_colors=False)
        assert formatter.use_colors is False

    @patch("sys.stderr")
    def test_formatter_non_tty_disables_colors(self, mock_stderr):
        """Test formatter detects non-TTY and disables colors."""
        mock_stderr.isatty.return_value = False
        formatter = ColoredFormatter(CONSOLE_FORMAT, DATE_FORMAT, use_colors=True)
        assert formatter.use_colors is False

    @patch.dict(os.environ, {"NO_COLOR": "1"})
    @patch("sys.stderr")
    def test_formatter_respects_no_color_env(self, mock_stderr):
        """Test formatter respects NO_COLOR environment variable."""
        mock_stderr.isatty.return_value = True
        formatter = ColoredFormatter(CONSOLE_FORMAT, DATE_FORMAT, use_colors=True)
        assert formatter.use_colors is False

    @patch.dict(os.environ, {"NO_COLOR": "", "TERM": "xterm-256color"})
    @patch("sys.stderr")
    def test_colored_output_on_tty(self, mock_stderr):
        """Test ANSI codes are added on a color terminal."""
        mock_stderr.isatty.return_value = True
        formatter = ColoredFormatter(CONSOLE_FORMAT, DATE_FORMAT, use_colors=True)
        record = logging.LogRecord(
            "test", logging.WARNING, "test.py", 1, "Careful", (), None
        )
        result = formatter.format(record)
        assert "\033[33m" in result
        # Original record is left untouched
        assert record.msg == "Careful"

    def test_format_record_without_colors(self):
        """Test formatting a record without colors."""
        formatter = ColoredFormatter(CONSOLE_FORMAT, DATE_FORMAT, use_colors=False)
        record = logging.LogRecord(
            "test", logging.INFO, "test.py", 1, "Test message", (), None
        )
        result = formatter.format(record)
        assert result == "INFO: Test message"


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_setup_logging_returns_package_logger(self):
        """Test setup_logging returns the package logger."""
        logger = setup_logging(enable_file_logging=False)
        assert logger.name == LOGGER_NAME
        assert logger.propagate is False

    def test_setup_logging_with_verbose(self):
        """Test verbose mode sets DEBUG and the verbose format."""
        logger = setup_logging(verbose=True, enable_file_logging=False)
        assert logger.level == logging.DEBUG
        assert logger.handlers[0].formatter._fmt == VERBOSE_FORMAT

    def test_setup_logging_with_explicit_level(self):
        """Test setup_logging with explicit level."""
        logger = setup_logging(level=logging.WARNING, enable_file_logging=False)
        assert logger.level == logging.WARNING

    def test_setup_logging_clears_handlers(self):
        """Test repeated setup doesn't stack handlers."""
        setup_logging(enable_file_logging=False)
        logger = setup_logging(enable_file_logging=False)
        assert len(logger.handlers) == 1

    def test_setup_logging_with_log_dir(self, tmp_path):
        """Test a file handler is added in the given log directory."""
        logger = setup_logging(log_dir=tmp_path, use_colors=False)
        file_handlers = [
            h for h in logger.handlers if isinstance(h, logging.FileHandler)
        ]
        assert len(file_handlers) == 1
        assert Path(file_handlers[0].baseFilename).parent == tmp_path
        assert file_handlers[0].level == logging.DEBUG

    def test_setup_logging_with_log_file(self, tmp_path):
        """Test explicit log file path is used and written."""
        log_file = tmp_path / "nested" / "sync.log"
        logger = setup_logging(level=logging.INFO, log_file=log_file)
        logger.info("hello file")
        for handler in logger.handlers:
            handler.flush()
        assert "hello file" in log_file.read_text(encoding="utf-8")


class TestRunContext:
    """Tests for run id tagging."""

    def test_default_run_id(self):
        """Test records outside a run get the placeholder id."""
        assert current_run_id() == NO_RUN_ID

    def test_run_context_sets_and_restores(self):
        """Test the run id is scoped to the with block."""
        with run_context("abc123"):
            assert current_run_id() == "abc123"
            with run_context("nested"):
                assert current_run_id() == "nested"
            assert current_run_id() == "abc123"
        assert current_run_id() == NO_RUN_ID

    def test_filter_adds_run_id(self):
        """Test RunContextFilter tags records."""
        record = logging.LogRecord("test", logging.INFO, "test.py", 1, "msg", (), None)
        with run_context("run-7"):
            assert RunContextFilter().filter(record) is True
        assert record.run_id == "run-7"

    def test_run_id_written_to_log_file(self, tmp_path):
        """Test the verbose file format includes the run id."""
        log_file = tmp_path / "sync.log"
        logger = setup_logging(level=logging.INFO, log_file=log_file, use_colors=False)

        with run_context("f00dcafe"):
            logging.getLogger("contact_photo_sync.sync.engine").info("tagged")
        for handler in logger.handlers:
            handler.flush()

        assert "[f00dcafe]" in log_file.read_text(encoding="utf-8")


class TestSetLogLevel:
    """Tests for set_log_level."""

    def test_set_log_level_console_only(self):
        """Test the level applies to the logger and console handler."""
        logger = setup_logging(level=logging.DEBUG, enable_file_logging=False)
        set_log_level(logging.ERROR)

        assert logger.level == logging.ERROR
        assert logger.handlers[0].level == logging.ERROR

    def test_set_log_level_keeps_file_handler_at_debug(self, tmp_path):
        """Test set_log_level changes console but not file handlers."""
        logger = setup_logging(level=logging.INFO, log_dir=tmp_path)
        set_log_level(logging.ERROR)

        # The logger stays open to DEBUG so the file keeps full detail
        assert logger.level == logging.DEBUG
        for handler in logger.handlers:
            if isinstance(handler, logging.FileHandler):
                assert handler.level == logging.DEBUG
            else:
                assert handler.level == logging.ERROR
