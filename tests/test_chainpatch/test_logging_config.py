"""Tests for logging setup."""

import logging
import sys

import pytest

from chainpatch import configure, setup_logging
from chainpatch.logging_config import DETAILED_FORMAT, LOGGER_NAME, SIMPLE_FORMAT, log_timing


@pytest.fixture
def package_logger():
    """The package logger, restored to its previous state afterwards."""
    logger = logging.getLogger(LOGGER_NAME)
    level = logger.level
    handlers = list(logger.handlers)
    yield logger
    logger.handlers = handlers
    logger.setLevel(level)


def own_handlers(logger):
    return [h for h in logger.handlers if getattr(h, "_chainpatch", False)]


class TestSetupLogging:
    """Tests for setup_logging()."""

    def test_explicit_level(self, package_logger, mock_env_vars):
        """Test an explicit level is applied to the package logger."""
        logger = setup_logging("warning")

        assert logger is package_logger
        assert logger.level == logging.WARNING
        [handler] = own_handlers(logger)
        assert handler.stream is sys.stdout
        assert handler.formatter._fmt == SIMPLE_FORMAT

    def test_debug_uses_detailed_format(self, package_logger, mock_env_vars):
        """Test DEBUG adds function names and line numbers."""
        logger = setup_logging("DEBUG")

        [handler] = own_handlers(logger)
        assert handler.formatter._fmt == DETAILED_FORMAT

    def test_level_from_settings(self, package_logger, mock_env_vars):
        """Test the log_level setting is used by default."""
        configure(log_level="ERROR")

        assert setup_logging().level == logging.ERROR

    def test_debug_setting(self, package_logger, mock_env_vars):
        """Test the debug setting turns on DEBUG logging."""
        configure(debug=True, log_level="ERROR")

        assert setup_logging().level == logging.DEBUG

    def test_no_duplicate_handlers(self, package_logger, mock_env_vars):
        """Test calling setup twice keeps a single handler."""
        setup_logging("INFO")
        setup_logging("INFO")

        assert len(own_handlers(package_logger)) == 1

    def test_root_logger_untouched(self, package_logger, mock_env_vars):
        root_handlers = list(logging.getLogger().handlers)

        setup_logging("INFO")

        assert logging.getLogger().handlers == root_handlers

    def test_unknown_level(self, package_logger, mock_env_vars):
        """Test unknown level names fall back to INFO."""
        assert setup_logging("chatty").level == logging.INFO


class TestLogTiming:
    """Tests for log_timing()."""

    def test_logs_duration(self, caplog):
        logger = logging.getLogger("chainpatch.test")

        with caplog.at_level(logging.DEBUG, logger="chainpatch"):
            with log_timing(logger, "Chain reset"):
                pass

        assert "Chain reset completed in" in caplog.text

    def test_logs_on_error(self, caplog):
        """Test the duration is logged even when the block raises."""
        logger = logging.getLogger("chainpatch.test")

        with caplog.at_level(logging.DEBUG, logger="chainpatch"):
            with pytest.raises(RuntimeError):
                with log_timing(logger, "Failing step"):
                    raise RuntimeError("boom")

        assert "Failing step completed in" in caplog.text
