"""
Tests for logging configuration module.
"""

import io
import logging

import pytest

from toolchain_probe import logging_config
from toolchain_probe.logging_config import (
    LOGGER_NAME,
    ColoredFormatter,
    effective_level,
    get_logger,
    setup_logging,
)


@pytest.fixture(autouse=True)
def reset_package_logger(monkeypatch):
    """Restore the package logger so other tests see default propagation."""
    monkeypatch.delenv("TOOLCHAIN_PROBE_DEBUG", raising=False)
    monkeypatch.setattr(logging_config, "_logger", None)
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


def _record(level=logging.INFO, msg="Test message"):
    return logging.LogRecord(
        name="toolchain_probe.test",
        level=level,
        pathname="",
        lineno=0,
        msg=msg,
        args=(),
        exc_info=None,
    )


class TestEffectiveLevel:
    """Tests for level selection."""

    def test_named_level(self):
        assert effective_level("warning") == logging.WARNING

    def test_verbose_beats_quiet(self):
        assert effective_level("ERROR", verbose=True, quiet=True) == logging.DEBUG

    def test_quiet(self):
        assert effective_level("DEBUG", quiet=True) == logging.WARNING

    def test_debug_env(self, monkeypatch):
        monkeypatch.setenv("TOOLCHAIN_PROBE_DEBUG", "1")
        assert effective_level("ERROR") == logging.DEBUG

    def test_unknown_level(self):
        with pytest.raises(ValueError, match="Unknown log level"):
            effective_level("LOUD")


class TestSetupLogging:
    """Test logging setup and configuration."""

    def test_setup_logging_default(self):
        """Test default logging setup."""
        logger = setup_logging()
        assert logger.name == "toolchain_probe"
        assert logger.level == logging.INFO
        assert logger.propagate is False

    def test_setup_logging_verbose(self):
        """Test verbose logging enables DEBUG level."""
        logger = setup_logging(verbose=True)
        assert logger.level == logging.DEBUG

    def test_console_goes_to_given_stream(self):
        stream = io.StringIO()
        setup_logging(quiet=True, stream=stream)

        logging.getLogger("toolchain_probe.probe").info("hidden")
        logging.getLogger("toolchain_probe.probe").warning("pipx lists rapidkit-core but its apps are broken")

        assert stream.getvalue() == "warning: pipx lists rapidkit-core but its apps are broken\n"

    def test_setup_logging_with_file(self, tmp_path):
        """Test that the file receives DEBUG records the console filters out."""
        log_file = tmp_path / "logs" / "probe.log"
        stream = io.StringIO()
        logger = setup_logging(log_file=str(log_file), stream=stream)

        logging.getLogger("toolchain_probe.probe").debug("rapidkit-core: conda had no answer")
        for handler in logger.handlers:
            handler.flush()

        content = log_file.read_text()
        assert "[DEBUG] toolchain_probe.probe: rapidkit-core: conda had no answer" in content
        assert stream.getvalue() == ""
        assert logger.level == logging.DEBUG

    def test_setup_logging_is_idempotent(self):
        setup_logging()
        logger = setup_logging()
        assert len(logger.handlers) == 1

    def test_setup_logging_propagate(self):
        logger = setup_logging(propagate=True)
        assert logger.propagate is True


class TestGetLogger:
    """Test logger retrieval."""

    def test_get_logger_initializes_once(self):
        logger1 = get_logger()
        logger2 = get_logger()
        assert logger1 is logger2
        assert logger1.name == LOGGER_NAME


class TestColoredFormatter:
    """Test colored log formatter."""

    def test_colored_formatter_with_colors(self):
        formatter = ColoredFormatter(use_colors=True)
        formatted = formatter.format(_record())
        assert formatted.endswith("Test message")
        assert "\033[" in formatted

    def test_colored_formatter_without_colors(self):
        formatter = ColoredFormatter(use_colors=False)
        assert formatter.format(_record(logging.WARNING)) == "warning: Test message"

    @pytest.mark.parametrize("level", [
        logging.DEBUG, logging.INFO, logging.WARNING, logging.ERROR, logging.CRITICAL,
    ])
    def test_colored_formatter_all_levels(self, level):
        formatter = ColoredFormatter("%(levelname_colored)s", use_colors=True)
        formatted = formatter.format(_record(level))
        assert logging.getLevelName(level).lower() in formatted
        assert formatted.endswith(ColoredFormatter.RESET)
