"""Tests for structured logging setup."""

import json
import logging

import pytest
import structlog

from proxyca.logging_config import configure_logging, get_logger


@pytest.fixture
def restore_logging():
    """Undo configure_logging() so other tests keep pytest's handlers."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()


class TestConfigureLogging:
    """Test logging configuration."""

    def test_json_logs(self, restore_logging, capsys: pytest.CaptureFixture[str]):
        """Test JSON output carries the event and its key/value context."""
        configure_logging(json_logs=True, log_level="INFO")
        get_logger("proxyca.test").info("Issued leaf certificate", host="example.com")

        payload = json.loads(capsys.readouterr().err.strip().splitlines()[-1])
        assert payload["event"] == "Issued leaf certificate"
        assert payload["host"] == "example.com"
        assert payload["level"] == "info"
        assert payload["logger"] == "proxyca.test"
        assert "timestamp" in payload

    def test_level_filtering(self, restore_logging, capsys: pytest.CaptureFixture[str]):
        """Test events below the configured level are dropped."""
        configure_logging(json_logs=True, log_level="WARNING")
        logger = get_logger("proxyca.test")
        logger.info("hidden")
        logger.warning("shown")

        err = capsys.readouterr().err
        assert "hidden" not in err
        assert "shown" in err
