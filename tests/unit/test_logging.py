"""Unit tests for logging setup."""
import logging

from app.core.logging import QUIET_LOGGERS, resolve_level, setup_logging


class TestLogging:
    """Test log level handling."""

    def test_resolve_level(self):
        assert resolve_level("debug") == logging.DEBUG
        assert resolve_level("WARNING") == logging.WARNING
        assert resolve_level("loud") == logging.INFO
        assert resolve_level(None) == logging.INFO

    def test_third_party_loggers_are_quieted(self):
        setup_logging("DEBUG")
        for name in QUIET_LOGGERS:
            assert logging.getLogger(name).level == logging.WARNING
