# backend/tests/utils/test_logging.py
"""Tests for logging setup."""

import json
import logging

import pytest

from portfolio_tracker.utils.logging import JsonFormatter, _get_log_level, setup_logging


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


class TestGetLogLevel:

    @pytest.mark.parametrize("name,expected", [
        ("debug", logging.DEBUG),
        (" INFO ", logging.INFO),
        ("warn", logging.WARNING),
        ("CRITICAL", logging.CRITICAL),
    ])
    def test_valid(self, name, expected):
        assert _get_log_level(name) == expected

    def test_invalid(self):
        with pytest.raises(ValueError, match="Invalid log level"):
            _get_log_level("LOUD")


class TestSetupLogging:

    def test_text_format(self):
        setup_logging(level="DEBUG", log_format="text")

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert not isinstance(root.handlers[0].formatter, JsonFormatter)

    def test_json_format(self):
        setup_logging(level="INFO", log_format="json")

        assert isinstance(logging.getLogger().handlers[0].formatter, JsonFormatter)

    def test_noisy_loggers_suppressed(self):
        setup_logging(level="DEBUG")

        assert logging.getLogger("yfinance").level == logging.WARNING


class TestJsonFormatter:

    def test_fields_and_extra(self):
        record = logging.LogRecord(
            name="portfolio_tracker.test",
            level=logging.WARNING,
            pathname=__file__,
            lineno=1,
            msg="No %s rate",
            args=("USD",),
            exc_info=None,
        )
        record.holding = "AAPL"

        payload = json.loads(JsonFormatter().format(record))

        assert payload["level"] == "WARNING"
        assert payload["logger"] == "portfolio_tracker.test"
        assert payload["message"] == "No USD rate"
        assert payload["extra"] == {"holding": "AAPL"}
