"""
Tests for logging configuration.
"""

import json
import logging
import sys

from user_service.logger import JSONFormatter


def test_json_formatter_fields():
    record = logging.LogRecord("user_service", logging.INFO, __file__, 10, "User %s created", ("abc",), None)

    payload = json.loads(JSONFormatter().format(record))

    assert payload["level"] == "INFO"
    assert payload["logger"] == "user_service"
    assert payload["message"] == "User abc created"
    assert "timestamp" in payload
    assert "exception" not in payload


def test_json_formatter_includes_exception():
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = logging.LogRecord("user_service", logging.ERROR, __file__, 20, "failed", (), sys.exc_info())

    payload = json.loads(JSONFormatter().format(record))

    assert "RuntimeError: boom" in payload["exception"]
