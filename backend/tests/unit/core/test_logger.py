"""Unit tests for the logging utility."""

from __future__ import annotations

import json
import logging

from sessionguard.core.logger import JSONFormatter, configure_logging, ensure_request_id


def test_configure_logging_sets_level() -> None:
    """``configure_logging`` should set the root logger level."""

    # Act
    configure_logging("DEBUG")

    # Assert
    assert logging.getLogger().level == logging.DEBUG


def test_json_formatter_copies_known_extras() -> None:
    record = logging.LogRecord("sessionguard.test", logging.INFO, __file__, 1, "refresh.rotated", None, None)
    record.user_id = 7
    record.failure = "token_revoked"
    record.password = "must-not-appear"

    payload = json.loads(JSONFormatter().format(record))

    assert payload["message"] == "refresh.rotated"
    assert payload["level"] == "INFO"
    assert payload["user_id"] == 7
    assert payload["failure"] == "token_revoked"
    assert "password" not in payload


def test_request_id_is_taken_from_header(app) -> None:
    with app.app_context(), app.test_request_context("/", headers={"X-Request-ID": "req-123"}):
        assert ensure_request_id() == "req-123"
        assert ensure_request_id() == "req-123"


def test_request_id_is_generated_once_per_request(app) -> None:
    with app.app_context(), app.test_request_context("/"):
        first = ensure_request_id()
        assert first
        assert ensure_request_id() == first
