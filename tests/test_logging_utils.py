"""Tests for structured logging helpers."""

import json
import logging
import sys

import pytest

from context_vault.logging_utils import (
    SessionLoggerAdapter,
    StructuredJsonFormatter,
    configure_console_logging,
    configure_structured_logging,
)


def _record(msg="hello %s", args=("world",), **extra):
    record = logging.LogRecord("context_vault.sync", logging.WARNING, __file__, 10, msg, args, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestStructuredJsonFormatter:
    def test_basic_fields(self):
        output = json.loads(StructuredJsonFormatter().format(_record()))

        assert output["level"] == "WARNING"
        assert output["logger"] == "context_vault.sync"
        assert output["message"] == "hello world"
        assert output["timestamp"].endswith("+00:00")

    def test_extra_fields_included(self):
        record = _record(session_id="session:abc", count=3, path=object())

        output = json.loads(StructuredJsonFormatter().format(record))

        assert output["session_id"] == "session:abc"
        assert output["count"] == 3
        # Non-serializable values are stringified
        assert isinstance(output["path"], str)

    def test_exception_included(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = logging.LogRecord(
                "context_vault", logging.ERROR, __file__, 1, "failed", (), sys.exc_info()
            )

        output = json.loads(StructuredJsonFormatter().format(record))

        assert "ValueError: boom" in output["exception"]


class TestConfigure:
    @pytest.fixture(autouse=True)
    def restore_logger(self):
        logger = logging.getLogger("context_vault.test_configure")
        yield
        logger.handlers.clear()

    def test_structured_replaces_handlers(self):
        configure_structured_logging(logging.DEBUG, "context_vault.test_configure")
        logger = configure_structured_logging(logging.INFO, "context_vault.test_configure")

        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].formatter, StructuredJsonFormatter)
        assert logger.level == logging.INFO

    def test_console(self):
        logger = configure_console_logging(logging.WARNING, "context_vault.test_configure")

        assert len(logger.handlers) == 1
        assert not isinstance(logger.handlers[0].formatter, StructuredJsonFormatter)
        assert logger.level == logging.WARNING


def test_session_adapter_adds_context(caplog):
    log = SessionLoggerAdapter(logging.getLogger("context_vault.adapter"), {"session_id": "session:x"})

    with caplog.at_level(logging.INFO, logger="context_vault.adapter"):
        log.info("appended", extra={"count": 2})

    [record] = caplog.records
    assert record.session_id == "session:x"
    assert record.count == 2
