"""
Tests for structured logging and correlation IDs.
"""

import json
import logging
import sys

import pytest

from chain_insight.utils.structured_logging import (
    CorrelationIdFilter,
    LogContext,
    LoggingManager,
    StructuredFormatter,
    correlation_id,
    get_logger,
    with_correlation_id,
)


@pytest.fixture
def manager():
    """A LoggingManager whose handlers are removed again after the test."""
    root_logger = logging.getLogger()
    level = root_logger.level
    manager = LoggingManager()
    yield manager
    for handler in manager._handlers.values():
        root_logger.removeHandler(handler)
        handler.close()
    root_logger.setLevel(level)


def make_record(message="Block analyzed", **extra):
    record = logging.LogRecord(
        name="chain_insight.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg=message,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestStructuredFormatter:
    """Test JSON rendering of log records."""

    def test_json_fields(self):
        record = make_record(correlation_id="abc123")
        entry = json.loads(StructuredFormatter().format(record))

        assert entry["level"] == "INFO"
        assert entry["logger"] == "chain_insight.test"
        assert entry["message"] == "Block analyzed"
        assert entry["correlation_id"] == "abc123"

    def test_extra_fields(self):
        record = make_record(error_code="E002", network_id=998, payload=object())
        entry = json.loads(StructuredFormatter().format(record))

        assert entry["extra"]["error_code"] == "E002"
        assert entry["extra"]["network_id"] == 998
        assert isinstance(entry["extra"]["payload"], str)

    def test_extra_fields_disabled(self):
        record = make_record(error_code="E002")
        entry = json.loads(StructuredFormatter(include_extra_fields=False).format(record))
        assert "extra" not in entry

    def test_exception_info(self):
        try:
            raise ValueError("bad block")
        except ValueError:
            record = make_record()
            record.exc_info = sys.exc_info()

        entry = json.loads(StructuredFormatter().format(record))
        assert entry["exception"]["type"] == "ValueError"
        assert entry["exception"]["message"] == "bad block"


class TestCorrelationIds:
    """Test correlation ID propagation."""

    def test_filter_stamps_unknown_without_id(self):
        record = make_record()
        assert CorrelationIdFilter().filter(record) is True
        assert record.correlation_id == "unknown"

    @pytest.mark.asyncio
    async def test_async_decorator_sets_and_restores(self):
        @with_correlation_id("request-1")
        async def handle():
            return correlation_id.get()

        assert await handle() == "request-1"
        assert correlation_id.get() is None

    def test_sync_decorator_generates_id(self):
        @with_correlation_id()
        def handle():
            return correlation_id.get()

        first, second = handle(), handle()
        assert first and second
        assert first != second
        assert correlation_id.get() is None

    def test_manager_correlation_helpers(self):
        manager = LoggingManager()
        corr_id = manager.set_correlation_id()
        try:
            assert manager.get_correlation_id() == corr_id
        finally:
            manager.clear_correlation_id()
        assert manager.get_correlation_id() is None


class TestContextualLogger:
    """Test request-scoped logging fields."""

    def test_context_fields_in_extra(self, caplog):
        logger = get_logger("chain_insight.test", LogContext(operation="analyze", network_id=998))

        with caplog.at_level(logging.INFO, logger="chain_insight.test"):
            logger.with_context(request_kind="block").info("Handled", cache_hit=True)

        record = caplog.records[-1]
        assert record.operation == "analyze"
        assert record.network_id == 998
        assert record.request_kind == "block"
        assert record.cache_hit is True

    def test_as_extra_skips_unset_fields(self):
        context = LogContext(identifier="0xabc", additional_fields={"attempt": 2})
        assert context.as_extra() == {"identifier": "0xabc", "attempt": 2}


class TestLoggingManager:
    """Test root logger configuration."""

    def test_setup_console_and_file(self, manager, tmp_path):
        log_file = tmp_path / "logs" / "chain_insight.log"

        manager.setup_logging(log_level="DEBUG", log_file=str(log_file))

        assert manager.configured
        assert manager.handler_names() == ["console", "file"]
        assert log_file.exists()
        assert logging.getLogger().level == logging.DEBUG
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING

    def test_setup_only_once_unless_forced(self, manager):
        manager.setup_logging(console_output=True)
        manager.setup_logging(console_output=False)
        assert manager.handler_names() == ["console"]

        manager.setup_logging(console_output=False, force=True)
        assert manager.handler_names() == []
