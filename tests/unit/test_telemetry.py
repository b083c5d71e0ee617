"""Unit tests for telemetry module."""

import asyncio
import json
import logging
import sys

import pytest

from waffle_intel.commons.telemetry.decorators import LogContext, log_exceptions, timed
from waffle_intel.commons.telemetry.logger import (
    JsonFormatter,
    TextFormatter,
    build_formatter,
    clear_log_context,
    configure_logging,
    get_correlation_id,
    get_log_context,
    set_correlation_id,
    set_log_context,
)


class _ListHandler(logging.Handler):
    def __init__(self) -> None:
        super().__init__()
        self.records: list[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)


@pytest.fixture
def captured():
    """Attach a collecting handler to a dedicated logger."""
    logger = logging.getLogger("tests.telemetry")
    logger.setLevel(logging.DEBUG)
    handler = _ListHandler()
    logger.addHandler(handler)
    yield logger, handler
    logger.removeHandler(handler)


def _record(msg: str = "hello", **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="waffle_intel.test",
        level=logging.INFO,
        pathname="module.py",
        lineno=7,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestCorrelationId:
    """Tests for correlation ID management."""

    def test_set_and_get_correlation_id(self):
        cid = set_correlation_id("req-123")
        assert cid == "req-123"
        assert get_correlation_id() == "req-123"

    def test_auto_generate_correlation_id(self):
        cid = set_correlation_id()
        assert len(cid) == 36

    def test_correlation_id_isolation(self):
        set_correlation_id("outer")

        async def inner():
            set_correlation_id("inner")
            return get_correlation_id()

        assert asyncio.run(inner()) == "inner"
        assert get_correlation_id() == "outer"


class TestLogContext:
    """Tests for logging context management."""

    def setup_method(self):
        clear_log_context()

    def teardown_method(self):
        clear_log_context()

    def test_set_and_get_context(self):
        set_log_context(search_id="s1")
        assert get_log_context() == {"search_id": "s1"}

    def test_context_is_copied(self):
        set_log_context(key="value")
        ctx = get_log_context()
        ctx["other"] = 1
        assert "other" not in get_log_context()

    def test_context_manager_restores_previous(self):
        set_log_context(outer=True)
        with LogContext(content_key="waffles/a.mp4"):
            assert get_log_context() == {
                "outer": True,
                "content_key": "waffles/a.mp4",
            }
        assert get_log_context() == {"outer": True}

    async def test_async_context_manager(self):
        async with LogContext(search_id="abc"):
            assert get_log_context()["search_id"] == "abc"
        assert "search_id" not in get_log_context()

    async def test_context_is_inherited_by_tasks(self):
        async def read():
            return get_log_context().get("search_id")

        async with LogContext(search_id="abc"):
            task = asyncio.create_task(read())
        assert await task == "abc"


class TestJsonFormatter:
    """Tests for JSON log formatter."""

    def setup_method(self):
        clear_log_context()

    def test_basic_format(self):
        data = json.loads(JsonFormatter().format(_record()))
        assert data["message"] == "hello"
        assert data["level"] == "INFO"
        assert data["logger"] == "waffle_intel.test"
        assert data["path"] == "module.py:7"

    def test_includes_service_correlation_and_context(self):
        set_correlation_id("cid-1")
        set_log_context(search_id="s-9")
        data = json.loads(JsonFormatter(service="waffle-intel").format(_record()))
        assert data["service"] == "waffle-intel"
        assert data["correlation_id"] == "cid-1"
        assert data["context"] == {"search_id": "s-9"}
        clear_log_context()

    def test_extra_fields_are_flattened(self):
        data = json.loads(JsonFormatter().format(_record(step="probing", ms=1.5)))
        assert data["step"] == "probing"
        assert data["ms"] == 1.5

    def test_exception_is_rendered(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = _record()
            record.exc_info = sys.exc_info()
        data = json.loads(JsonFormatter().format(record))
        assert "ValueError: boom" in data["exception"]


class TestTextFormatter:
    """Tests for the development formatter."""

    def test_contains_level_logger_and_extras(self):
        set_correlation_id("abcdef123456")
        line = TextFormatter().format(_record(step="storing"))
        assert "INFO" in line
        assert "[waffle_intel.test]" in line
        assert "[abcdef12]" in line
        assert "step=storing" in line


class TestConfigureLogging:
    """Tests for logger configuration."""

    def test_build_formatter(self):
        assert isinstance(build_formatter("json"), JsonFormatter)
        assert isinstance(build_formatter("text"), TextFormatter)

    def test_named_logger_does_not_propagate(self):
        logger = configure_logging(
            level="DEBUG", format_type="text", logger_name="tests.configured"
        )
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].formatter, TextFormatter)
        assert logger.propagate is False

    def test_reconfiguring_replaces_handler(self):
        configure_logging(logger_name="tests.reconfigured")
        logger = configure_logging(logger_name="tests.reconfigured")
        assert len(logger.handlers) == 1


class TestTimedDecorator:
    """Tests for the timing decorator."""

    async def test_async_function(self, captured):
        logger, handler = captured

        @timed(logger=logger, operation="work")
        async def work():
            return 42

        assert await work() == 42
        assert handler.records[0].getMessage() == "work completed"
        assert handler.records[0].operation == "work"
        assert handler.records[0].duration_ms >= 0

    def test_sync_function_failure_is_logged_and_raised(self, captured):
        logger, handler = captured

        @timed(logger=logger)
        def broken():
            raise RuntimeError("nope")

        with pytest.raises(RuntimeError):
            broken()
        assert handler.records[0].getMessage().endswith("failed")

    async def test_threshold_suppresses_fast_calls(self, captured):
        logger, handler = captured

        @timed(logger=logger, threshold_ms=10_000)
        async def fast():
            return None

        await fast()
        assert handler.records == []


class TestLogExceptions:
    """Tests for the exception-logging decorator."""

    async def test_logs_and_reraises(self, captured):
        logger, handler = captured

        @log_exceptions(logger=logger, message="ingest failed")
        async def failing():
            raise KeyError("missing")

        with pytest.raises(KeyError):
            await failing()
        assert handler.records[0].getMessage() == "ingest failed"
        assert handler.records[0].exception_type == "KeyError"
