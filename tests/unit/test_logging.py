"""
Unit Tests - Structured Logging
"""

import asyncio
import io
import json

import pytest

from gleaner.observability import logging as gleaner_logging
from gleaner.observability.logging import (
    BufferHandler,
    ConsoleHandler,
    FileHandler,
    LogLevel,
    StructuredLogger,
    configure_logging,
    get_logger,
)


@pytest.fixture
def restore_default_handlers():
    handlers = list(gleaner_logging._default_handlers)
    level = gleaner_logging._default_level[0]
    yield
    for handler in gleaner_logging._default_handlers:
        if isinstance(handler, FileHandler):
            handler.close()
    gleaner_logging._default_handlers[:] = handlers
    gleaner_logging._default_level[0] = level


class TestStructuredLogger:
    """Tests for StructuredLogger."""

    def test_level_filtering(self, log_buffer):
        logger = StructuredLogger("test", level=LogLevel.WARNING, handlers=[log_buffer])

        logger.info("ignored")
        logger.warning("kept")

        assert log_buffer.messages() == ["kept"]

    def test_context_is_attached_and_restored(self, buffer_logger, log_buffer):
        with buffer_logger.context(source_id="feed-1"):
            with buffer_logger.context(job="42"):
                buffer_logger.info("inner")
            buffer_logger.info("outer")
        buffer_logger.info("after")

        inner, outer, after = log_buffer.records
        assert inner.context == {"source_id": "feed-1", "job": "42"}
        assert outer.context == {"source_id": "feed-1"}
        assert after.context == {}

    @pytest.mark.asyncio
    async def test_context_does_not_leak_between_tasks(self, buffer_logger, log_buffer):
        entered = asyncio.Event()
        release = asyncio.Event()

        async def job():
            with buffer_logger.context(source_id="feed-1"):
                entered.set()
                await release.wait()
                buffer_logger.info("job")

        task = asyncio.create_task(job())
        await entered.wait()
        buffer_logger.info("sibling")
        release.set()
        await task

        sibling, job_record = log_buffer.records
        assert sibling.context == {}
        assert job_record.context == {"source_id": "feed-1"}

    def test_error_details(self, buffer_logger, log_buffer):
        try:
            raise RuntimeError("disk full")
        except RuntimeError as e:
            buffer_logger.error("Write failed", error=e, path="/tmp/x")

        record = log_buffer.records[0]
        assert record.error == "disk full"
        assert record.error_type == "RuntimeError"
        assert "Traceback" in record.stack_trace
        assert record.data == {"path": "/tmp/x"}

    def test_json_console_output(self):
        stream = io.StringIO()
        logger = StructuredLogger("test", handlers=[ConsoleHandler(stream=stream)])

        with logger.context(source_id="feed-1"):
            logger.info("Fetched", items=3)

        payload = json.loads(stream.getvalue())
        assert payload["message"] == "Fetched"
        assert payload["level"] == "INFO"
        assert payload["source_id"] == "feed-1"
        assert payload["data"] == {"items": 3}

    def test_text_console_output(self):
        stream = io.StringIO()
        logger = StructuredLogger("test", handlers=[ConsoleHandler(stream=stream, json_output=False)])

        logger.warning("Slow fetch")

        assert "WARNING" in stream.getvalue()
        assert "test: Slow fetch" in stream.getvalue()

    def test_buffer_is_bounded(self):
        buffer = BufferHandler(max_records=3)
        logger = StructuredLogger("test", handlers=[buffer])

        for i in range(5):
            logger.info(f"m{i}")

        assert buffer.messages() == ["m2", "m3", "m4"]


class TestConfigureLogging:
    """Tests for configure_logging and the shared handlers."""

    def test_existing_loggers_follow_configuration(self, restore_default_handlers, tmp_path):
        logger = get_logger("gleaner.early")
        log_file = tmp_path / "gleaner.log"

        configure_logging(level="WARNING", json_output=True, log_file=str(log_file))
        logger.info("dropped")
        logger.warning("written")

        lines = log_file.read_text().splitlines()
        assert [json.loads(line)["message"] for line in lines] == ["written"]
