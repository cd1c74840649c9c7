"""
Structured Logging

JSON-structured logging with context propagation.

Design decisions:
- Structured JSON output
- Log level filtering
- Context enrichment (source, job, query ids)
- Multiple handlers, shared by every logger from get_logger()
"""

import contextvars
import json
import sys
import traceback
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import IntEnum
from typing import Any, TextIO


class LogLevel(IntEnum):
    """Log levels matching Python's logging module."""

    DEBUG = 10
    INFO = 20
    WARNING = 30
    ERROR = 40
    CRITICAL = 50

    @classmethod
    def from_name(cls, name: str) -> "LogLevel":
        return cls[name.upper()]


@dataclass
class LogRecord:
    """A structured log record."""

    level: LogLevel
    message: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    logger_name: str = "gleaner"

    # Structured data
    data: dict[str, Any] = field(default_factory=dict)

    # Error info
    error: str | None = None
    error_type: str | None = None
    stack_trace: str | None = None

    # Propagated context (source_id, job_id, query_id, ...)
    context: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON output."""
        result = {
            "timestamp": self.timestamp.isoformat(),
            "level": LogLevel(self.level).name,
            "logger": self.logger_name,
            "message": self.message,
        }

        if self.context:
            result.update(self.context)

        if self.data:
            result["data"] = self.data

        if self.error:
            result["error"] = {
                "message": self.error,
                "type": self.error_type,
                "stack_trace": self.stack_trace,
            }

        return result

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), default=str)


class LogHandler:
    """Base class for log handlers."""

    def __init__(self, level: LogLevel = LogLevel.DEBUG):
        self.level = level

    def should_handle(self, level: LogLevel) -> bool:
        """Check if this handler should process a log at this level."""
        return level >= self.level

    def handle(self, record: LogRecord) -> None:
        """Handle a log record."""
        pass


class ConsoleHandler(LogHandler):
    """Outputs logs to console."""

    def __init__(
        self,
        level: LogLevel = LogLevel.DEBUG,
        stream: TextIO | None = None,
        json_output: bool = True,
    ):
        super().__init__(level)
        self.stream = stream or sys.stderr
        self.json_output = json_output

    def handle(self, record: LogRecord) -> None:
        if not self.should_handle(record.level):
            return

        if self.json_output:
            output = record.to_json()
        else:
            output = (
                f"[{record.timestamp.strftime('%Y-%m-%d %H:%M:%S')}] "
                f"{LogLevel(record.level).name:8s} {record.logger_name}: {record.message}"
            )
            if record.context:
                output += f" | {record.context}"
            if record.data:
                output += f" | {record.data}"
            if record.error:
                output += f" | ERROR: {record.error}"

        print(output, file=self.stream)


class FileHandler(LogHandler):
    """Appends JSON lines to a file."""

    def __init__(
        self,
        filename: str,
        level: LogLevel = LogLevel.DEBUG,
    ):
        super().__init__(level)
        self.filename = filename
        self._file = None

    def handle(self, record: LogRecord) -> None:
        if not self.should_handle(record.level):
            return

        if self._file is None:
            self._file = open(self.filename, "a", encoding="utf-8")

        self._file.write(record.to_json() + "\n")
        self._file.flush()

    def close(self) -> None:
        if self._file:
            self._file.close()
            self._file = None


class BufferHandler(LogHandler):
    """Buffers logs in memory for testing."""

    def __init__(self, level: LogLevel = LogLevel.DEBUG, max_records: int = 1000):
        super().__init__(level)
        self.records: list[LogRecord] = []
        self._max_records = max_records

    def handle(self, record: LogRecord) -> None:
        if not self.should_handle(record.level):
            return

        self.records.append(record)

        if len(self.records) > self._max_records:
            self.records = self.records[-self._max_records :]

    def messages(self, level: LogLevel | None = None) -> list[str]:
        """Messages recorded, optionally only at one level."""
        return [r.message for r in self.records if level is None or r.level == level]

    def clear(self) -> None:
        self.records.clear()


# Context variables for log enrichment
_log_context: contextvars.ContextVar[dict[str, Any]] = contextvars.ContextVar(
    "log_context", default={}
)

# Handlers shared by loggers created through get_logger()
_default_handlers: list[LogHandler] = [ConsoleHandler()]
_default_level: list[LogLevel] = [LogLevel.INFO]


class StructuredLogger:
    """
    Main structured logging interface.

    Features:
    - JSON structured output
    - Context propagation
    - Multiple handlers
    - Level filtering
    """

    def __init__(
        self,
        name: str = "gleaner",
        level: LogLevel | None = None,
        handlers: list[LogHandler] | None = None,
    ):
        self.name = name
        self._level = level
        self.handlers = handlers if handlers is not None else _default_handlers

    @property
    def level(self) -> LogLevel:
        return self._level if self._level is not None else _default_level[0]

    def _log(
        self,
        level: LogLevel,
        message: str,
        data: dict[str, Any] | None = None,
        error: BaseException | None = None,
        **extra: Any,
    ) -> None:
        """Internal log method."""
        if level < self.level:
            return

        record = LogRecord(
            level=level,
            message=message,
            logger_name=self.name,
            data={**(data or {}), **extra},
            context=dict(_log_context.get()),
        )

        if error is not None:
            record.error = str(error)
            record.error_type = type(error).__name__
            if error.__traceback__ is not None:
                record.stack_trace = "".join(
                    traceback.format_exception(type(error), error, error.__traceback__)
                )

        for handler in self.handlers:
            try:
                handler.handle(record)
            except Exception:
                pass  # Don't let logging errors affect main flow

    def debug(self, message: str, **kwargs: Any) -> None:
        """Log at DEBUG level."""
        self._log(LogLevel.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        """Log at INFO level."""
        self._log(LogLevel.INFO, message, **kwargs)

    def warning(self, message: str, error: BaseException | None = None, **kwargs: Any) -> None:
        """Log at WARNING level."""
        self._log(LogLevel.WARNING, message, error=error, **kwargs)

    def error(self, message: str, error: BaseException | None = None, **kwargs: Any) -> None:
        """Log at ERROR level."""
        self._log(LogLevel.ERROR, message, error=error, **kwargs)

    @staticmethod
    @contextmanager
    def context(**kwargs: Any):
        """
        Context manager for adding context to logs.

        Usage:
            with logger.context(source_id="feed-1", job_id="42"):
                logger.info("Fetching source")
        """
        current = _log_context.get()
        token = _log_context.set({**current, **kwargs})

        try:
            yield
        finally:
            _log_context.reset(token)


def get_logger(name: str = "gleaner") -> StructuredLogger:
    """Get a logger writing to the shared default handlers."""
    return StructuredLogger(name=name)


def configure_logging(
    level: LogLevel | str = LogLevel.INFO,
    json_output: bool = True,
    log_file: str | None = None,
) -> StructuredLogger:
    """Configure the shared handlers and return the root logger."""
    if isinstance(level, str):
        level = LogLevel.from_name(level)

    handlers: list[LogHandler] = [
        ConsoleHandler(level=level, json_output=json_output),
    ]

    if log_file:
        handlers.append(FileHandler(log_file, level=level))

    for handler in _default_handlers:
        if isinstance(handler, FileHandler):
            handler.close()

    # Mutate in place so loggers created earlier pick up the change
    _default_handlers[:] = handlers
    _default_level[0] = level

    return get_logger()
