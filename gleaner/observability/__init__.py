"""
Observability Module

Structured logging shared by every Gleaner component.
"""

from gleaner.observability.logging import (
    BufferHandler,
    ConsoleHandler,
    FileHandler,
    LogHandler,
    LogLevel,
    LogRecord,
    StructuredLogger,
    configure_logging,
    get_logger,
)

__all__ = [
    "BufferHandler",
    "ConsoleHandler",
    "FileHandler",
    "LogHandler",
    "LogLevel",
    "LogRecord",
    "StructuredLogger",
    "configure_logging",
    "get_logger",
]
