"""
Test Configuration

Shared fixtures. No test touches the network.
"""

import pytest

from gleaner.core.exceptions import FetchError, GenerationError
from gleaner.observability.logging import BufferHandler, LogLevel, StructuredLogger
from tests.fixtures import KeywordEmbeddings, RecordingGenerator, StaticAdapter


def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")


@pytest.fixture
def log_buffer() -> BufferHandler:
    return BufferHandler(level=LogLevel.DEBUG)


@pytest.fixture
def buffer_logger(log_buffer) -> StructuredLogger:
    """Logger writing only to an in-memory buffer."""
    return StructuredLogger(name="gleaner.test", level=LogLevel.DEBUG, handlers=[log_buffer])


@pytest.fixture
def embeddings() -> KeywordEmbeddings:
    return KeywordEmbeddings()


@pytest.fixture
def generator() -> RecordingGenerator:
    return RecordingGenerator()


@pytest.fixture
def failing_generator() -> RecordingGenerator:
    return RecordingGenerator(error=GenerationError("model unavailable"))


@pytest.fixture
def failing_adapter() -> StaticAdapter:
    return StaticAdapter(error=FetchError("connection refused", locator="https://down.example"))


@pytest.fixture
def sample_texts() -> list[str]:
    return [
        "Python is a programming language with readable syntax.",
        "Rust offers memory safety without a garbage collector.",
    ]
