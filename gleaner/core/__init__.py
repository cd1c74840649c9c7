"""
Core Module

Contains fundamental types, exceptions, interfaces, and utilities used across
all other modules in Gleaner.

The interfaces module defines protocols for cross-module communication,
preventing circular dependencies.
"""

from gleaner.core.types import (
    Answer,
    CacheEntry,
    ContentItem,
    ScoredRecord,
    Source,
    SourceType,
    VectorRecord,
    utcnow,
)
from gleaner.core.exceptions import (
    CacheCapacityError,
    ConfigurationError,
    DimensionMismatch,
    EmbeddingError,
    FetchError,
    GenerationError,
    GleanerError,
    KnowledgeError,
    SourceError,
    SourceNotFoundError,
    StorageError,
    ValidationError,
)
from gleaner.core.interfaces import (
    ContentAdapterProtocol,
    EmbeddingProtocol,
    GenerationProtocol,
)
from gleaner.core.locks import ReadWriteLock

__all__ = [
    # Types
    "Answer",
    "CacheEntry",
    "ContentItem",
    "ScoredRecord",
    "Source",
    "SourceType",
    "VectorRecord",
    "utcnow",
    # Exceptions
    "CacheCapacityError",
    "ConfigurationError",
    "DimensionMismatch",
    "EmbeddingError",
    "FetchError",
    "GenerationError",
    "GleanerError",
    "KnowledgeError",
    "SourceError",
    "SourceNotFoundError",
    "StorageError",
    "ValidationError",
    # Interfaces/Protocols
    "ContentAdapterProtocol",
    "EmbeddingProtocol",
    "GenerationProtocol",
    # Concurrency
    "ReadWriteLock",
]
