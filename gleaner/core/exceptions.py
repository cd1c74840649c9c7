"""
Exception Hierarchy

Defines all exceptions raised by Gleaner.
Exceptions are organized by domain and include context for debugging.

Design decisions:
- All exceptions inherit from GleanerError for easy catching
- Exceptions carry structured context, not just messages
- Error codes enable programmatic handling
"""

from typing import Any


class GleanerError(Exception):
    """
    Base exception for all Gleaner errors.

    Provides structured error information including:
    - Human-readable message
    - Machine-readable error code
    - Additional context for debugging
    """

    error_code: str = "GLEANER_ERROR"

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.error_code
        self.context = context or {}
        self.__cause__ = cause

    def to_dict(self) -> dict[str, Any]:
        """Serialize exception for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "context": self.context,
        }


# ============================================================
# Configuration / Validation Errors
# ============================================================

class ConfigurationError(GleanerError):
    """Error in configuration or settings."""

    error_code = "CONFIGURATION_ERROR"


class CacheCapacityError(ConfigurationError):
    """A single cache entry can never fit in the configured cache size."""

    error_code = "CACHE_CAPACITY_EXCEEDED"

    def __init__(
        self,
        message: str,
        *,
        entry_size: int,
        max_size: int,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.entry_size = entry_size
        self.max_size = max_size


class ValidationError(GleanerError):
    """Bad input rejected before any side effect."""

    error_code = "VALIDATION_ERROR"


# ============================================================
# Source Errors
# ============================================================

class SourceError(GleanerError):
    """Base error for source registry issues."""

    error_code = "SOURCE_ERROR"


class SourceNotFoundError(SourceError):
    """Source does not exist in the registry."""

    error_code = "SOURCE_NOT_FOUND"


class FetchError(SourceError):
    """Content adapter failed to fetch or parse a source."""

    error_code = "FETCH_ERROR"

    def __init__(
        self,
        message: str,
        *,
        locator: str | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.locator = locator


# ============================================================
# Knowledge / RAG Errors
# ============================================================

class KnowledgeError(GleanerError):
    """Base error for knowledge/RAG issues."""

    error_code = "KNOWLEDGE_ERROR"


class EmbeddingError(KnowledgeError):
    """Error generating embeddings."""

    error_code = "EMBEDDING_ERROR"


class GenerationError(KnowledgeError):
    """Error generating an answer."""

    error_code = "GENERATION_ERROR"


class StorageError(KnowledgeError):
    """Persistence I/O failure in a vector store or registry."""

    error_code = "STORAGE_ERROR"


class DimensionMismatch(KnowledgeError):
    """Embedding length differs from the store's established dimension."""

    error_code = "DIMENSION_MISMATCH"

    def __init__(
        self,
        message: str,
        *,
        expected: int,
        actual: int,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.expected = expected
        self.actual = actual
