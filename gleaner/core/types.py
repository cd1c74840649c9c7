"""
Core Types and Data Structures

Defines the fundamental types used throughout Gleaner.
These are intentionally simple, immutable where possible, and serializable.
"""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


class SourceType(str, Enum):
    """Kind of content source, selects the content adapter."""

    API = "api"
    WEB = "web"
    PDF = "pdf"
    VIDEO = "video"
    FEED = "feed"


# Names accepted at registration for backwards compatibility
SOURCE_TYPE_ALIASES: dict[str, SourceType] = {
    "link": SourceType.WEB,
    "youtube": SourceType.VIDEO,
    "rss": SourceType.FEED,
    "atom": SourceType.FEED,
}


class Source(BaseModel):
    """
    A configured content source.

    Created through the registry, never physically deleted.
    """

    id: str
    type: SourceType
    locator: str
    schedule: str
    last_updated: datetime | None = None
    active: bool = True
    created_at: datetime = Field(default_factory=utcnow)


class ContentItem(BaseModel):
    """
    Normalized content produced by an adapter.

    Ephemeral: consumed by the ingestion pipeline, never persisted as-is.
    """

    model_config = ConfigDict(frozen=True)

    title: str = ""
    text: str
    source_id: str
    origin_locator: str
    published_at: datetime | None = None


class CacheEntry(BaseModel):
    """An embedding cache entry keyed by content fingerprint."""

    model_config = ConfigDict(frozen=True)

    key: str
    content: str
    embedding: list[float]
    source_ref: str = ""
    timestamp: datetime = Field(default_factory=utcnow)
    size_bytes: int = Field(ge=0)

    @classmethod
    def create(
        cls,
        key: str,
        content: str,
        embedding: list[float],
        source_ref: str = "",
        timestamp: datetime | None = None,
    ) -> "CacheEntry":
        """Build an entry, deriving its size from content and vector."""
        size = len(content.encode("utf-8")) + 8 * len(embedding)
        return cls(
            key=key,
            content=content,
            embedding=list(embedding),
            source_ref=source_ref,
            timestamp=timestamp or utcnow(),
            size_bytes=size,
        )


class VectorRecord(BaseModel):
    """A stored document vector."""

    model_config = ConfigDict(frozen=True)

    doc_id: str
    content: str
    embedding: list[float]
    created_at: datetime
    updated_at: datetime


class ScoredRecord(BaseModel):
    """A vector record with its similarity to a query."""

    model_config = ConfigDict(frozen=True)

    record: VectorRecord
    score: float

    @property
    def doc_id(self) -> str:
        return self.record.doc_id

    @property
    def content(self) -> str:
        return self.record.content


class Answer(BaseModel):
    """Result of a retrieval-augmented query."""

    answer: str
    sources: list[str] = Field(default_factory=list)
    used_context: bool = True
