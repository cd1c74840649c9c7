"""
Ingestion Pipeline

Per-source orchestration: fetch -> normalize -> embed -> upsert/cache.

Design decisions:
- The content fingerprint is both the cache key and the doc_id, so
  re-ingesting identical content overwrites instead of duplicating
- An embedding failure skips only that item
- Store failures fail the whole job, so the source is retried next time
- Items are processed in order and to completion before the job returns
"""

import hashlib
import re
import unicodedata
from dataclasses import dataclass, field

from gleaner.core.exceptions import CacheCapacityError, EmbeddingError
from gleaner.core.interfaces import EmbeddingProtocol
from gleaner.core.types import CacheEntry, ContentItem, Source
from gleaner.knowledge.adapters import AdapterRegistry
from gleaner.knowledge.cache import EmbeddingCache
from gleaner.knowledge.vector_store import VectorStore
from gleaner.observability.logging import StructuredLogger, get_logger

_INLINE_SPACE = re.compile(r"[ \t\f\v\u00a0]+")


def normalize_text(text: str) -> str:
    """NFC-normalize, collapse inline whitespace and drop blank lines."""
    text = unicodedata.normalize("NFC", text)
    lines = (_INLINE_SPACE.sub(" ", line).strip() for line in text.splitlines())
    return "\n".join(line for line in lines if line)


def fingerprint(source_id: str, text: str) -> str:
    """Stable content key: SHA-256 of source id and text."""
    return hashlib.sha256(f"{source_id}\n{text}".encode("utf-8")).hexdigest()


def compose_content(title: str, text: str) -> str:
    """Stored document body: the title leads unless the text already does."""
    title = normalize_text(title)
    if not title or text.startswith(title):
        return text
    return f"{title}\n\n{text}"


@dataclass
class IngestionResult:
    """Outcome of one source ingestion job."""

    source_id: str
    fetched: int = 0
    ingested: int = 0
    skipped_empty: int = 0
    embedding_failures: int = 0
    cache_hits: int = 0
    doc_ids: list[str] = field(default_factory=list)


class IngestionPipeline:
    """
    Ingests one source per call.

    Collaborators are injected; the pipeline holds no global state and
    may run for several sources concurrently.
    """

    def __init__(
        self,
        adapters: AdapterRegistry,
        embeddings: EmbeddingProtocol,
        vector_store: VectorStore,
        cache: EmbeddingCache | None = None,
        logger: StructuredLogger | None = None,
    ):
        self._adapters = adapters
        self._embeddings = embeddings
        self._store = vector_store
        self._cache = cache
        self._logger = logger or get_logger("gleaner.ingestion")

    async def ingest_source(self, source: Source) -> IngestionResult:
        """
        Fetch a source and store every non-empty item.

        Raises:
            FetchError: the adapter failed; nothing was stored
            StorageError, DimensionMismatch: a write failed mid-job
        """
        adapter = self._adapters.get(source.type)
        items = await adapter.fetch(source.locator, source.id)

        result = IngestionResult(source_id=source.id, fetched=len(items))
        for item in items:
            await self._ingest_item(item, result)

        self._logger.info(
            "Ingested source",
            source_id=source.id,
            fetched=result.fetched,
            ingested=result.ingested,
            skipped_empty=result.skipped_empty,
            embedding_failures=result.embedding_failures,
            cache_hits=result.cache_hits,
        )
        return result

    async def _ingest_item(self, item: ContentItem, result: IngestionResult) -> None:
        text = normalize_text(item.text)
        if not text:
            result.skipped_empty += 1
            return

        doc_id = fingerprint(item.source_id, text)
        content = compose_content(item.title, text)

        embedding = await self._cached_embedding(doc_id, content)
        if embedding is not None:
            result.cache_hits += 1
        else:
            try:
                embedding = await self._embeddings.embed(content)
            except EmbeddingError as e:
                result.embedding_failures += 1
                self._logger.warning(
                    "Embedding failed, skipping item",
                    error=e,
                    source_id=item.source_id,
                    doc_id=doc_id,
                    title=item.title,
                )
                return

        await self._store.upsert(doc_id, content, embedding)
        result.ingested += 1
        result.doc_ids.append(doc_id)

        if self._cache is not None:
            try:
                await self._cache.add(
                    doc_id,
                    CacheEntry.create(doc_id, content, embedding, source_ref=item.source_id),
                )
            except CacheCapacityError as e:
                # The record is already stored; only the cache misses out
                self._logger.warning("Entry too large for embedding cache", error=e, doc_id=doc_id)

    async def _cached_embedding(self, key: str, content: str) -> list[float] | None:
        if self._cache is None:
            return None
        entry = await self._cache.get(key)
        if entry is None or entry.content != content:
            return None
        if len(entry.embedding) != self._embeddings.dimension:
            return None
        return entry.embedding
