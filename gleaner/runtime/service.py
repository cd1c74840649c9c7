"""
Knowledge Service

The outward surface: register sources, answer questions, run the
background ingestion loop.
"""

from datetime import timedelta

from gleaner.config.settings import SchedulerSettings
from gleaner.core.types import Answer, Source, utcnow
from gleaner.knowledge.adapters import AdapterRegistry
from gleaner.knowledge.cache import CacheStats, EmbeddingCache
from gleaner.knowledge.ingestion import IngestionPipeline
from gleaner.knowledge.retriever import RetrievalEngine
from gleaner.knowledge.vector_store import InMemoryVectorStore, VectorStore
from gleaner.observability.logging import StructuredLogger, get_logger
from gleaner.sources.registry import SourceRegistry
from gleaner.sources.scheduler import Scheduler, TickReport


class KnowledgeService:
    """
    Facade over registry, scheduler, ingestion and retrieval.

    Queries run concurrently with background ingestion. Collaborators
    are injected; use gleaner.runtime.factory.build_service() to wire
    them from settings.
    """

    def __init__(
        self,
        registry: SourceRegistry,
        pipeline: IngestionPipeline,
        retriever: RetrievalEngine,
        vector_store: VectorStore,
        scheduler_settings: SchedulerSettings | None = None,
        cache: EmbeddingCache | None = None,
        adapters: AdapterRegistry | None = None,
        logger: StructuredLogger | None = None,
    ):
        self.registry = registry
        self.pipeline = pipeline
        self.retriever = retriever
        self.vector_store = vector_store
        self.cache = cache
        self._adapters = adapters
        self._logger = logger or get_logger("gleaner.service")

        self.scheduler = Scheduler(
            registry,
            pipeline,
            settings=scheduler_settings,
            on_tick_complete=self._after_tick,
        )

    # ------------------------------------------------------------------
    # Sources
    # ------------------------------------------------------------------

    async def add_source(self, source_type: str, locator: str, schedule: str) -> str:
        """
        Register a source and return its id.

        Raises:
            ValidationError: unknown type, empty locator or bad schedule
        """
        source = await self.registry.add(source_type, locator, schedule)
        return source.id

    async def get_source(self, source_id: str) -> Source:
        return await self.registry.get(source_id)

    async def list_sources(self, active_only: bool = False) -> list[Source]:
        return await self.registry.list_sources(active_only=active_only)

    async def activate_source(self, source_id: str) -> Source:
        return await self.registry.activate(source_id)

    async def deactivate_source(self, source_id: str) -> Source:
        return await self.registry.deactivate(source_id)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def query(self, text: str) -> Answer:
        """
        Answer a question from stored knowledge.

        Raises:
            ValidationError, EmbeddingError, GenerationError,
            StorageError, DimensionMismatch
        """
        with self._logger.context(operation="query"):
            return await self.retriever.answer_query(text)

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    async def run_tick(self) -> TickReport:
        """Run one scheduler tick now."""
        return await self.scheduler.run_tick()

    async def prune(self, older_than: timedelta) -> int:
        """Delete documents not refreshed within older_than. Returns the count."""
        removed = await self.vector_store.delete_older_than(utcnow() - older_than)
        if removed:
            self._logger.info("Pruned stale documents", removed=removed)
            await self.flush()
        return removed

    async def flush(self) -> None:
        """Persist the in-memory store when it has a snapshot path."""
        if isinstance(self.vector_store, InMemoryVectorStore) and self.vector_store.dirty:
            await self.vector_store.flush()

    async def _after_tick(self, report: TickReport) -> None:
        if report.succeeded:
            await self.flush()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def load(self) -> None:
        """Restore persisted sources and, for the in-memory store, documents."""
        sources = await self.registry.load()
        documents = 0
        if isinstance(self.vector_store, InMemoryVectorStore):
            documents = await self.vector_store.load()

        self._logger.info("Loaded persisted state", sources=sources, documents=documents)

    async def start(self) -> None:
        """Load persisted state and start the background scheduler."""
        await self.load()
        self.scheduler.start()

    async def stop(self, timeout: float | None = None) -> None:
        """Stop the scheduler, flush the store and release HTTP clients."""
        await self.scheduler.stop(timeout=timeout)
        await self.flush()
        if self._adapters is not None:
            await self._adapters.close()
        self._logger.info("Knowledge service stopped")

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    async def document_count(self) -> int:
        return await self.vector_store.count()

    async def cache_stats(self) -> CacheStats | None:
        if self.cache is None:
            return None
        return await self.cache.stats()
