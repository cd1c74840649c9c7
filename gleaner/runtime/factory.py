"""
Runtime Factory

Builders that assemble a KnowledgeService from settings.
Every collaborator can be overridden, which is how tests inject fakes.
"""

from gleaner.config.settings import (
    EmbeddingSettings,
    LLMSettings,
    Settings,
    VectorStoreSettings,
    get_settings,
)
from gleaner.core.exceptions import ConfigurationError
from gleaner.core.interfaces import EmbeddingProtocol, GenerationProtocol
from gleaner.knowledge.adapters import AdapterRegistry
from gleaner.knowledge.cache import EmbeddingCache
from gleaner.knowledge.embeddings import (
    EmbeddingService,
    HashEmbeddings,
    LocalEmbeddings,
    OllamaEmbeddings,
    OpenAIEmbeddings,
)
from gleaner.knowledge.ingestion import IngestionPipeline
from gleaner.knowledge.retriever import RetrievalConfig, RetrievalEngine
from gleaner.knowledge.vector_store import InMemoryVectorStore, MilvusVectorStore, VectorStore
from gleaner.observability.logging import get_logger
from gleaner.reasoning.llm.base import GenerationService
from gleaner.reasoning.llm.ollama_adapter import OllamaGenerator
from gleaner.reasoning.llm.openai_adapter import OpenAIGenerator
from gleaner.reasoning.llm.stub_adapter import StubGenerator
from gleaner.runtime.service import KnowledgeService
from gleaner.sources.registry import SourceRegistry

logger = get_logger("gleaner.factory")


def create_embedding_service(settings: EmbeddingSettings) -> EmbeddingService:
    """Embedding provider selected by settings.provider."""
    if settings.provider == "openai":
        return OpenAIEmbeddings(
            api_key=settings.openai_api_key.get_secret_value() if settings.openai_api_key else None,
            model=settings.openai_model,
            base_url=settings.openai_base_url,
            timeout=settings.request_timeout,
        )
    if settings.provider == "ollama":
        return OllamaEmbeddings(
            base_url=settings.ollama_base_url,
            model=settings.ollama_model,
            dimension=settings.dimension,
            timeout=settings.request_timeout,
        )
    if settings.provider == "local":
        kwargs = {"model_name": settings.local_model, "device": settings.local_device}
        # The 768 default is Ollama's; keep the local model's own unless set
        if "dimension" in settings.model_fields_set:
            kwargs["dimension"] = settings.dimension
        return LocalEmbeddings(**kwargs)
    if settings.provider == "hash":
        return HashEmbeddings(dimension=settings.dimension)

    raise ConfigurationError(f"Unknown embedding provider: {settings.provider}")


def create_generator(settings: LLMSettings) -> GenerationService:
    """Generation provider selected by settings.provider."""
    if settings.provider == "openai":
        return OpenAIGenerator(settings)
    if settings.provider == "ollama":
        return OllamaGenerator(settings)
    if settings.provider == "stub":
        return StubGenerator(settings)

    raise ConfigurationError(f"Unknown LLM provider: {settings.provider}")


def create_vector_store(settings: VectorStoreSettings, dimension: int) -> VectorStore:
    """
    Vector store selected by settings.provider.

    The dimension comes from the embedding provider, which is authoritative.
    """
    if dimension != settings.dimension:
        logger.warning(
            "Configured vector dimension differs from embedding dimension, using embedding dimension",
            configured=settings.dimension,
            embedding=dimension,
        )

    if settings.provider == "memory":
        return InMemoryVectorStore(dimension=dimension, snapshot_path=settings.snapshot_path)
    if settings.provider == "milvus":
        return MilvusVectorStore(
            dimension=dimension,
            host=settings.milvus_host,
            port=settings.milvus_port,
            collection_name=settings.milvus_collection,
        )

    raise ConfigurationError(f"Unknown vector store provider: {settings.provider}")


def build_service(
    settings: Settings | None = None,
    *,
    embeddings: EmbeddingProtocol | None = None,
    generator: GenerationProtocol | None = None,
    vector_store: VectorStore | None = None,
    adapters: AdapterRegistry | None = None,
    registry: SourceRegistry | None = None,
) -> KnowledgeService:
    """
    Wire a KnowledgeService from settings.

    Any collaborator passed explicitly replaces the one settings would build.
    """
    settings = settings or get_settings()

    if embeddings is None:
        embeddings = create_embedding_service(settings.embedding)
    if generator is None:
        generator = create_generator(settings.llm)
    if vector_store is None:
        vector_store = create_vector_store(settings.vector_store, embeddings.dimension)
    if adapters is None:
        adapters = AdapterRegistry.default(settings.adapters)
    if registry is None:
        registry = SourceRegistry(path=settings.registry.path)

    cache = EmbeddingCache(
        max_size=settings.cache.max_size_bytes,
        evict_to_ratio=settings.cache.evict_to_ratio,
    )

    pipeline = IngestionPipeline(
        adapters=adapters,
        embeddings=embeddings,
        vector_store=vector_store,
        cache=cache,
    )

    retriever = RetrievalEngine(
        vector_store=vector_store,
        embeddings=embeddings,
        generator=generator,
        config=RetrievalConfig(
            top_k=settings.retrieval.top_k,
            min_score=settings.retrieval.min_score,
            no_context_answer=settings.retrieval.no_context_answer,
        ),
        cache=cache if settings.cache.cache_query_embeddings else None,
    )

    logger.info(
        "Built knowledge service",
        embedding_provider=settings.embedding.provider,
        llm_provider=settings.llm.provider,
        vector_store=settings.vector_store.provider,
    )

    return KnowledgeService(
        registry=registry,
        pipeline=pipeline,
        retriever=retriever,
        vector_store=vector_store,
        scheduler_settings=settings.scheduler,
        cache=cache,
        adapters=adapters,
    )
