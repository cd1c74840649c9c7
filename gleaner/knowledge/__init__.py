"""
Knowledge Module

Content adapters, embeddings, caching, vector storage, ingestion and
retrieval.
"""

from gleaner.knowledge.adapters import (
    AdapterRegistry,
    APIAdapter,
    BaseContentAdapter,
    FeedAdapter,
    PDFAdapter,
    VideoAdapter,
    WebAdapter,
)
from gleaner.knowledge.cache import CacheStats, EmbeddingCache
from gleaner.knowledge.embeddings import (
    EmbeddingService,
    HashEmbeddings,
    LocalEmbeddings,
    OllamaEmbeddings,
    OpenAIEmbeddings,
)
from gleaner.knowledge.ingestion import (
    IngestionPipeline,
    IngestionResult,
    fingerprint,
    normalize_text,
)
from gleaner.knowledge.retriever import RetrievalConfig, RetrievalEngine, build_prompt
from gleaner.knowledge.vector_store import (
    InMemoryVectorStore,
    MilvusVectorStore,
    VectorStore,
    cosine_similarity,
)

__all__ = [
    "APIAdapter",
    "AdapterRegistry",
    "BaseContentAdapter",
    "CacheStats",
    "EmbeddingCache",
    "EmbeddingService",
    "FeedAdapter",
    "HashEmbeddings",
    "InMemoryVectorStore",
    "IngestionPipeline",
    "IngestionResult",
    "LocalEmbeddings",
    "MilvusVectorStore",
    "OllamaEmbeddings",
    "OpenAIEmbeddings",
    "PDFAdapter",
    "RetrievalConfig",
    "RetrievalEngine",
    "VectorStore",
    "VideoAdapter",
    "WebAdapter",
    "build_prompt",
    "cosine_similarity",
    "fingerprint",
    "normalize_text",
]
