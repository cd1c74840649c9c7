"""
Core Interfaces and Protocols

Defines the contracts between modules to prevent circular dependencies.
Collaborators are typed against these protocols, so any object with the
right shape can be injected (including test fakes).

Design decisions:
- Protocol-based for structural subtyping
- Minimal interface surface
- No implementation details leak through
"""

from typing import Protocol, runtime_checkable

from gleaner.core.types import ContentItem


# =============================================================================
# EMBEDDING PROTOCOL
# =============================================================================

@runtime_checkable
class EmbeddingProtocol(Protocol):
    """
    Interface for embedding providers.

    Implemented by: OpenAIEmbeddings, OllamaEmbeddings, LocalEmbeddings,
    HashEmbeddings
    Used by: IngestionPipeline, RetrievalEngine
    """

    @property
    def dimension(self) -> int:
        """Length of every vector this service returns."""
        ...

    async def embed(self, text: str) -> list[float]:
        """Embed one text. Raises EmbeddingError on failure."""
        ...


# =============================================================================
# GENERATION PROTOCOL
# =============================================================================

@runtime_checkable
class GenerationProtocol(Protocol):
    """
    Interface for answer generation.

    Implemented by: OpenAIGenerator, OllamaGenerator, StubGenerator
    Used by: RetrievalEngine
    """

    @property
    def model(self) -> str:
        """Current model identifier."""
        ...

    async def generate(self, prompt: str) -> str:
        """Generate text for a prompt. Raises GenerationError on failure."""
        ...


# =============================================================================
# CONTENT ADAPTER PROTOCOL
# =============================================================================

@runtime_checkable
class ContentAdapterProtocol(Protocol):
    """
    Interface for content adapters.

    Implemented by: APIAdapter, WebAdapter, PDFAdapter, VideoAdapter,
    FeedAdapter
    Used by: IngestionPipeline
    """

    async def fetch(self, locator: str, source_id: str) -> list[ContentItem]:
        """Fetch and normalize content. Raises FetchError on failure."""
        ...
