"""
Retrieval Engine

Answers a question from stored knowledge: embed the query, rank stored
vectors, assemble a context prompt, generate once, attribute sources.

Design decisions:
- Exactly one generation call per answered query, no retries
- An empty retrieval returns a fixed no-context answer without calling
  the generator
- Collaborator failures propagate as typed errors, never as answers
"""

from dataclasses import dataclass

from gleaner.core.exceptions import GenerationError, ValidationError
from gleaner.core.interfaces import EmbeddingProtocol, GenerationProtocol
from gleaner.core.types import Answer, CacheEntry, ScoredRecord
from gleaner.knowledge.cache import EmbeddingCache
from gleaner.knowledge.ingestion import fingerprint
from gleaner.knowledge.vector_store import VectorStore
from gleaner.observability.logging import StructuredLogger, get_logger

PROMPT_HEADER = (
    "Answer the question using only the context below. "
    "Each context block is labeled with its document id."
)

QUERY_CACHE_REF = "query"


@dataclass
class RetrievalConfig:
    """Configuration for retrieval."""

    top_k: int = 5
    min_score: float = 0.3
    no_context_answer: str = "I don't have any stored knowledge relevant to that question yet."


def build_prompt(question: str, results: list[ScoredRecord]) -> str:
    """
    Format retrieved records and the question into a generation prompt.

    Blocks keep rank order; each starts with a "[doc_id]" line.
    """
    blocks = [f"[{r.doc_id}]\n{r.content}" for r in results]
    parts = [PROMPT_HEADER, "", "\n\n".join(blocks), "", f"Question: {question}", "Answer:"]
    return "\n".join(parts)


class RetrievalEngine:
    """
    Retrieval-augmented question answering.

    Runs concurrently with ingestion; the vector store's read lock is the
    only shared state touched per query.
    """

    def __init__(
        self,
        vector_store: VectorStore,
        embeddings: EmbeddingProtocol,
        generator: GenerationProtocol,
        config: RetrievalConfig | None = None,
        cache: EmbeddingCache | None = None,
        logger: StructuredLogger | None = None,
    ):
        self._store = vector_store
        self._embeddings = embeddings
        self._generator = generator
        self._config = config or RetrievalConfig()
        self._cache = cache
        self._logger = logger or get_logger("gleaner.retriever")

    @property
    def config(self) -> RetrievalConfig:
        return self._config

    async def retrieve(self, query: str) -> list[ScoredRecord]:
        """Embed the query and return ranked records above min_score."""
        query_embedding = await self._embed_query(query)
        return await self._store.similarity_search(
            query_embedding,
            top_k=self._config.top_k,
            min_score=self._config.min_score,
        )

    async def answer_query(self, query: str) -> Answer:
        """
        Answer a question from stored knowledge.

        Raises:
            ValidationError: blank query
            EmbeddingError: the query could not be embedded
            StorageError, DimensionMismatch: the store could not be searched
            GenerationError: generation failed or returned no text
        """
        question = query.strip()
        if not question:
            raise ValidationError("Query must not be empty")

        results = await self.retrieve(question)

        if not results:
            self._logger.info("No stored context for query", top_k=self._config.top_k)
            return Answer(answer=self._config.no_context_answer, sources=[], used_context=False)

        prompt = build_prompt(question, results)
        text = await self._generator.generate(prompt)

        if not text or not text.strip():
            raise GenerationError(
                "Generator returned an empty answer",
                context={"model": getattr(self._generator, "model", None)},
            )

        sources = [r.doc_id for r in results]
        self._logger.info(
            "Answered query",
            sources=len(sources),
            top_score=round(results[0].score, 4),
        )
        return Answer(answer=text.strip(), sources=sources, used_context=True)

    async def _embed_query(self, query: str) -> list[float]:
        if self._cache is None:
            return await self._embeddings.embed(query)

        key = fingerprint(QUERY_CACHE_REF, query)
        entry = await self._cache.get(key)
        if entry is not None and entry.content == query:
            return entry.embedding

        embedding = await self._embeddings.embed(query)
        entry = CacheEntry.create(key, query, embedding, source_ref=QUERY_CACHE_REF)
        if entry.size_bytes <= self._cache.max_size:
            await self._cache.add(key, entry)
        return embedding
