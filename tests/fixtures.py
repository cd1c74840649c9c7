"""
Test Fixtures

In-test collaborators shared by unit and integration tests.
"""

from gleaner.config.settings import (
    EmbeddingSettings,
    LLMSettings,
    RegistrySettings,
    RetrievalSettings,
    Settings,
    VectorStoreSettings,
)
from gleaner.core.exceptions import EmbeddingError
from gleaner.core.types import ContentItem, SourceType
from gleaner.knowledge.adapters import AdapterRegistry
from gleaner.runtime.factory import build_service
from gleaner.runtime.service import KnowledgeService


class KeywordEmbeddings:
    """
    Deterministic embeddings over a fixed vocabulary.

    Each vocabulary word owns one axis; a text's vector counts the words
    it contains. Texts containing a word listed in fail_on raise
    EmbeddingError.
    """

    def __init__(
        self,
        vocabulary: tuple[str, ...] = ("python", "rust", "cooking", "music"),
        fail_on: tuple[str, ...] = (),
    ):
        self.vocabulary = vocabulary
        self.fail_on = fail_on
        self.calls: list[str] = []

    @property
    def dimension(self) -> int:
        return len(self.vocabulary)

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        lowered = text.lower()
        if any(word in lowered for word in self.fail_on):
            raise EmbeddingError(f"cannot embed: {text[:20]}")
        return [float(lowered.count(word)) for word in self.vocabulary]


class RecordingGenerator:
    """Returns a fixed answer and records prompts."""

    def __init__(self, answer: str = "generated answer", error: Exception | None = None):
        self.answer = answer
        self.error = error
        self.prompts: list[str] = []

    @property
    def model(self) -> str:
        return "recording"

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.answer


class StaticAdapter:
    """Adapter returning canned items, or raising a canned error."""

    def __init__(self, texts: list[str] | None = None, error: Exception | None = None):
        self.texts = texts or []
        self.error = error
        self.calls: list[tuple[str, str]] = []

    async def fetch(self, locator: str, source_id: str) -> list[ContentItem]:
        self.calls.append((locator, source_id))
        if self.error is not None:
            raise self.error
        return [
            ContentItem(
                title=f"item {i}",
                text=text,
                source_id=source_id,
                origin_locator=f"{locator}#{i}",
            )
            for i, text in enumerate(self.texts)
        ]


NO_CONTEXT_ANSWER = "No stored knowledge matches that question."


def offline_settings(tmp_path=None) -> Settings:
    """Hash embeddings, stub generator, in-memory store; files under tmp_path if given."""
    snapshot = str(tmp_path / "vectors.json") if tmp_path else None
    registry = str(tmp_path / "sources.json") if tmp_path else None
    return Settings(
        embedding=EmbeddingSettings(provider="hash", dimension=256),
        llm=LLMSettings(provider="stub"),
        vector_store=VectorStoreSettings(provider="memory", dimension=256, snapshot_path=snapshot),
        retrieval=RetrievalSettings(top_k=3, min_score=0.3, no_context_answer=NO_CONTEXT_ANSWER),
        registry=RegistrySettings(path=registry),
    )


def offline_service(settings: Settings, texts: list[str]) -> tuple[KnowledgeService, StaticAdapter]:
    """A service whose feed and web sources all return the given texts."""
    adapter = StaticAdapter(texts)
    adapters = AdapterRegistry({SourceType.FEED: adapter, SourceType.WEB: adapter})
    return build_service(settings, adapters=adapters), adapter
