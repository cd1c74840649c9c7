"""
Embedding Service

Generate vector embeddings for text.
Abstracts different embedding providers.

Design decisions:
- Provider-agnostic interface
- Every provider failure surfaces as EmbeddingError
- Returned vectors are checked against the declared dimension
- Caching lives in EmbeddingCache, not in the providers
"""

import asyncio
import hashlib
from abc import ABC, abstractmethod
from typing import Any

import httpx
import numpy as np

from gleaner.core.exceptions import EmbeddingError


class EmbeddingService(ABC):
    """
    Abstract embedding service.

    Generates dense vector representations of text
    for semantic similarity search.
    """

    @property
    @abstractmethod
    def dimension(self) -> int:
        """Embedding dimension."""
        pass

    @property
    def provider_name(self) -> str:
        return type(self).__name__

    @abstractmethod
    async def _do_embed(self, text: str) -> list[float]:
        """Provider-specific embedding call."""
        pass

    async def embed(self, text: str) -> list[float]:
        """
        Generate embedding for a single text.

        Raises:
            EmbeddingError: provider failure or wrong vector length
        """
        try:
            vector = await self._do_embed(text)
        except EmbeddingError:
            raise
        except Exception as e:
            raise EmbeddingError(
                f"{self.provider_name} embedding failed: {e}",
                context={"provider": self.provider_name},
                cause=e,
            )

        if len(vector) != self.dimension:
            raise EmbeddingError(
                f"{self.provider_name} returned {len(vector)} dimensions, expected {self.dimension}",
                context={"provider": self.provider_name},
            )
        return [float(x) for x in vector]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for multiple texts, in order."""
        return [await self.embed(text) for text in texts]


class OpenAIEmbeddings(EmbeddingService):
    """
    OpenAI embedding service.

    Uses text-embedding-3-small/large models. Also works with
    OpenAI-compatible servers through base_url.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "text-embedding-3-small",
        dimensions: int | None = None,  # Optional dimension reduction
        base_url: str | None = None,
        timeout: float = 30.0,
        client: Any = None,
    ):
        self._model = model
        self._dimensions = dimensions
        self._api_key = api_key
        self._base_url = base_url
        self._timeout = timeout
        self._client = client

    def _get_client(self):
        if self._client is None:
            try:
                from openai import AsyncOpenAI
            except ImportError:
                raise ImportError("openai package required. Install with: pip install openai")

            kwargs: dict[str, Any] = {"timeout": self._timeout, "max_retries": 0}
            if self._api_key:
                kwargs["api_key"] = self._api_key
            if self._base_url:
                kwargs["base_url"] = self._base_url

            self._client = AsyncOpenAI(**kwargs)
        return self._client

    @property
    def provider_name(self) -> str:
        return "openai"

    @property
    def dimension(self) -> int:
        if self._dimensions:
            return self._dimensions

        # Default dimensions by model
        if "3-large" in self._model:
            return 3072
        return 1536

    async def _do_embed(self, text: str) -> list[float]:
        client = self._get_client()

        kwargs: dict[str, Any] = {
            "model": self._model,
            "input": text,
        }
        if self._dimensions:
            kwargs["dimensions"] = self._dimensions

        response = await client.embeddings.create(**kwargs)
        return response.data[0].embedding


class OllamaEmbeddings(EmbeddingService):
    """
    Ollama embedding service over its HTTP API.

    POST {base_url}/embeddings with {"model", "prompt"}, reads "embedding".
    """

    def __init__(
        self,
        base_url: str = "http://localhost:11434/api",
        model: str = "nomic-embed-text",
        dimension: int = 768,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._dimension = dimension
        self._timeout = timeout
        self._client = client

    @property
    def provider_name(self) -> str:
        return "ollama"

    @property
    def dimension(self) -> int:
        return self._dimension

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def _do_embed(self, text: str) -> list[float]:
        client = self._get_client()
        response = await client.post(
            f"{self._base_url}/embeddings",
            json={"model": self._model, "prompt": text},
        )
        response.raise_for_status()

        embedding = response.json().get("embedding")
        if not embedding:
            raise EmbeddingError(
                "Ollama response contained no embedding",
                context={"provider": self.provider_name, "model": self._model},
            )
        return embedding

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


class LocalEmbeddings(EmbeddingService):
    """
    Local embedding service using sentence-transformers.

    Runs on CPU/GPU locally, no API calls needed. The model is loaded
    on first use and, like encoding, in a worker thread so the event
    loop stays free. The dimension is declared up front and checked
    against what the model returns.
    """

    def __init__(
        self,
        model_name: str = "all-MiniLM-L6-v2",
        device: str = "cpu",
        dimension: int = 384,
    ):
        self._model_name = model_name
        self._device = device
        self._dimension = dimension
        self._model = None
        self._load_lock = asyncio.Lock()

    def _get_model(self):
        if self._model is None:
            try:
                from sentence_transformers import SentenceTransformer
            except ImportError:
                raise ImportError(
                    "sentence-transformers required. Install with: "
                    "pip install sentence-transformers"
                )

            self._model = SentenceTransformer(self._model_name, device=self._device)
        return self._model

    async def load(self):
        """Load the model once, off the event loop."""
        async with self._load_lock:
            if self._model is None:
                await asyncio.to_thread(self._get_model)
        return self._model

    @property
    def provider_name(self) -> str:
        return "local"

    @property
    def dimension(self) -> int:
        return self._dimension

    async def _do_embed(self, text: str) -> list[float]:
        model = await self.load()
        embedding = await asyncio.to_thread(model.encode, text, convert_to_numpy=True)
        return embedding.tolist()


class HashEmbeddings(EmbeddingService):
    """
    Deterministic feature-hashing embeddings.

    No model and no network: tokens are hashed into buckets with a
    signed count, then L2-normalized. Texts sharing words get positive
    cosine similarity. Useful offline and in tests.
    """

    def __init__(self, dimension: int = 256):
        if dimension <= 0:
            raise ValueError("dimension must be positive")
        self._dimension = dimension

    @property
    def provider_name(self) -> str:
        return "hash"

    @property
    def dimension(self) -> int:
        return self._dimension

    async def _do_embed(self, text: str) -> list[float]:
        vector = np.zeros(self._dimension, dtype=np.float64)

        for token in text.lower().split():
            digest = hashlib.sha256(token.encode("utf-8")).digest()
            bucket = int.from_bytes(digest[:4], "big") % self._dimension
            sign = 1.0 if digest[4] & 1 else -1.0
            vector[bucket] += sign

        norm = np.linalg.norm(vector)
        if norm > 0:
            vector /= norm
        return vector.tolist()
