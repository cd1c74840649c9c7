"""
Base Generation Service

Defines the abstract interface for answer generation providers.

Design decisions:
- Async-first: generation is a suspension point and honors cancellation
- Provider-agnostic: a prompt in, text out
- Every provider failure and timeout surfaces as GenerationError
- No retries here; callers decide whether to try again
"""

import asyncio
import time
from abc import ABC, abstractmethod

from gleaner.config.settings import LLMSettings
from gleaner.core.exceptions import GenerationError
from gleaner.observability.logging import get_logger

logger = get_logger("gleaner.llm")


class GenerationService(ABC):
    """
    Abstract base class for generation providers.

    All generation goes through generate(), which applies the request
    timeout and normalizes errors.
    """

    def __init__(self, settings: LLMSettings):
        self.settings = settings
        self._timeout = settings.request_timeout

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider identifier."""
        pass

    @property
    @abstractmethod
    def model(self) -> str:
        """Current model identifier."""
        pass

    @abstractmethod
    async def _do_generate(self, prompt: str) -> str:
        """
        Provider-specific implementation of generation.

        Implementations should NOT handle timeouts.
        """
        pass

    async def generate(self, prompt: str) -> str:
        """
        Generate text for a prompt.

        Raises:
            GenerationError: provider failure or timeout
        """
        start_time = time.perf_counter()

        try:
            text = await asyncio.wait_for(self._do_generate(prompt), timeout=self._timeout)
        except asyncio.TimeoutError as e:
            raise GenerationError(
                f"Generation timed out after {self._timeout}s",
                context={"provider": self.provider_name, "model": self.model},
                cause=e,
            )
        except GenerationError:
            raise
        except Exception as e:
            raise GenerationError(
                f"{self.provider_name} generation failed: {e}",
                context={"provider": self.provider_name, "model": self.model},
                cause=e,
            )

        logger.debug(
            "Generated answer",
            provider=self.provider_name,
            model=self.model,
            latency_ms=round((time.perf_counter() - start_time) * 1000, 2),
            chars=len(text),
        )
        return text
