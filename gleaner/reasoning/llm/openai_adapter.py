"""
OpenAI Generation Adapter

Implementation for the OpenAI chat completions API.
Also works with OpenAI-compatible APIs (Azure, local servers).
"""

from typing import Any

from gleaner.config.settings import LLMSettings
from gleaner.core.exceptions import GenerationError
from gleaner.reasoning.llm.base import GenerationService

# Lazy import to avoid requiring openai if not used
_openai_module = None


def _get_openai():
    global _openai_module
    if _openai_module is None:
        try:
            import openai

            _openai_module = openai
        except ImportError:
            raise ImportError("openai package required. Install with: pip install openai")
    return _openai_module


class OpenAIGenerator(GenerationService):
    """OpenAI chat completion generator."""

    def __init__(self, settings: LLMSettings, client: Any = None):
        super().__init__(settings)

        if client is None:
            openai = _get_openai()

            client_kwargs: dict[str, Any] = {
                "timeout": settings.request_timeout,
                "max_retries": 0,
            }
            if settings.openai_api_key:
                client_kwargs["api_key"] = settings.openai_api_key.get_secret_value()
            if settings.openai_base_url:
                client_kwargs["base_url"] = settings.openai_base_url

            client = openai.AsyncOpenAI(**client_kwargs)

        self._client = client
        self._model = settings.openai_model

    @property
    def provider_name(self) -> str:
        return "openai"

    @property
    def model(self) -> str:
        return self._model

    async def _do_generate(self, prompt: str) -> str:
        response = await self._client.chat.completions.create(
            model=self._model,
            messages=[{"role": "user", "content": prompt}],
            temperature=self.settings.temperature,
            max_tokens=self.settings.max_tokens,
        )

        if not response.choices:
            raise GenerationError(
                "OpenAI response contained no choices",
                context={"provider": self.provider_name, "model": self._model},
            )
        return response.choices[0].message.content or ""
