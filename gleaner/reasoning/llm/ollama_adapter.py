"""
Ollama Generation Adapter

Non-streaming calls to a local Ollama server's /generate endpoint.
"""

import httpx

from gleaner.config.settings import LLMSettings
from gleaner.core.exceptions import GenerationError
from gleaner.reasoning.llm.base import GenerationService


class OllamaGenerator(GenerationService):
    """
    Ollama generator.

    POST {base_url}/generate with {"model", "prompt", "stream": false}
    and read "response".
    """

    def __init__(self, settings: LLMSettings, client: httpx.AsyncClient | None = None):
        super().__init__(settings)
        self._base_url = settings.ollama_base_url.rstrip("/")
        self._model = settings.ollama_model
        self._client = client

    @property
    def provider_name(self) -> str:
        return "ollama"

    @property
    def model(self) -> str:
        return self._model

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.settings.request_timeout)
        return self._client

    async def _do_generate(self, prompt: str) -> str:
        response = await self._get_client().post(
            f"{self._base_url}/generate",
            json={
                "model": self._model,
                "prompt": prompt,
                "stream": False,
                "options": {
                    "temperature": self.settings.temperature,
                    "num_predict": self.settings.max_tokens,
                },
            },
        )
        if response.status_code != 200:
            raise GenerationError(
                f"Ollama returned HTTP {response.status_code}: {response.text[:200]}",
                context={"provider": self.provider_name, "status": response.status_code},
            )
        return response.json().get("response", "")

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
