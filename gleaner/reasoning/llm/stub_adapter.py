"""
Stub Generation Adapter

A deterministic, offline generator for testing, CI and demos.

Design decisions:
- Returns scripted, deterministic responses
- Pattern-based response selection on the question in the prompt
- Records every prompt it receives
- NEVER makes external network calls

Usage:
    from gleaner.reasoning.llm.stub_adapter import StubGenerator
    generator = StubGenerator()

    # Via environment
    LLM_PROVIDER=stub
"""

import re
from dataclasses import dataclass

from gleaner.config.settings import LLMSettings
from gleaner.reasoning.llm.base import GenerationService

_QUESTION = re.compile(r"^Question:\s*(.*)$", re.MULTILINE)


@dataclass
class StubResponse:
    """A scripted response for the stub generator."""

    pattern: str | None = None  # Regex to match the question
    content: str = ""

    def matches(self, question: str) -> bool:
        if self.pattern is None:
            return True
        return bool(re.search(self.pattern, question, re.IGNORECASE))


class StubGenerator(GenerationService):
    """
    Deterministic generator.

    Without scripted responses it answers by quoting the first context
    block of the prompt, so offline runs still show retrieval working.
    """

    def __init__(
        self,
        settings: LLMSettings | None = None,
        responses: list[StubResponse] | None = None,
        default_response: str | None = None,
    ):
        settings = settings or LLMSettings(provider="stub")
        super().__init__(settings)
        self._model = settings.stub_model_name
        self._responses = list(responses or [])
        self._default_response = default_response
        self.prompts: list[str] = []

    @property
    def provider_name(self) -> str:
        return "stub"

    @property
    def model(self) -> str:
        return self._model

    @property
    def call_count(self) -> int:
        """Number of calls made to this generator."""
        return len(self.prompts)

    def add_response(self, response: StubResponse) -> None:
        """Add a custom response pattern."""
        self._responses.insert(0, response)  # Higher priority

    async def _do_generate(self, prompt: str) -> str:
        self.prompts.append(prompt)

        match = _QUESTION.search(prompt)
        question = match.group(1) if match else prompt

        for response in self._responses:
            if response.matches(question):
                return response.content

        if self._default_response is not None:
            return self._default_response

        return self._echo_context(prompt, question)

    @staticmethod
    def _echo_context(prompt: str, question: str) -> str:
        # Context blocks are a "[doc_id]" header line followed by content
        first_block = ""
        lines = prompt.splitlines()
        for i, line in enumerate(lines[:-1]):
            if line.startswith("[") and line.endswith("]"):
                first_block = lines[i + 1].strip()
                break

        if first_block:
            return f"[stub] Based on the stored context: {first_block}"
        return f"[stub] No context was provided for: {question}"
