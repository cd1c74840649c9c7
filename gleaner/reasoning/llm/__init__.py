"""
LLM Module

Contains all answer generation providers.
"""

from gleaner.reasoning.llm.base import GenerationService
from gleaner.reasoning.llm.ollama_adapter import OllamaGenerator
from gleaner.reasoning.llm.openai_adapter import OpenAIGenerator
from gleaner.reasoning.llm.stub_adapter import StubGenerator, StubResponse

__all__ = [
    "GenerationService",
    "OllamaGenerator",
    "OpenAIGenerator",
    "StubGenerator",
    "StubResponse",
]
