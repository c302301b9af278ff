"""Embedding provider and judgment oracle integrations.

* ``EmbeddingProvider`` / ``JudgmentOracle`` – the narrow interfaces the
  pipeline depends on.
* ``OllamaClient`` – implementation of both against a local Ollama server.
* ``GeminiClient`` – implementation of both against the Gemini REST API.
* ``create_backend`` – picks one of the two from ``settings.llm_provider``.
"""

from .base import EmbeddingProvider, JudgmentOracle  # noqa: F401
from .gemini import GeminiClient  # noqa: F401
from .ollama import OllamaClient  # noqa: F401
from .router import create_backend  # noqa: F401

__all__ = [
    "EmbeddingProvider",
    "JudgmentOracle",
    "OllamaClient",
    "GeminiClient",
    "create_backend",
]
