"""Backend selection for embeddings and judgment.

Both backends implement :class:`EmbeddingProvider` and
:class:`JudgmentOracle` on one client, so the pipeline gets a single
object for both roles.
"""

from __future__ import annotations

from typing import Optional, Union

from ..config.settings import settings
from ..exceptions import BackendConfigError
from ..utils.logging import get_logger
from .gemini import GeminiClient
from .ollama import OllamaClient

logger = get_logger(__name__)

LLMBackend = Union[OllamaClient, GeminiClient]

PROVIDERS = ("ollama", "gemini")


def create_backend(provider: Optional[str] = None) -> LLMBackend:
    """Build the client for ``provider`` (defaults to ``settings.llm_provider``).

    Raises :class:`BackendConfigError` for an unknown provider or a
    Gemini backend without an API key.
    """
    name = (provider or settings.llm_provider).lower()
    if name not in PROVIDERS:
        raise BackendConfigError(f"Unknown LLM provider '{name}' (expected one of: {', '.join(PROVIDERS)})")
    if name == "gemini":
        backend: LLMBackend = GeminiClient()
        logger.info("Using Gemini backend", extra={"model": backend.model})
    else:
        backend = OllamaClient()
        logger.info("Using Ollama backend", extra={"model": backend.model, "base_url": backend.base_url})
    return backend
