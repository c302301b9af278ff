"""Interfaces for the embedding provider and the judgment oracle."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, List, Optional, Sequence

from ..core.models import Document, Embedding

if TYPE_CHECKING:
    from ..qualification.models import JudgmentResult


class EmbeddingProvider(ABC):
    """Turns text into an embedding.

    Implementations must not raise for ordinary content: a failed
    embedding is reported by returning ``None``.
    """

    @abstractmethod
    async def embed(self, text: str) -> Optional[Embedding]:
        raise NotImplementedError


class JudgmentOracle(ABC):
    """Opaque qualitative grader for a single document.

    ``judge`` raises :class:`~ecoscholar.exceptions.OracleError` (or a
    subclass) on failure.  ``correction=True`` asks for a re-evaluation
    after the oracle rated a pre-filtered document with zero probability.
    """

    @abstractmethod
    async def judge(
        self,
        document: Document,
        topics: Sequence[str],
        correction: bool = False,
    ) -> JudgmentResult:
        raise NotImplementedError


def format_topics(topics: Sequence[str], fallback: Sequence[str]) -> str:
    """Render the topic list for a prompt."""
    chosen: List[str] = [t for t in topics if t] or list(fallback)
    return ", ".join(chosen)
