"""Shared fakes and fixtures for the qualification pipeline tests."""

import asyncio
from typing import Callable, Dict, List, Optional, Sequence

import pytest

from ecoscholar.core.models import Document, RulePolarity, ScoreResult, SemanticRule
from ecoscholar.llm.base import EmbeddingProvider, JudgmentOracle
from ecoscholar.qualification.models import JudgmentResult

QUALIFY = JudgmentResult(qualified=True, score=8, probability=8)
REJECT = JudgmentResult(qualified=False, score=2, probability=2)


class FakeEmbedder(EmbeddingProvider):
    """Embeds text through a lookup function; counts calls."""

    def __init__(self, fn: Callable[[str], Optional[List[float]]]):
        self.fn = fn
        self.calls: List[str] = []

    async def embed(self, text: str) -> Optional[List[float]]:
        self.calls.append(text)
        return self.fn(text)


class ScriptedOracle(JudgmentOracle):
    """Returns (or raises) scripted responses in order, then ``default``."""

    def __init__(self, responses: Sequence = (), default: JudgmentResult = REJECT, delay: float = 0.0):
        self.responses = list(responses)
        self.default = default
        self.delay = delay
        self.calls: List[tuple] = []

    async def judge(self, document: Document, topics: Sequence[str], correction: bool = False) -> JudgmentResult:
        self.calls.append((document.id, correction))
        if self.delay:
            await asyncio.sleep(self.delay)
        response = self.responses.pop(0) if self.responses else self.default
        if isinstance(response, Exception):
            raise response
        return response


def make_document(n: int, title: Optional[str] = None) -> Document:
    return Document(id=f"test:{n}", title=title or f"Document {n}", source="test")


def topic_embedding(text: str) -> List[float]:
    """Texts mentioning 'relevant' point along x, everything else along y."""
    return [1.0, 0.0] if "relevant" in text.lower() else [0.0, 1.0]


@pytest.fixture
def passing_score() -> ScoreResult:
    return ScoreResult(
        vector_score=0.9,
        composite_score=0.7,
        passed_vector_filter=True,
        passed_composite_filter=True,
    )


@pytest.fixture
def failing_score() -> ScoreResult:
    return ScoreResult(vector_score=0.1, composite_score=0.1)


@pytest.fixture
def topic_rules() -> List[SemanticRule]:
    return [
        SemanticRule(id="r1", text="relevant phytochemical study", polarity=RulePolarity.REQUIREMENT, tag="phyto"),
        SemanticRule(id="p1", text="software engineering", polarity=RulePolarity.PENALTY, tag="software"),
    ]


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder(topic_embedding)


@pytest.fixture
def vectors() -> Dict[str, List[float]]:
    return {"x": [1.0, 0.0], "y": [0.0, 1.0], "xy": [1.0, 1.0]}
