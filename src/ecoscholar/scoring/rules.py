"""Composite scoring against weighted semantic rules.

A document embedding is compared with every enabled rule.  Requirement
rules contribute their raw cosine similarity, penalty rules the negated
similarity.  The composite score is the mean of the six strongest
signed contributions, so a long tail of weakly related rules cannot
dilute a few strong signals, while a strongly matching penalty rule
still drags the score down when it ranks among the top six.
"""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from ..core.models import Embedding, PreparedRule, RuleMatch, ScoreResult, SemanticRule
from ..llm.base import EmbeddingProvider
from ..qualification.models import QueryThresholds
from ..utils.logging import get_logger
from .vector import cosine_similarity

logger = get_logger(__name__)

RELEVANCE_FLOOR = 0.35
TOP_K_CONTRIBUTIONS = 6
MAX_REPORTED_MATCHES = 3


class RuleScorer:
    """Score document embeddings against a fixed set of prepared rules."""

    def __init__(self, rules: Sequence[PreparedRule]) -> None:
        self.rules: List[PreparedRule] = [
            r for r in rules if r.rule.enabled and r.embedding
        ]

    @classmethod
    async def prepare(cls, rules: Sequence[SemanticRule], provider: EmbeddingProvider) -> "RuleScorer":
        """Embed the enabled rules one at a time and build a scorer.

        Rules are embedded sequentially: local embedding backends tend to
        return empty responses under parallel load.
        """
        enabled = [r for r in rules if r.enabled]
        prepared: List[PreparedRule] = []
        for rule in enabled:
            embedding = await provider.embed(rule.text)
            if not embedding:
                logger.warning("Rule embedding unavailable", extra={"rule_id": rule.id})
            prepared.append(PreparedRule(rule=rule, embedding=embedding))
        scorer = cls(prepared)
        if enabled and not scorer.rules:
            logger.warning("No rule embeddings available; composite scores will be 0")
        return scorer

    def score(self, doc_embedding: Optional[Embedding]) -> Tuple[float, List[RuleMatch]]:
        """Return ``(composite_score, matches)`` for a document embedding.

        Matches are sorted by raw similarity, strongest first.
        """
        if not doc_embedding or not self.rules:
            return 0.0, []
        contributions: List[float] = []
        matches: List[RuleMatch] = []
        for prepared in self.rules:
            raw = cosine_similarity(prepared.embedding, doc_embedding)
            signed = raw if prepared.rule.is_requirement else -raw
            contributions.append(signed)
            if raw > RELEVANCE_FLOOR:
                matches.append(
                    RuleMatch(
                        rule_id=prepared.rule.id,
                        tag=prepared.rule.tag,
                        raw_similarity=raw,
                        signed_contribution=signed,
                    )
                )
        contributions.sort(reverse=True)
        top = contributions[:TOP_K_CONTRIBUTIONS]
        composite = sum(top) / len(top)
        matches.sort(key=lambda m: m.raw_similarity, reverse=True)
        return composite, matches

    def score_document(
        self,
        query_embedding: Optional[Embedding],
        doc_embedding: Optional[Embedding],
        thresholds: QueryThresholds,
    ) -> ScoreResult:
        """Build the full score record: vector score, composite score and filter flags."""
        vector_score = cosine_similarity(query_embedding, doc_embedding)
        composite, matches = self.score(doc_embedding)
        return ScoreResult(
            vector_score=vector_score,
            composite_score=composite,
            top_matches=matches[:MAX_REPORTED_MATCHES],
            passed_vector_filter=vector_score >= thresholds.vector_min,
            passed_composite_filter=composite >= thresholds.composite_min,
        )
