"""Vector and semantic-rule scoring."""

from .vector import cosine_similarity
from .rules import RuleScorer, RELEVANCE_FLOOR, TOP_K_CONTRIBUTIONS

__all__ = ["cosine_similarity", "RuleScorer", "RELEVANCE_FLOOR", "TOP_K_CONTRIBUTIONS"]
