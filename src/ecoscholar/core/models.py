"""Core domain models for candidate documents, semantic rules and scores."""

from enum import Enum
from typing import Optional, List
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .ids import normalize_doi

# Embeddings are plain float lists; ``None`` marks a failed embedding.
Embedding = List[float]


class Document(BaseModel):
    """Candidate document produced by a candidate source. Never mutated."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Source-scoped unique ID (e.g. PMID)")
    title: str
    abstract: str = ""
    authors: List[str] = Field(default_factory=list)
    year: Optional[int] = None
    url: str = ""
    source: str = Field(..., description="Source tag, e.g. 'pubmed'")
    doi: Optional[str] = None

    @field_validator("doi")
    @classmethod
    def _normalize_doi(cls, v: Optional[str]) -> Optional[str]:
        return normalize_doi(v)

    @property
    def text(self) -> str:
        """Text that gets embedded: title followed by abstract."""
        return f"{self.title} {self.abstract}".strip()


class RulePolarity(str, Enum):
    """Whether a rule's similarity counts for or against a document."""

    REQUIREMENT = "requirement"
    PENALTY = "penalty"


class SemanticRule(BaseModel):
    """Weighted semantic rule compared against document embeddings."""

    model_config = ConfigDict(frozen=True)

    id: str
    text: str
    polarity: RulePolarity = RulePolarity.REQUIREMENT
    tag: str = ""
    enabled: bool = True

    @property
    def is_requirement(self) -> bool:
        return self.polarity == RulePolarity.REQUIREMENT


class PreparedRule(BaseModel):
    """A semantic rule paired with its precomputed embedding."""

    model_config = ConfigDict(frozen=True)

    rule: SemanticRule
    embedding: Optional[Embedding] = None


class RuleMatch(BaseModel):
    """Explainability record for a rule whose raw similarity cleared the floor."""

    model_config = ConfigDict(frozen=True)

    rule_id: str
    tag: str
    raw_similarity: float
    signed_contribution: float


class ScoreResult(BaseModel):
    """Vector and composite scores for one document."""

    model_config = ConfigDict(frozen=True)

    vector_score: float = Field(0.0, ge=-1.0, le=1.0)
    composite_score: float = 0.0
    top_matches: List[RuleMatch] = Field(default_factory=list, max_length=3)
    passed_vector_filter: bool = False
    passed_composite_filter: bool = False

    @property
    def passed_prefilter(self) -> bool:
        return self.passed_vector_filter or self.passed_composite_filter
