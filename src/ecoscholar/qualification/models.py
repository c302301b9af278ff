"""Qualification-specific models and enumerations.

This module defines the per-query thresholds and speedup policy, the
per-query ``CycleState`` counters, the normalized judgment oracle
output and the records handed to result sinks.  ``CycleState`` is a
frozen value: the decision engine returns an updated copy for every
document instead of mutating shared counters, and the orchestrator
commits it only once the document's record has been emitted.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..core.models import Document, ScoreResult

RATING_MAX = 10.0


class QualificationOutcome(str, Enum):
    """Terminal (and one transient) per-document outcomes."""

    FILTERED_OUT = "filtered_out"
    PENDING_JUDGMENT = "pending_judgment"  # in flight only, never persisted
    REJECTED = "rejected"
    QUALIFIED = "qualified"
    QUALIFIED_FAST_PATH = "qualified_fast_path"
    ABORTED_LOW_YIELD = "aborted_low_yield"

    @property
    def is_qualified(self) -> bool:
        return self in (QualificationOutcome.QUALIFIED, QualificationOutcome.QUALIFIED_FAST_PATH)


class QueryThresholds(BaseModel):
    """Per-query pre-filter and judgment thresholds."""

    model_config = ConfigDict(frozen=True)

    vector_min: float = 0.59
    composite_min: float = 0.60
    probability_min: float = Field(5.0, ge=0.0)

    @field_validator("probability_min")
    @classmethod
    def _scale_percentage(cls, v: float) -> float:
        """Values above 10 were entered as percentages; bring them onto the 0-10 scale."""
        if v > RATING_MAX:
            return v / 10.0
        return v


class SpeedupPolicy(BaseModel):
    """Global fast-path / fail-fast parameters."""

    model_config = ConfigDict(frozen=True)

    sample_size: int = Field(10, ge=1)
    target_qualify_rate: float = Field(0.7, ge=0.0, le=1.0)
    fail_fast: bool = True


class YieldSnapshot(BaseModel):
    """Immutable view of the cycle counters after one document."""

    model_config = ConfigDict(frozen=True)

    processed: int = 0
    qualified: int = 0
    yield_rate: float = 0.0
    fast_path: bool = False


class CycleState(BaseModel):
    """Running counters for a single query execution."""

    model_config = ConfigDict(frozen=True)

    processed_count: int = Field(0, ge=0)
    qualified_count: int = Field(0, ge=0)
    speedup_locked: bool = False
    fail_fast_triggered: bool = False

    @property
    def yield_rate(self) -> float:
        if self.processed_count == 0:
            return 0.0
        return self.qualified_count / self.processed_count

    def snapshot(self) -> YieldSnapshot:
        return YieldSnapshot(
            processed=self.processed_count,
            qualified=self.qualified_count,
            yield_rate=self.yield_rate,
            fast_path=self.speedup_locked,
        )


def normalize_rating(value: Any) -> float:
    """Coerce an oracle rating onto the 0-10 scale.

    Missing values count as 0.  Values in (0, 1] are read as 0-1
    normalized ratings and rescaled.  Anything that is not a finite
    number is rejected.
    """
    if value is None:
        return 0.0
    if isinstance(value, bool):
        raise ValueError(f"rating must be numeric, got {value!r}")
    if isinstance(value, str):
        value = value.strip()
    try:
        rating = float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"rating must be numeric, got {value!r}") from exc
    if not math.isfinite(rating):
        raise ValueError(f"rating must be finite, got {value!r}")
    if 0.0 < rating <= 1.0:
        rating *= RATING_MAX
    return min(max(rating, 0.0), RATING_MAX)


def _as_text(value: Any) -> str:
    if value is None:
        return "None"
    if isinstance(value, str):
        return value
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    return str(value)


class JudgmentResult(BaseModel):
    """Normalized judgment oracle response."""

    model_config = ConfigDict(frozen=True)

    qualified: bool = False
    score: float = 0.0
    probability: float = 0.0
    summary: str = ""
    tags: List[str] = Field(default_factory=list)
    phytochemicals: str = "None"
    plants: str = "None"
    possible_plants: str = "None"
    corrected: bool = False

    @field_validator("score", "probability", mode="before")
    @classmethod
    def _normalize_rating(cls, v: Any) -> float:
        return normalize_rating(v)

    @field_validator("qualified", mode="before")
    @classmethod
    def _coerce_bool(cls, v: Any) -> bool:
        if isinstance(v, str):
            return v.strip().lower() in {"true", "yes", "1"}
        return bool(v)

    @field_validator("summary", "phytochemicals", "plants", "possible_plants", mode="before")
    @classmethod
    def _coerce_text(cls, v: Any) -> str:
        return _as_text(v)

    @field_validator("tags", mode="before")
    @classmethod
    def _coerce_tags(cls, v: Any) -> List[str]:
        if isinstance(v, (list, tuple)):
            return [str(t) for t in v]
        return []


class QualificationRecord(BaseModel):
    """One finalized result handed to the result sink."""

    model_config = ConfigDict(frozen=True)

    query: str
    document: Document
    score: ScoreResult
    outcome: QualificationOutcome
    judgment: Optional[JudgmentResult] = None
    error_tag: Optional[str] = None
    snapshot: YieldSnapshot
    thresholds: QueryThresholds
    finalized_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def skipped_judgment(self) -> bool:
        return self.judgment is None and self.error_tag is None


class QueryStatus(str, Enum):
    """How a query execution ended."""

    COMPLETED = "completed"
    FAIL_FAST = "fail_fast"
    CANCELLED = "cancelled"


class QuerySummary(BaseModel):
    """End-of-query summary emitted by the cycle orchestrator."""

    query: str
    status: QueryStatus
    total_scanned: int = 0
    total_processed: int = 0
    total_qualified: int = 0
    final_yield: float = 0.0
    fast_path_activated: bool = False
    fail_fast_triggered: bool = False
    next_offset: int = 0
    reason: Optional[str] = None
