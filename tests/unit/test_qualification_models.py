"""Unit tests for qualification models and rating normalization."""

import math

import pytest
from pydantic import ValidationError

from ecoscholar.core.models import Document
from ecoscholar.qualification.models import (
    CycleState,
    JudgmentResult,
    QualificationOutcome,
    QueryThresholds,
    SpeedupPolicy,
    normalize_rating,
)


class TestNormalizeRating:
    """Tests for oracle rating normalization."""

    def test_plain_values(self):
        assert normalize_rating(7) == 7.0
        assert normalize_rating("6") == 6.0
        assert normalize_rating(None) == 0.0

    def test_unit_interval_is_rescaled(self):
        assert normalize_rating(0.8) == pytest.approx(8.0)
        assert normalize_rating(1) == 10.0

    def test_clamped(self):
        assert normalize_rating(42) == 10.0
        assert normalize_rating(-3) == 0.0

    @pytest.mark.parametrize("value", ["high", True, math.nan, math.inf, [1]])
    def test_rejects_non_numeric(self, value):
        with pytest.raises(ValueError):
            normalize_rating(value)


class TestJudgmentResult:
    """Tests for JudgmentResult coercion."""

    def test_coerces_loose_payload(self):
        result = JudgmentResult(
            qualified="yes",
            score="0.7",
            probability=12,
            summary=["a", "b"],
            tags="not a list",
            plants=None,
        )
        assert result.qualified is True
        assert result.score == pytest.approx(7.0)
        assert result.probability == 10.0
        assert result.summary == "a, b"
        assert result.tags == []
        assert result.plants == "None"

    def test_malformed_rating_raises(self):
        with pytest.raises(ValidationError):
            JudgmentResult(score="lots")

    def test_defaults(self):
        result = JudgmentResult()
        assert not result.qualified
        assert result.probability == 0.0
        assert not result.corrected


class TestThresholdsAndPolicy:
    """Tests for per-query thresholds and the speedup policy."""

    def test_defaults(self):
        thresholds = QueryThresholds()
        assert thresholds.vector_min == 0.59
        assert thresholds.composite_min == 0.60
        assert thresholds.probability_min == 5.0

    def test_percentage_probability_is_scaled(self):
        assert QueryThresholds(probability_min=50).probability_min == 5.0
        assert QueryThresholds(probability_min=10).probability_min == 10.0

    def test_policy_bounds(self):
        with pytest.raises(ValidationError):
            SpeedupPolicy(target_qualify_rate=1.5)
        with pytest.raises(ValidationError):
            SpeedupPolicy(sample_size=0)


class TestCycleState:
    """Tests for the per-query counters."""

    def test_yield_rate(self):
        assert CycleState().yield_rate == 0.0
        assert CycleState(processed_count=4, qualified_count=3).yield_rate == 0.75

    def test_is_frozen(self):
        state = CycleState()
        with pytest.raises(ValidationError):
            state.processed_count = 3

    def test_snapshot(self):
        snap = CycleState(processed_count=2, qualified_count=1, speedup_locked=True).snapshot()
        assert (snap.processed, snap.qualified, snap.yield_rate, snap.fast_path) == (2, 1, 0.5, True)


class TestOutcomes:
    def test_is_qualified(self):
        assert QualificationOutcome.QUALIFIED.is_qualified
        assert QualificationOutcome.QUALIFIED_FAST_PATH.is_qualified
        assert not QualificationOutcome.REJECTED.is_qualified
        assert not QualificationOutcome.ABORTED_LOW_YIELD.is_qualified


class TestDocument:
    def test_text_and_doi(self):
        doc = Document(id="pubmed:1", title="Title", abstract="Body", source="pubmed", doi="DOI:10.1/ABC")
        assert doc.text == "Title Body"
        assert doc.doi == "10.1/abc"
