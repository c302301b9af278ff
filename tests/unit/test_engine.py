"""Unit tests for the decision engine: pre-filter, fast path, fail fast and judgment."""

import pytest

from ecoscholar.core.models import ScoreResult
from ecoscholar.exceptions import MalformedJudgment, OracleError, PipelineCancelled
from ecoscholar.qualification.engine import DecisionEngine
from ecoscholar.qualification.models import (
    CycleState,
    JudgmentResult,
    QualificationOutcome as O,
    QueryThresholds,
    SpeedupPolicy,
)
from ecoscholar.utils.cancellation import CancellationToken

from tests.conftest import QUALIFY, REJECT, ScriptedOracle, make_document

TOPICS = ["flavonoids"]


def _engine(oracle, **policy):
    return DecisionEngine(oracle, SpeedupPolicy(**policy), TOPICS, judgment_timeout=1.0)


async def _run_stream(engine, score, count, thresholds=None):
    thresholds = thresholds or QueryThresholds()
    state = CycleState()
    decisions = []
    for n in range(count):
        decision, state = await engine.decide(make_document(n), score, thresholds, state)
        decisions.append(decision)
    return decisions, state


class TestPrefilter:
    """Documents below both thresholds never reach the policy."""

    @pytest.mark.asyncio
    async def test_filtered_out_leaves_state(self, failing_score):
        oracle = ScriptedOracle()
        state = CycleState(processed_count=3, qualified_count=1)
        decision, next_state = await _engine(oracle).decide(make_document(1), failing_score, QueryThresholds(), state)
        assert decision.outcome == O.FILTERED_OUT
        assert next_state == state
        assert oracle.calls == []

    @pytest.mark.asyncio
    async def test_either_filter_is_enough(self):
        oracle = ScriptedOracle(default=QUALIFY)
        composite_only = ScoreResult(vector_score=0.1, composite_score=0.9, passed_composite_filter=True)
        decision, state = await _engine(oracle).decide(make_document(1), composite_only, QueryThresholds(), CycleState())
        assert decision.outcome == O.QUALIFIED
        assert state.processed_count == 1


class TestFailFast:
    """Fail fast aborts a query whose sample produced nothing."""

    @pytest.mark.asyncio
    async def test_aborts_on_tenth_rejection(self, passing_score):
        oracle = ScriptedOracle(default=REJECT)
        decisions, state = await _run_stream(_engine(oracle, sample_size=10), passing_score, 10)
        assert [d.outcome for d in decisions[:9]] == [O.REJECTED] * 9
        assert decisions[9].outcome == O.ABORTED_LOW_YIELD
        assert decisions[9].fail_fast_triggered
        assert state.fail_fast_triggered
        assert state.processed_count == 10
        assert len(oracle.calls) == 9

    @pytest.mark.asyncio
    async def test_subsequent_documents_aborted(self, passing_score):
        engine = _engine(ScriptedOracle())
        state = CycleState(processed_count=10, fail_fast_triggered=True)
        decision, next_state = await engine.decide(make_document(11), passing_score, QueryThresholds(), state)
        assert decision.outcome == O.ABORTED_LOW_YIELD
        assert not decision.fail_fast_triggered
        assert next_state == state

    @pytest.mark.asyncio
    async def test_disabled(self, passing_score):
        oracle = ScriptedOracle(default=REJECT)
        decisions, state = await _run_stream(_engine(oracle, fail_fast=False), passing_score, 12)
        assert all(d.outcome == O.REJECTED for d in decisions)
        assert not state.fail_fast_triggered

    @pytest.mark.asyncio
    async def test_single_qualification_prevents_abort(self, passing_score):
        oracle = ScriptedOracle([QUALIFY], default=REJECT)
        decisions, state = await _run_stream(_engine(oracle, sample_size=5, target_qualify_rate=0.9), passing_score, 8)
        assert O.ABORTED_LOW_YIELD not in [d.outcome for d in decisions]
        assert state.qualified_count == 1


class TestFastPath:
    """Fast path locks in once the observed yield reaches the target."""

    @pytest.mark.asyncio
    async def test_activates_on_sixth_document(self, passing_score):
        oracle = ScriptedOracle([REJECT, REJECT, QUALIFY, QUALIFY, QUALIFY])
        engine = _engine(oracle, sample_size=10, target_qualify_rate=0.5)
        decisions, state = await _run_stream(engine, passing_score, 8)

        assert [d.outcome for d in decisions] == [
            O.REJECTED, O.REJECTED, O.QUALIFIED, O.QUALIFIED, O.QUALIFIED,
            O.QUALIFIED_FAST_PATH, O.QUALIFIED_FAST_PATH, O.QUALIFIED_FAST_PATH,
        ]
        assert decisions[5].fast_path_activated
        assert not decisions[6].fast_path_activated
        assert len(oracle.calls) == 5
        assert state.speedup_locked
        assert (state.processed_count, state.qualified_count) == (8, 6)

    @pytest.mark.asyncio
    async def test_first_document_never_fast_pathed(self, passing_score):
        oracle = ScriptedOracle(default=REJECT)
        engine = _engine(oracle, target_qualify_rate=0.0)
        decision, state = await engine.decide(make_document(1), passing_score, QueryThresholds(), CycleState())
        assert decision.outcome == O.REJECTED
        assert len(oracle.calls) == 1
        assert not state.speedup_locked

    @pytest.mark.asyncio
    async def test_needs_a_success_within_sample(self, passing_score):
        """With zero qualified and a sample not yet exhausted, a 0% target still judges."""
        oracle = ScriptedOracle(default=REJECT)
        decisions, _ = await _run_stream(_engine(oracle, target_qualify_rate=0.0, fail_fast=False), passing_score, 3)
        assert all(d.outcome == O.REJECTED for d in decisions)

    @pytest.mark.asyncio
    async def test_locked_state_bypasses_fail_fast(self, passing_score):
        oracle = ScriptedOracle()
        state = CycleState(processed_count=20, qualified_count=15, speedup_locked=True)
        decision, next_state = await _engine(oracle, sample_size=5).decide(
            make_document(1), passing_score, QueryThresholds(), state
        )
        assert decision.outcome == O.QUALIFIED_FAST_PATH
        assert (next_state.processed_count, next_state.qualified_count) == (21, 16)
        assert oracle.calls == []


class TestJudgment:
    """Judged documents: qualification bar, corrective re-query and failures."""

    @pytest.mark.asyncio
    async def test_score_overrides_oracle_boolean(self, passing_score):
        oracle = ScriptedOracle([JudgmentResult(qualified=False, score=7, probability=2)])
        decision, state = await _engine(oracle).decide(make_document(1), passing_score, QueryThresholds(), CycleState())
        assert decision.outcome == O.QUALIFIED
        assert state.qualified_count == 1

    @pytest.mark.asyncio
    async def test_probability_threshold(self, passing_score):
        result = JudgmentResult(qualified=False, score=2, probability=6)
        strict = QueryThresholds(probability_min=7)
        oracle = ScriptedOracle([result, result])
        engine = _engine(oracle)
        loose_decision, _ = await engine.decide(make_document(1), passing_score, QueryThresholds(), CycleState())
        strict_decision, _ = await engine.decide(make_document(2), passing_score, strict, CycleState())
        assert loose_decision.outcome == O.QUALIFIED
        assert strict_decision.outcome == O.REJECTED

    @pytest.mark.asyncio
    async def test_zero_probability_triggers_one_correction(self, passing_score):
        oracle = ScriptedOracle([
            JudgmentResult(qualified=False, score=2, probability=0),
            JudgmentResult(qualified=False, score=3, probability=6),
        ])
        decision, _ = await _engine(oracle).decide(make_document(1), passing_score, QueryThresholds(), CycleState())
        assert [c[1] for c in oracle.calls] == [False, True]
        assert decision.outcome == O.QUALIFIED
        assert decision.judgment.corrected
        assert decision.judgment.probability == 6
        assert decision.oracle_calls == 2

    @pytest.mark.asyncio
    async def test_second_zero_is_final(self, passing_score):
        zero = JudgmentResult(qualified=False, score=2, probability=0)
        oracle = ScriptedOracle([zero, zero, QUALIFY])
        decision, _ = await _engine(oracle).decide(make_document(1), passing_score, QueryThresholds(), CycleState())
        assert len(oracle.calls) == 2
        assert decision.outcome == O.REJECTED
        assert not decision.judgment.corrected

    @pytest.mark.asyncio
    async def test_unit_interval_score_is_rescaled(self, passing_score):
        """A score of 1 on a 0-1 scale reads as 10 and clears the score bar."""
        oracle = ScriptedOracle([JudgmentResult(qualified=False, score=1, probability=2)])
        decision, _ = await _engine(oracle).decide(make_document(1), passing_score, QueryThresholds(), CycleState())
        assert decision.judgment.score == 10.0
        assert decision.outcome == O.QUALIFIED

    @pytest.mark.asyncio
    async def test_failed_correction_keeps_original(self, passing_score):
        zero = JudgmentResult(qualified=False, score=6, probability=0)
        oracle = ScriptedOracle([zero, OracleError("down")])
        decision, _ = await _engine(oracle).decide(make_document(1), passing_score, QueryThresholds(), CycleState())
        assert decision.outcome == O.QUALIFIED
        assert decision.error_tag is None
        assert decision.judgment.score == 6

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error, tag",
        [(OracleError("boom"), "oracle_error"), (MalformedJudgment("bad json"), "parse_error")],
    )
    async def test_oracle_failure_rejects_with_tag(self, passing_score, error, tag):
        oracle = ScriptedOracle([error])
        decision, state = await _engine(oracle).decide(make_document(1), passing_score, QueryThresholds(), CycleState())
        assert decision.outcome == O.REJECTED
        assert decision.error_tag == tag
        assert decision.judgment is None
        assert (state.processed_count, state.qualified_count) == (1, 0)

    @pytest.mark.asyncio
    async def test_timeout_rejects(self, passing_score):
        oracle = ScriptedOracle(default=QUALIFY, delay=1.0)
        engine = DecisionEngine(oracle, SpeedupPolicy(), TOPICS, judgment_timeout=0.05)
        decision, _ = await engine.decide(make_document(1), passing_score, QueryThresholds(), CycleState())
        assert decision.outcome == O.REJECTED
        assert decision.error_tag == "timeout"

    @pytest.mark.asyncio
    async def test_cancelled_before_judgment(self, passing_score):
        oracle = ScriptedOracle()
        token = CancellationToken()
        token.cancel()
        with pytest.raises(PipelineCancelled):
            await _engine(oracle).decide(make_document(1), passing_score, QueryThresholds(), CycleState(), token)
        assert oracle.calls == []


class TestScenarios:
    """End-to-end decision sequences."""

    @pytest.mark.asyncio
    async def test_three_document_stream(self):
        thresholds = QueryThresholds(vector_min=0.5, composite_min=0.5)
        doc_a = ScoreResult(vector_score=0.6, composite_score=0.0, passed_vector_filter=True)
        doc_b = ScoreResult(vector_score=0.3, composite_score=0.2)
        doc_c = ScoreResult(vector_score=0.7, composite_score=0.0, passed_vector_filter=True)
        oracle = ScriptedOracle([JudgmentResult(qualified=False, score=7, probability=2), REJECT])
        engine = _engine(oracle)

        state = CycleState()
        a, state = await engine.decide(make_document(1), doc_a, thresholds, state)
        after_a = state
        b, state = await engine.decide(make_document(2), doc_b, thresholds, state)
        assert state == after_a
        c, state = await engine.decide(make_document(3), doc_c, thresholds, state)

        assert (a.outcome, b.outcome, c.outcome) == (O.QUALIFIED, O.FILTERED_OUT, O.REJECTED)
        assert len(oracle.calls) == 2
        assert (state.processed_count, state.qualified_count) == (2, 1)

    @pytest.mark.asyncio
    async def test_deterministic(self, passing_score):
        script = [REJECT, QUALIFY, REJECT, QUALIFY, QUALIFY, QUALIFY]
        first, _ = await _run_stream(_engine(ScriptedOracle(list(script))), passing_score, 9)
        second, _ = await _run_stream(_engine(ScriptedOracle(list(script))), passing_score, 9)
        assert [d.outcome for d in first] == [d.outcome for d in second]

    def test_classify_does_not_mutate(self, passing_score):
        engine = _engine(ScriptedOracle())
        state = CycleState(processed_count=2, qualified_count=2)
        _, next_state = engine.classify(passing_score, state)
        assert state.processed_count == 2
        assert next_state is not state
