"""Per-document qualification decisions.

The decision engine turns a document's scores and the running
``CycleState`` of its query into one terminal outcome:

1. Documents that clear neither the vector nor the composite threshold
   are ``FILTERED_OUT`` and do not touch the counters; the speedup and
   fail-fast heuristics only ever reason over documents that cleared the
   semantic bar.
2. Every other document increments ``processed_count``.
3. Fail fast: once ``sample_size`` documents have been processed with no
   qualified document, the query is aborted (``ABORTED_LOW_YIELD``).
4. Fast path: when the observed yield reaches ``target_qualify_rate``
   (never on the first document, and only with enough evidence) the
   engine locks into ``QUALIFIED_FAST_PATH`` for the rest of the query.
5. Otherwise the judgment oracle is consulted.  Its boolean is advisory:
   a numeric score or probability at or above the bar qualifies the
   document as well.

The engine never mutates the state it is given.  ``decide`` returns the
next state alongside the decision and the orchestrator commits it once
the document's record is out, so a cancellation in the middle of a
judgment call leaves the committed counters untouched.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from ..core.models import Document, ScoreResult
from ..llm.base import JudgmentOracle
from ..utils.cancellation import CancellationToken
from ..utils.logging import get_logger
from .judgment import JudgmentControl, JudgmentOutcome, run_judgment
from .models import CycleState, JudgmentResult, QualificationOutcome, QueryThresholds, SpeedupPolicy

logger = get_logger(__name__)

# Oracle score at or above which a document qualifies regardless of its boolean
SCORE_QUALIFY_MIN = 5.0
DEFAULT_JUDGMENT_TIMEOUT = 60.0


@dataclass(frozen=True)
class Decision:
    """Outcome of one document plus what it took to get there."""

    outcome: QualificationOutcome
    judgment: Optional[JudgmentResult] = None
    error_tag: Optional[str] = None
    error_detail: Optional[str] = None
    oracle_calls: int = 0
    fast_path_activated: bool = False
    fail_fast_triggered: bool = False


def judgment_qualifies(result: JudgmentResult, probability_min: float) -> bool:
    return (
        result.qualified
        or result.score >= SCORE_QUALIFY_MIN
        or result.probability >= probability_min
    )


class DecisionEngine:
    """Stateless decision logic bound to one oracle and one policy."""

    def __init__(
        self,
        oracle: JudgmentOracle,
        policy: SpeedupPolicy,
        topics: Sequence[str],
        *,
        judgment_timeout: float = DEFAULT_JUDGMENT_TIMEOUT,
        control: Optional[JudgmentControl] = None,
    ) -> None:
        self.oracle = oracle
        self.policy = policy
        self.topics = list(topics)
        self.judgment_timeout = judgment_timeout
        self.control = control

    def classify(
        self,
        score: ScoreResult,
        state: CycleState,
    ) -> Tuple[Decision, CycleState]:
        """Apply the pre-filter and the speedup/fail-fast policy.

        Returns ``PENDING_JUDGMENT`` when the oracle has to be consulted;
        the returned state already counts the document as processed.
        """
        if not score.passed_prefilter:
            return Decision(QualificationOutcome.FILTERED_OUT), state

        if state.fail_fast_triggered:
            return Decision(QualificationOutcome.ABORTED_LOW_YIELD), state

        processed = state.processed_count + 1
        qualified = state.qualified_count
        policy = self.policy

        if policy.fail_fast and not state.speedup_locked:
            if processed >= policy.sample_size and qualified == 0:
                next_state = state.model_copy(
                    update={"processed_count": processed, "fail_fast_triggered": True}
                )
                return Decision(QualificationOutcome.ABORTED_LOW_YIELD, fail_fast_triggered=True), next_state

        if state.speedup_locked:
            next_state = state.model_copy(
                update={"processed_count": processed, "qualified_count": qualified + 1}
            )
            return Decision(QualificationOutcome.QUALIFIED_FAST_PATH), next_state

        current_yield = qualified / processed
        eligible = (
            processed > 1
            and (processed > policy.sample_size or qualified > 0)
            and current_yield >= policy.target_qualify_rate
        )
        if eligible:
            next_state = state.model_copy(
                update={
                    "processed_count": processed,
                    "qualified_count": qualified + 1,
                    "speedup_locked": True,
                }
            )
            return Decision(QualificationOutcome.QUALIFIED_FAST_PATH, fast_path_activated=True), next_state

        next_state = state.model_copy(update={"processed_count": processed})
        return Decision(QualificationOutcome.PENDING_JUDGMENT), next_state

    async def decide(
        self,
        document: Document,
        score: ScoreResult,
        thresholds: QueryThresholds,
        state: CycleState,
        cancel: Optional[CancellationToken] = None,
    ) -> Tuple[Decision, CycleState]:
        """Decide the terminal outcome of ``document``.

        Raises :class:`~ecoscholar.exceptions.PipelineCancelled` if the
        run is cancelled around the judgment call; ``state`` is left as is.
        """
        decision, next_state = self.classify(score, state)
        if decision.outcome != QualificationOutcome.PENDING_JUDGMENT:
            return decision, next_state

        if cancel is not None:
            cancel.raise_if_cancelled("before judgment")
        outcome, calls = await self._judge(document, cancel)
        if cancel is not None:
            cancel.raise_if_cancelled("after judgment")

        if not outcome.ok:
            tag = outcome.error.value if outcome.error else "oracle_error"
            logger.warning(
                f"Judgment failed for {document.id}: {outcome.detail}",
                extra={"document_id": document.id, "error_tag": tag},
            )
            return (
                Decision(
                    QualificationOutcome.REJECTED,
                    error_tag=tag,
                    error_detail=outcome.detail,
                    oracle_calls=calls,
                ),
                next_state,
            )

        result = outcome.result
        if judgment_qualifies(result, thresholds.probability_min):
            next_state = next_state.model_copy(update={"qualified_count": next_state.qualified_count + 1})
            return Decision(QualificationOutcome.QUALIFIED, judgment=result, oracle_calls=calls), next_state
        return Decision(QualificationOutcome.REJECTED, judgment=result, oracle_calls=calls), next_state

    async def _judge(
        self,
        document: Document,
        cancel: Optional[CancellationToken],
    ) -> Tuple[JudgmentOutcome, int]:
        """Run the judgment call, with one corrective re-query on a zero probability."""
        outcome = await run_judgment(
            lambda: self.oracle.judge(document, self.topics),
            self.judgment_timeout,
            self.control,
            cancel,
        )
        calls = outcome.attempts
        if not outcome.ok or outcome.result.probability != 0:
            return outcome, calls

        # The document cleared the pre-filter, so a zero probability is
        # suspicious: ask once more with the contradiction spelled out.
        if cancel is not None:
            cancel.raise_if_cancelled("before corrective judgment")
        logger.info(f"Zero probability for {document.id}; re-querying with correction")
        corrected = await run_judgment(
            lambda: self.oracle.judge(document, self.topics, correction=True),
            self.judgment_timeout,
            self.control,
            cancel,
        )
        calls += corrected.attempts
        if corrected.ok and corrected.result.probability > 0:
            return (
                JudgmentOutcome(
                    result=corrected.result.model_copy(update={"corrected": True}),
                    attempts=outcome.attempts,
                ),
                calls,
            )
        if not corrected.ok:
            logger.warning(
                f"Corrective judgment failed for {document.id}; keeping original result",
                extra={"error_tag": corrected.error.value if corrected.error else None},
            )
        return outcome, calls
