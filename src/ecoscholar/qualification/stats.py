"""Running statistics for the active query and the whole run."""

from dataclasses import dataclass, asdict
from typing import Any, Dict

from .models import CycleState, QualificationOutcome, QualificationRecord, YieldSnapshot


@dataclass
class RunStats:
    """
    Counters accumulated across every query of a run.

    Attributes:
        total_scanned: Documents that reached the decision engine
        passed_prefilter: Documents that cleared the vector or composite bar
        judged: Documents sent to the judgment oracle
        oracle_calls: Oracle invocations, including corrective re-queries and retries
        qualified: Documents qualified by judgment or fast path
        fast_path_qualified: Documents qualified without an oracle call
        judgment_errors: Judgment calls that failed, timed out or were skipped
        fast_path_active: Whether the current query is locked into the fast path
    """
    total_scanned: int = 0
    passed_prefilter: int = 0
    judged: int = 0
    oracle_calls: int = 0
    qualified: int = 0
    fast_path_qualified: int = 0
    judgment_errors: int = 0
    fast_path_active: bool = False

    @property
    def oracle_calls_avoided(self) -> int:
        """Judgment calls saved by the fast path."""
        return self.fast_path_qualified

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["oracle_calls_avoided"] = self.oracle_calls_avoided
        return data


class StatisticsTracker:
    """Owns the ``CycleState`` of the active query.

    Only the orchestrator commits new states; everything else reads
    immutable snapshots.
    """

    def __init__(self) -> None:
        self._state = CycleState()
        self.run = RunStats()

    @property
    def state(self) -> CycleState:
        return self._state

    def reset(self) -> None:
        """Start a new query: zero the cycle counters, keep run totals."""
        self._state = CycleState()
        self.run.fast_path_active = False

    def commit(self, state: CycleState, record: QualificationRecord, oracle_calls: int = 0) -> None:
        if state.qualified_count < self._state.qualified_count:
            raise ValueError("qualified_count must never decrease within a query")
        if state.processed_count < self._state.processed_count:
            raise ValueError("processed_count must never decrease within a query")
        self._state = state
        run = self.run
        run.total_scanned += 1
        if record.score.passed_prefilter:
            run.passed_prefilter += 1
        run.oracle_calls += oracle_calls
        if record.judgment is not None or record.error_tag is not None:
            run.judged += 1
        if record.error_tag is not None:
            run.judgment_errors += 1
        if record.outcome.is_qualified:
            run.qualified += 1
        if record.outcome == QualificationOutcome.QUALIFIED_FAST_PATH:
            run.fast_path_qualified += 1
        run.fast_path_active = state.speedup_locked

    def snapshot(self) -> YieldSnapshot:
        return self._state.snapshot()
