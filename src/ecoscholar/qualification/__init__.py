"""Qualification subpackage: the per-document decision process.

The main entry points are:

* :class:`DecisionEngine` – turns scores and the running ``CycleState``
  of a query into a terminal :class:`QualificationOutcome`, consulting
  the judgment oracle only when the speedup/fail-fast policy requires it.
* :func:`run_judgment` / :class:`JudgmentControl` – a judgment call
  raced against its timeout ceiling and operator retry/skip requests.
* :class:`StatisticsTracker` – per-query counters and run totals.
* :class:`EventBus` – typed events for logging and display subscribers.
"""

from .models import (
    CycleState,
    JudgmentResult,
    QualificationOutcome,
    QualificationRecord,
    QueryStatus,
    QuerySummary,
    QueryThresholds,
    SpeedupPolicy,
    YieldSnapshot,
)
from .engine import Decision, DecisionEngine
from .judgment import JudgmentControl, JudgmentErrorType, JudgmentOutcome, run_judgment
from .stats import RunStats, StatisticsTracker
from .events import EventBus, LoggingSubscriber

__all__ = [
    "CycleState",
    "JudgmentResult",
    "QualificationOutcome",
    "QualificationRecord",
    "QueryStatus",
    "QuerySummary",
    "QueryThresholds",
    "SpeedupPolicy",
    "YieldSnapshot",
    "Decision",
    "DecisionEngine",
    "JudgmentControl",
    "JudgmentErrorType",
    "JudgmentOutcome",
    "run_judgment",
    "RunStats",
    "StatisticsTracker",
    "EventBus",
    "LoggingSubscriber",
]
