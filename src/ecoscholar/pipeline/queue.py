"""Sequential query queue.

Queries run one at a time, never concurrently, so each query's
``CycleState`` is only ever touched by a single stream of control.
Each item may override the default thresholds and carries its own
record window, which also makes a fail-fast or cancelled query
resumable from its ``next_offset``.
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ..exceptions import CandidateSourceError
from ..qualification.models import QueryStatus, QuerySummary, QueryThresholds
from ..utils.cancellation import CancellationToken
from ..utils.logging import get_logger
from .orchestrator import CycleOrchestrator

logger = get_logger(__name__)


class QueueStatus(Enum):
    """Queue item states."""
    READY = "ready"
    RUNNING = "running"
    COMPLETED = "completed"
    NEEDS_ADJUSTMENT = "needs_adjustment"  # stopped by fail fast
    CANCELLED = "cancelled"


@dataclass
class QueryItem:
    """A queued query with optional per-query overrides."""

    query: str
    item_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: QueueStatus = QueueStatus.READY

    # Per-query thresholds (None falls back to the queue defaults)
    vector_min: Optional[float] = None
    composite_min: Optional[float] = None
    probability_min: Optional[float] = None

    # Record window
    start_offset: int = 0
    stop_offset: int = 1000

    # Results
    yield_label: Optional[str] = None
    details: Optional[str] = None
    summary: Optional[QuerySummary] = None

    def thresholds(self, defaults: QueryThresholds) -> QueryThresholds:
        overrides: Dict[str, Any] = {
            k: v
            for k, v in {
                "vector_min": self.vector_min,
                "composite_min": self.composite_min,
                "probability_min": self.probability_min,
            }.items()
            if v is not None
        }
        return QueryThresholds(**{**defaults.model_dump(), **overrides})


class QueryQueue:
    """Run queued queries through one orchestrator, strictly in order."""

    def __init__(
        self,
        orchestrator: CycleOrchestrator,
        defaults: Optional[QueryThresholds] = None,
        items: Optional[List[QueryItem]] = None,
    ) -> None:
        self.orchestrator = orchestrator
        self.defaults = defaults or QueryThresholds()
        self.items: List[QueryItem] = list(items or [])

    def add(self, query: str, **overrides: Any) -> QueryItem:
        item = QueryItem(query=query, **overrides)
        self.items.append(item)
        return item

    async def run(self, cancel: Optional[CancellationToken] = None) -> List[QuerySummary]:
        """Process every item that is not yet completed.

        A cancelled query marks its item ``CANCELLED`` and ends the run.
        A candidate source failure leaves the item ``READY`` with the
        error in ``details`` and moves on to the next item.
        """
        summaries: List[QuerySummary] = []
        for item in self.items:
            if item.status == QueueStatus.COMPLETED:
                continue
            if cancel is not None and cancel.cancelled:
                item.status = QueueStatus.CANCELLED
                break
            item.status = QueueStatus.RUNNING
            try:
                summary = await self.orchestrator.run_query(
                    item.query,
                    item.thresholds(self.defaults),
                    start_offset=item.start_offset,
                    stop_offset=item.stop_offset,
                    cancel=cancel,
                )
            except CandidateSourceError as e:
                logger.error(f"Query '{item.query}' failed: {e}")
                item.status = QueueStatus.READY
                item.details = str(e)
                continue

            item.summary = summary
            item.yield_label = f"{summary.final_yield * 100:.1f}%"
            summaries.append(summary)
            if summary.status == QueryStatus.CANCELLED:
                item.status = QueueStatus.CANCELLED
                item.start_offset = summary.next_offset
                break
            if summary.status == QueryStatus.FAIL_FAST:
                item.status = QueueStatus.NEEDS_ADJUSTMENT
                item.details = summary.reason
                item.start_offset = summary.next_offset
            else:
                item.status = QueueStatus.COMPLETED
        return summaries
