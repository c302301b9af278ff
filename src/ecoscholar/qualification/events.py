"""Typed pipeline events and a minimal publish/subscribe bus.

Scoring and decision logic never log or render inline; they publish
events here and independent subscribers (the logging subscriber, the
CLI) react to them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional, Type, Union

from ..utils.logging import get_logger
from .models import QualificationRecord, QuerySummary, YieldSnapshot

logger = get_logger(__name__)


@dataclass(frozen=True)
class QueryStarted:
    query: str
    start_offset: int
    stop_offset: int
    at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class DocumentScored:
    """A document's outcome has been finalized and committed."""

    record: QualificationRecord


@dataclass(frozen=True)
class FastPathActivated:
    """Observed yield reached the target; judgment is bypassed from now on."""

    query: str
    document_id: str
    snapshot: YieldSnapshot


@dataclass(frozen=True)
class FailFastTriggered:
    """A full sample produced no qualified documents; the query is aborted."""

    query: str
    document_id: str
    snapshot: YieldSnapshot


@dataclass(frozen=True)
class JudgmentFailed:
    query: str
    document_id: str
    error_tag: str
    detail: Optional[str] = None


@dataclass(frozen=True)
class QueryFinished:
    summary: QuerySummary


PipelineEvent = Union[
    QueryStarted, DocumentScored, FastPathActivated, FailFastTriggered, JudgmentFailed, QueryFinished
]
Handler = Callable[[PipelineEvent], None]


class EventBus:
    """Synchronous fan-out of pipeline events to subscribers.

    Subscribers may filter by event type.  A failing subscriber is logged
    and does not stop delivery to the others or affect the pipeline.
    """

    def __init__(self) -> None:
        self._subscribers: List[tuple[Optional[Type], Handler]] = []

    def subscribe(self, handler: Handler, event_type: Optional[Type] = None) -> None:
        self._subscribers.append((event_type, handler))

    def publish(self, event: PipelineEvent) -> None:
        for event_type, handler in self._subscribers:
            if event_type is not None and not isinstance(event, event_type):
                continue
            try:
                handler(event)
            except Exception:
                logger.exception("Event subscriber failed", extra={"event": type(event).__name__})


class LoggingSubscriber:
    """Write pipeline events to the structured log."""

    def __call__(self, event: PipelineEvent) -> None:
        if isinstance(event, QueryStarted):
            logger.info(
                f"Query started: {event.query}",
                extra={"start_offset": event.start_offset, "stop_offset": event.stop_offset},
            )
        elif isinstance(event, DocumentScored):
            rec = event.record
            logger.debug(
                "Document finalized",
                extra={
                    "document_id": rec.document.id,
                    "outcome": rec.outcome.value,
                    "vector_score": rec.score.vector_score,
                    "composite_score": rec.score.composite_score,
                    "yield": rec.snapshot.yield_rate,
                },
            )
        elif isinstance(event, FastPathActivated):
            logger.info(
                f"Fast path activated for '{event.query}'",
                extra={"document_id": event.document_id, "yield": event.snapshot.yield_rate},
            )
        elif isinstance(event, FailFastTriggered):
            logger.warning(
                f"Fail fast: aborting '{event.query}'",
                extra={"document_id": event.document_id, "processed": event.snapshot.processed},
            )
        elif isinstance(event, JudgmentFailed):
            logger.warning(
                f"Judgment failed ({event.error_tag})",
                extra={"document_id": event.document_id, "detail": event.detail},
            )
        elif isinstance(event, QueryFinished):
            s = event.summary
            logger.info(
                f"Query finished: {s.query}",
                extra={
                    "status": s.status.value,
                    "processed": s.total_processed,
                    "qualified": s.total_qualified,
                    "yield": s.final_yield,
                },
            )
