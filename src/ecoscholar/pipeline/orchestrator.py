"""Cycle orchestration: paginate one query through the decision engine."""

import asyncio
from typing import Dict, List, Optional, Sequence, Tuple

from ..config.settings import settings
from ..core.models import Document, Embedding, SemanticRule
from ..exceptions import PipelineCancelled
from ..llm.base import EmbeddingProvider, JudgmentOracle
from ..qualification.engine import DecisionEngine
from ..qualification.events import (
    DocumentScored,
    EventBus,
    FailFastTriggered,
    FastPathActivated,
    JudgmentFailed,
    QueryFinished,
    QueryStarted,
)
from ..qualification.judgment import JudgmentControl
from ..qualification.models import (
    QualificationRecord,
    QueryStatus,
    QuerySummary,
    QueryThresholds,
    SpeedupPolicy,
)
from ..qualification.stats import StatisticsTracker
from ..scoring.rules import RuleScorer
from ..search.base import CandidateSource
from ..utils.cancellation import CancellationToken
from ..utils.logging import get_logger
from .sinks import ResultSink

logger = get_logger(__name__)


def dedupe_page(page: Sequence[Document]) -> List[Tuple[int, Document]]:
    """Drop repeated IDs within a page, keeping each document's page position."""
    seen: Dict[str, int] = {}
    unique: List[Tuple[int, Document]] = []
    for position, document in enumerate(page):
        if document.id in seen:
            continue
        seen[document.id] = position
        unique.append((position, document))
    return unique


class CycleOrchestrator:
    """Drive one query at a time through scoring and qualification.

    Pages are fetched from the candidate source, embeddings for a page are
    fetched concurrently in small chunks, and decisions are then applied
    strictly in arrival order so the fail-fast and fast-path triggers do
    not depend on network completion order.
    """

    def __init__(
        self,
        source: CandidateSource,
        embedder: EmbeddingProvider,
        engine: DecisionEngine,
        scorer: RuleScorer,
        sink: ResultSink,
        *,
        tracker: Optional[StatisticsTracker] = None,
        bus: Optional[EventBus] = None,
        page_size: Optional[int] = None,
        embed_chunk_size: Optional[int] = None,
        embed_chunk_delay: Optional[float] = None,
    ) -> None:
        self.source = source
        self.embedder = embedder
        self.engine = engine
        self.scorer = scorer
        self.sink = sink
        self.tracker = tracker or StatisticsTracker()
        self.bus = bus or EventBus()
        self.page_size = page_size or settings.page_size
        self.embed_chunk_size = embed_chunk_size or settings.embed_chunk_size
        self.embed_chunk_delay = settings.embed_chunk_delay if embed_chunk_delay is None else embed_chunk_delay

    @classmethod
    async def build(
        cls,
        source: CandidateSource,
        embedder: EmbeddingProvider,
        oracle: JudgmentOracle,
        rules: Sequence[SemanticRule],
        topics: Sequence[str],
        sink: ResultSink,
        *,
        policy: Optional[SpeedupPolicy] = None,
        bus: Optional[EventBus] = None,
        control: Optional[JudgmentControl] = None,
        judgment_timeout: Optional[float] = None,
        **kwargs,
    ) -> "CycleOrchestrator":
        """Embed the rule set once and wire up an orchestrator for a run."""
        policy = policy or SpeedupPolicy(
            sample_size=settings.speedup_sample_size,
            target_qualify_rate=settings.speedup_qualify_rate,
            fail_fast=settings.fail_fast,
        )
        scorer = await RuleScorer.prepare(rules, embedder)
        engine = DecisionEngine(
            oracle,
            policy,
            topics,
            judgment_timeout=judgment_timeout or settings.judgment_timeout,
            control=control,
        )
        return cls(source, embedder, engine, scorer, sink, bus=bus, **kwargs)

    async def _safe_embed(self, document: Document) -> Optional[Embedding]:
        try:
            return await self.embedder.embed(document.text)
        except Exception as e:
            logger.warning(f"Embedding failed for {document.id}: {e}")
            return None

    async def _embed_documents(
        self,
        documents: Sequence[Document],
        cancel: Optional[CancellationToken],
    ) -> List[Optional[Embedding]]:
        embeddings: List[Optional[Embedding]] = []
        size = self.embed_chunk_size
        for start in range(0, len(documents), size):
            if cancel is not None:
                cancel.raise_if_cancelled("before embedding chunk")
            if start > 0 and self.embed_chunk_delay > 0:
                await asyncio.sleep(self.embed_chunk_delay)
            chunk = documents[start:start + size]
            embeddings.extend(await asyncio.gather(*(self._safe_embed(d) for d in chunk)))
        return embeddings

    async def run_query(
        self,
        query: str,
        thresholds: QueryThresholds,
        start_offset: int = 0,
        stop_offset: Optional[int] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> QuerySummary:
        """Process ``query`` from ``start_offset`` up to ``stop_offset``.

        Cancellation ends the query with a ``CANCELLED`` summary whose
        ``next_offset`` points at the first document without a record.
        Candidate source errors propagate.
        """
        stop_offset = stop_offset if stop_offset is not None else settings.default_stop_offset
        self.tracker.reset()
        self.bus.publish(QueryStarted(query=query, start_offset=start_offset, stop_offset=stop_offset))

        scanned = 0
        fast_path_seen = False
        status = QueryStatus.COMPLETED
        reason: Optional[str] = None
        offset = start_offset
        next_offset = start_offset

        try:
            if cancel is not None:
                cancel.raise_if_cancelled("before query embedding")
            query_embedding = await self.embedder.embed(query)
            if not query_embedding:
                logger.warning(f"No embedding for query '{query}'; vector scores will be 0")

            while offset < stop_offset:
                if cancel is not None:
                    cancel.raise_if_cancelled("before page fetch")
                limit = min(self.page_size, stop_offset - offset)
                page = await self.source.fetch_page(query, offset, limit)
                if not page:
                    logger.info(f"Candidate source exhausted at offset {offset}")
                    break

                unique = dedupe_page(page)
                embeddings = await self._embed_documents([d for _, d in unique], cancel)

                for (position, document), embedding in zip(unique, embeddings):
                    score = self.scorer.score_document(query_embedding, embedding, thresholds)
                    decision, next_state = await self.engine.decide(
                        document, score, thresholds, self.tracker.state, cancel
                    )
                    record = QualificationRecord(
                        query=query,
                        document=document,
                        score=score,
                        outcome=decision.outcome,
                        judgment=decision.judgment,
                        error_tag=decision.error_tag,
                        snapshot=next_state.snapshot(),
                        thresholds=thresholds,
                    )
                    await self.sink.emit(record)
                    self.tracker.commit(next_state, record, decision.oracle_calls)
                    scanned += 1
                    next_offset = offset + position + 1

                    self.bus.publish(DocumentScored(record=record))
                    if decision.error_tag is not None:
                        self.bus.publish(
                            JudgmentFailed(
                                query=query,
                                document_id=document.id,
                                error_tag=decision.error_tag,
                                detail=decision.error_detail,
                            )
                        )
                    if decision.fast_path_activated:
                        fast_path_seen = True
                        self.bus.publish(
                            FastPathActivated(query=query, document_id=document.id, snapshot=record.snapshot)
                        )
                    if decision.fail_fast_triggered:
                        self.bus.publish(
                            FailFastTriggered(query=query, document_id=document.id, snapshot=record.snapshot)
                        )
                        break

                if self.tracker.state.fail_fast_triggered:
                    status = QueryStatus.FAIL_FAST
                    policy = self.engine.policy
                    reason = (
                        f"Yield {self.tracker.state.yield_rate:.1%} after "
                        f"{self.tracker.state.processed_count} candidates "
                        f"(target {policy.target_qualify_rate:.0%})"
                    )
                    break
                offset += len(page)
                next_offset = offset
        except PipelineCancelled as exc:
            logger.info(f"Query '{query}' cancelled: {exc}")
            status = QueryStatus.CANCELLED
            reason = str(exc)

        state = self.tracker.state
        summary = QuerySummary(
            query=query,
            status=status,
            total_scanned=scanned,
            total_processed=state.processed_count,
            total_qualified=state.qualified_count,
            final_yield=state.yield_rate,
            fast_path_activated=fast_path_seen or state.speedup_locked,
            fail_fast_triggered=state.fail_fast_triggered,
            next_offset=next_offset,
            reason=reason,
        )
        self.bus.publish(QueryFinished(summary=summary))
        return summary
