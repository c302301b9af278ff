"""Query execution: cycle orchestration, sequential queue and result sinks."""

from .orchestrator import CycleOrchestrator
from .queue import QueryItem, QueryQueue, QueueStatus
from .sinks import MemorySink, ResultSink

__all__ = [
    "CycleOrchestrator",
    "QueryItem",
    "QueryQueue",
    "QueueStatus",
    "MemorySink",
    "ResultSink",
]
