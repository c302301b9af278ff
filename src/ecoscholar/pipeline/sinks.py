"""Result sinks: consumers of finalized qualification records."""

from abc import ABC, abstractmethod
from typing import List

from ..qualification.models import QualificationOutcome, QualificationRecord


class ResultSink(ABC):
    """Receives exactly one finalized record per processed document."""

    @abstractmethod
    async def emit(self, record: QualificationRecord) -> None:
        raise NotImplementedError


class MemorySink(ResultSink):
    """Collect records in arrival order."""

    def __init__(self) -> None:
        self.records: List[QualificationRecord] = []

    async def emit(self, record: QualificationRecord) -> None:
        self.records.append(record)

    def outcomes(self) -> List[QualificationOutcome]:
        return [r.outcome for r in self.records]

    def qualified(self) -> List[QualificationRecord]:
        return [r for r in self.records if r.outcome.is_qualified]
