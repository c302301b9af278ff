"""In-memory candidate source over a fixed document list."""

from typing import List, Optional, Sequence

from ...core.models import Document
from ..base import CandidateSource


class StaticSource(CandidateSource):
    """Serve pages from a fixed list, ignoring the query.

    Handy for replaying a recorded stream and for tests; ``calls`` keeps
    the ``(offset, limit)`` pairs that were requested.
    """

    def __init__(self, documents: Sequence[Document], config: Optional[dict] = None) -> None:
        super().__init__(config)
        self.documents: List[Document] = list(documents)
        self.calls: List[tuple[int, int]] = []

    async def fetch_page(self, query: str, offset: int, limit: int) -> List[Document]:
        self.calls.append((offset, limit))
        return self.documents[offset:offset + limit]
