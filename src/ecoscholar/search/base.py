"""Base classes and interfaces for candidate sources."""

from abc import ABC, abstractmethod
from typing import List, Optional

from ..core.models import Document


class CandidateSource(ABC):
    """Abstract base class for all candidate document sources."""

    def __init__(self, config: Optional[dict] = None):
        self.config = config or {}
        self.source_name = self.__class__.__name__.replace("Source", "").lower()

    @abstractmethod
    async def fetch_page(self, query: str, offset: int, limit: int) -> List[Document]:
        """
        Fetch one page of candidate documents.

        Args:
            query: Search query string
            offset: Zero-based index of the first record
            limit: Maximum number of records to return

        Returns:
            Documents in source order; an empty list signals exhaustion.
            Repeated calls with the same offset/limit return the same page.
        """
        raise NotImplementedError

    async def close(self) -> None:
        """Clean up resources."""

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} source={self.source_name}>"
