"""Cooperative cancellation shared by every suspension point of a run."""

import asyncio

from ..exceptions import PipelineCancelled


class CancellationToken:
    """Single cancellation signal scoped to one pipeline run.

    Checks happen at page starts, before embedding chunks and around
    judgment calls; in-flight judgment calls also race against
    :meth:`wait` so a slow oracle does not delay cancellation.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, where: str = "") -> None:
        if self._event.is_set():
            raise PipelineCancelled(f"Cancelled by user{f' ({where})' if where else ''}")

    async def wait(self) -> None:
        await self._event.wait()
