"""Request pacing for the NCBI E-utilities.

NCBI allows 3 requests per second per client without an API key and 10
with one. :class:`RateLimiter` enforces "at most ``rate`` requests in any
``window`` seconds" with a sliding window of send times, which is the way
NCBI counts.
"""

import asyncio
import time
from collections import deque
from typing import Deque, Optional

from ..config.settings import settings
from .logging import get_logger

logger = get_logger(__name__)

NCBI_KEYED_RATE = 10.0


class RateLimiter:
    """Sliding-window request limiter, usable as ``async with limiter:``."""

    def __init__(self, rate: float, window: float = 1.0) -> None:
        if rate <= 0:
            raise ValueError(f"rate must be positive, got {rate}")
        if window <= 0:
            raise ValueError(f"window must be positive, got {window}")
        self.rate = rate
        self.window = window
        self.capacity = max(1, int(rate * window))
        self._sent: Deque[float] = deque()
        self._lock = asyncio.Lock()

    @classmethod
    def for_ncbi(cls, api_key: Optional[str], rate: Optional[float] = None) -> "RateLimiter":
        """Limiter for E-utilities; an explicit ``rate`` wins over the key-based default."""
        if rate is None:
            rate = NCBI_KEYED_RATE if api_key else settings.pubmed_rate_limit
        return cls(rate=rate)

    def _expire(self, now: float) -> None:
        while self._sent and now - self._sent[0] >= self.window:
            self._sent.popleft()

    @property
    def available(self) -> int:
        """Requests that may be sent right now without waiting."""
        self._expire(time.monotonic())
        return self.capacity - len(self._sent)

    async def acquire(self) -> None:
        async with self._lock:
            while True:
                now = time.monotonic()
                self._expire(now)
                if len(self._sent) < self.capacity:
                    self._sent.append(now)
                    return
                wait = self.window - (now - self._sent[0])
                logger.debug("Rate limit reached, waiting", extra={"wait_seconds": round(wait, 3)})
                await asyncio.sleep(wait)

    async def __aenter__(self) -> "RateLimiter":
        await self.acquire()
        return self

    async def __aexit__(self, *exc_info) -> None:
        return None
