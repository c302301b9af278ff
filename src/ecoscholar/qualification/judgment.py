"""Cancellable judgment calls with a timeout ceiling and operator override.

A judgment call resolves in exactly one way: the oracle answers (or
fails), the ceiling elapses, or an operator retries/skips the item.
``run_judgment`` races these with ``asyncio.wait(FIRST_COMPLETED)`` and
cancels whatever lost.  A retry re-issues the same call and restarts
the ceiling; document scores are never recomputed.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

from ..exceptions import MalformedJudgment, PipelineCancelled
from ..utils.cancellation import CancellationToken
from ..utils.logging import get_logger
from .models import JudgmentResult

logger = get_logger(__name__)


class JudgmentErrorType(Enum):
    """Classification of failed judgment calls, used as the record's error tag."""
    TIMEOUT = "timeout"              # no answer within the ceiling
    ORACLE_ERROR = "oracle_error"    # transport or backend failure
    PARSE_ERROR = "parse_error"      # answered, but malformed
    SKIPPED = "skipped"              # operator skipped the item


class OverrideAction(Enum):
    RETRY = "retry"
    SKIP = "skip"


class JudgmentControl:
    """Operator handle for the judgment call currently in flight.

    ``retry()`` and ``skip()`` may be called from any thread; they have
    no effect when no call is in flight.
    """

    def __init__(self) -> None:
        self._pending: Optional[asyncio.Future] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def in_flight(self) -> bool:
        return self._pending is not None and not self._pending.done()

    def retry(self) -> None:
        self._request(OverrideAction.RETRY)

    def skip(self) -> None:
        self._request(OverrideAction.SKIP)

    def _request(self, action: OverrideAction) -> None:
        if self._loop is None:
            return
        self._loop.call_soon_threadsafe(self._resolve, action)

    def _resolve(self, action: OverrideAction) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.set_result(action)

    def _arm(self) -> asyncio.Future:
        self._loop = asyncio.get_running_loop()
        self._pending = self._loop.create_future()
        return self._pending

    def _disarm(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None


@dataclass(frozen=True)
class JudgmentOutcome:
    """Resolution of one judgment call (after any operator retries)."""

    result: Optional[JudgmentResult] = None
    error: Optional[JudgmentErrorType] = None
    detail: Optional[str] = None
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return self.result is not None


async def run_judgment(
    call: Callable[[], Awaitable[JudgmentResult]],
    timeout: float,
    control: Optional[JudgmentControl] = None,
    cancel: Optional[CancellationToken] = None,
) -> JudgmentOutcome:
    """Run ``call`` until it answers, fails, times out or is overridden.

    Raises :class:`PipelineCancelled` if the run is cancelled while the
    call is in flight.
    """
    attempts = 0
    while True:
        attempts += 1
        call_task = asyncio.ensure_future(call())
        waiters = {call_task}
        override = control._arm() if control is not None else None
        if override is not None:
            waiters.add(override)
        cancel_task = asyncio.ensure_future(cancel.wait()) if cancel is not None else None
        if cancel_task is not None:
            waiters.add(cancel_task)
        try:
            done, _ = await asyncio.wait(waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for waiter in waiters:
                if not waiter.done():
                    waiter.cancel()
            if control is not None:
                control._disarm()

        if cancel_task is not None and cancel_task in done:
            raise PipelineCancelled("Cancelled by user (judgment in flight)")
        if call_task in done:
            exc = call_task.exception()
            if exc is None:
                return JudgmentOutcome(result=call_task.result(), attempts=attempts)
            if isinstance(exc, MalformedJudgment):
                return JudgmentOutcome(error=JudgmentErrorType.PARSE_ERROR, detail=str(exc), attempts=attempts)
            return JudgmentOutcome(error=JudgmentErrorType.ORACLE_ERROR, detail=str(exc), attempts=attempts)
        if override is not None and override in done:
            if override.result() == OverrideAction.SKIP:
                return JudgmentOutcome(error=JudgmentErrorType.SKIPPED, detail="Skipped by operator", attempts=attempts)
            logger.info("Operator requested judgment retry", extra={"attempt": attempts})
            continue
        return JudgmentOutcome(
            error=JudgmentErrorType.TIMEOUT,
            detail=f"No judgment within {timeout:.0f}s",
            attempts=attempts,
        )
