"""Unit tests for judgment calls racing timeout, override and cancellation."""

import asyncio

import pytest

from ecoscholar.exceptions import MalformedJudgment, PipelineCancelled
from ecoscholar.qualification.judgment import JudgmentControl, JudgmentErrorType, run_judgment
from ecoscholar.utils.cancellation import CancellationToken

from tests.conftest import QUALIFY


def _slow_then_fast():
    """Call factory whose first attempt hangs and later attempts answer at once."""
    attempts = []

    async def call():
        attempts.append(1)
        if len(attempts) == 1:
            await asyncio.sleep(5)
        return QUALIFY

    return call, attempts


class TestRunJudgment:
    """Tests for run_judgment."""

    @pytest.mark.asyncio
    async def test_answer(self):
        async def call():
            return QUALIFY

        outcome = await run_judgment(call, timeout=1.0)
        assert outcome.ok
        assert outcome.result == QUALIFY
        assert outcome.attempts == 1

    @pytest.mark.asyncio
    async def test_timeout(self):
        async def call():
            await asyncio.sleep(5)
            return QUALIFY

        outcome = await run_judgment(call, timeout=0.05)
        assert not outcome.ok
        assert outcome.error == JudgmentErrorType.TIMEOUT

    @pytest.mark.asyncio
    async def test_malformed_is_parse_error(self):
        async def call():
            raise MalformedJudgment("not json")

        outcome = await run_judgment(call, timeout=1.0)
        assert outcome.error == JudgmentErrorType.PARSE_ERROR
        assert "not json" in outcome.detail

    @pytest.mark.asyncio
    async def test_other_failure_is_oracle_error(self):
        async def call():
            raise RuntimeError("connection reset")

        outcome = await run_judgment(call, timeout=1.0)
        assert outcome.error == JudgmentErrorType.ORACLE_ERROR


class TestOperatorOverride:
    """Retry and skip race against the call and the timeout."""

    @pytest.mark.asyncio
    async def test_skip(self):
        control = JudgmentControl()
        call, _ = _slow_then_fast()
        asyncio.get_running_loop().call_later(0.05, control.skip)
        outcome = await run_judgment(call, timeout=2.0, control=control)
        assert outcome.error == JudgmentErrorType.SKIPPED
        assert not control.in_flight

    @pytest.mark.asyncio
    async def test_retry_reissues_call(self):
        control = JudgmentControl()
        call, attempts = _slow_then_fast()
        asyncio.get_running_loop().call_later(0.05, control.retry)
        outcome = await run_judgment(call, timeout=2.0, control=control)
        assert outcome.ok
        assert outcome.attempts == 2
        assert len(attempts) == 2

    def test_override_without_call_is_noop(self):
        control = JudgmentControl()
        control.retry()
        control.skip()
        assert not control.in_flight


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancel_interrupts_call(self):
        token = CancellationToken()
        call, _ = _slow_then_fast()
        asyncio.get_running_loop().call_later(0.05, token.cancel)
        with pytest.raises(PipelineCancelled):
            await run_judgment(call, timeout=2.0, cancel=token)

    def test_token_raise_if_cancelled(self):
        token = CancellationToken()
        token.raise_if_cancelled("idle")
        token.cancel()
        assert token.cancelled
        with pytest.raises(PipelineCancelled, match="page start"):
            token.raise_if_cancelled("page start")
