# tests/test_rate_limit.py
"""
Tests for RateLimitGuard.

Covers:
- backoff growth, retry-after hints and the cap
- shrinking the ceiling and eager compaction
- giving up after max_retries consecutive failures
"""

from unittest.mock import AsyncMock

import pytest
from conftest import rate_limited

from chuk_ai_orchestrator.config import RateLimitConfig
from chuk_ai_orchestrator.exceptions import ProviderError, ProviderErrorKind
from chuk_ai_orchestrator.guards import RateLimitGuard
from chuk_ai_orchestrator.history import CompactionResult


@pytest.fixture
def compact():
    return AsyncMock(return_value=CompactionResult())


@pytest.fixture
def guard(recording_sleep):
    config = RateLimitConfig(max_retries=4, base_backoff_seconds=1.0, backoff_multiplier=2.0, max_backoff_seconds=5.0)
    return RateLimitGuard(config, sleep=recording_sleep)


class TestBackoff:
    def test_exponential_and_capped(self, guard):
        delays = [guard.backoff(attempt) for attempt in range(1, 6)]
        assert delays == [1.0, 2.0, 4.0, 5.0, 5.0]

    def test_retry_after_raises_delay(self, guard):
        assert guard.backoff(1, retry_after=3.0) == 3.0

    def test_retry_after_capped(self, guard):
        assert guard.backoff(1, retry_after=60.0) == 5.0

    def test_never_below_previous(self, guard):
        assert guard.backoff(2, previous=4.5) == 4.5


class TestShrink:
    def test_halves(self, guard):
        assert guard.shrink(2000) == 1000

    def test_never_below_one(self, guard):
        assert guard.shrink(1) == 1


class TestHandle:
    @pytest.mark.asyncio
    async def test_shrinks_compacts_and_sleeps(self, guard, compact, recording_sleep):
        state = guard.start(2000)

        new_max = await guard.handle(rate_limited(), state, compact)

        assert new_max == 1000
        assert state.max_tokens == 1000
        assert state.failures == 1
        compact.assert_awaited_once_with(1000)
        assert recording_sleep.delays == [1.0]

    @pytest.mark.asyncio
    async def test_delays_non_decreasing_across_retries(self, guard, compact, recording_sleep):
        state = guard.start(4000)
        await guard.handle(rate_limited(retry_after=3.0), state, compact)
        await guard.handle(rate_limited(), state, compact)
        await guard.handle(rate_limited(), state, compact)

        assert recording_sleep.delays == [3.0, 3.0, 4.0]
        assert state.delays == recording_sleep.delays
        assert state.max_tokens == 500

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self, guard, compact, recording_sleep):
        state = guard.start(4000)
        for _ in range(3):
            await guard.handle(rate_limited(), state, compact)

        error = rate_limited()
        with pytest.raises(ProviderError) as exc_info:
            await guard.handle(error, state, compact)

        assert exc_info.value is error
        assert state.failures == 4
        assert len(recording_sleep.delays) == 3
        assert compact.await_count == 3

    @pytest.mark.asyncio
    async def test_success_resets_consecutive_count(self, guard, compact):
        state = guard.start(4000)
        await guard.handle(rate_limited(), state, compact)
        state.reset_failures()
        await guard.handle(rate_limited(), state, compact)
        assert state.failures == 1

    @pytest.mark.asyncio
    async def test_other_errors_reraised_untouched(self, guard, compact, recording_sleep):
        state = guard.start(4000)
        error = ProviderError(ProviderErrorKind.AUTH, "bad key")
        with pytest.raises(ProviderError):
            await guard.handle(error, state, compact)
        assert state.failures == 0
        assert state.max_tokens == 4000
        compact.assert_not_awaited()
        assert recording_sleep.delays == []
