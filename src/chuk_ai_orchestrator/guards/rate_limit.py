# chuk_ai_orchestrator/guards/rate_limit.py
"""
Rate-limit guard.

Reacts to ``ProviderError(RATE_LIMIT)`` within one turn: shrink the token
ceiling for the rest of the turn, compact history toward the smaller
budget, wait out a backoff and let the loop resubmit. After
``max_retries`` consecutive rate-limit failures the error is re-raised so
the turn fails.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from pydantic import BaseModel, Field

from chuk_ai_orchestrator.config import RateLimitConfig
from chuk_ai_orchestrator.exceptions import ProviderError
from chuk_ai_orchestrator.history import CompactionResult

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]
Compact = Callable[[int], Awaitable[CompactionResult]]


class RateLimitState(BaseModel):
    """Per-turn guard bookkeeping."""

    max_tokens: int = Field(..., gt=0)
    failures: int = 0
    last_delay: float = 0.0
    delays: list[float] = Field(default_factory=list)

    def reset_failures(self) -> None:
        """A successful call ends the run of consecutive failures."""
        self.failures = 0


class RateLimitGuard:
    """Shrink, compact, back off, retry."""

    def __init__(self, config: RateLimitConfig | None = None, sleep: Sleep = asyncio.sleep) -> None:
        self.config = config or RateLimitConfig()
        self._sleep = sleep

    def start(self, max_tokens: int) -> RateLimitState:
        return RateLimitState(max_tokens=max_tokens)

    def backoff(self, attempt: int, retry_after: float | None = None, previous: float = 0.0) -> float:
        """
        Delay before retry number ``attempt`` (1-based).

        Exponential in ``attempt``, never below the previous delay, never
        above ``max_backoff_seconds``. A provider ``retry_after`` hint raises
        the delay up to the cap.
        """
        cfg = self.config
        delay = cfg.base_backoff_seconds * (cfg.backoff_multiplier ** (attempt - 1))
        if retry_after is not None:
            delay = max(delay, retry_after)
        delay = max(delay, previous)
        return min(delay, cfg.max_backoff_seconds)

    def shrink(self, max_tokens: int) -> int:
        return max(1, int(max_tokens * self.config.shrink_factor))

    async def handle(self, error: ProviderError, state: RateLimitState, compact: Compact) -> int:
        """
        Recover from one rate-limit failure.

        Returns the reduced ``max_tokens`` for the next attempt. Re-raises
        ``error`` once ``max_retries`` consecutive failures are reached.
        """
        if not error.is_rate_limit:
            raise error

        state.failures += 1
        if state.failures >= self.config.max_retries:
            logger.warning("Rate limited %d times in a row, giving up", state.failures)
            raise error

        new_max = self.shrink(state.max_tokens)
        logger.warning(
            "Rate limited (attempt %d/%d); shrinking max_tokens %d -> %d",
            state.failures,
            self.config.max_retries,
            state.max_tokens,
            new_max,
        )
        state.max_tokens = new_max

        result = await compact(new_max)
        if result.compacted:
            logger.info("Eager compaction saved %d tokens", result.tokens_saved)

        delay = self.backoff(state.failures, error.retry_after, state.last_delay)
        state.last_delay = delay
        state.delays.append(delay)
        logger.debug("Backing off %.2fs before retry", delay)
        await self._sleep(delay)
        return new_max
