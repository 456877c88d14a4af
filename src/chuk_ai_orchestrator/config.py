# chuk_ai_orchestrator/config.py
"""
Configuration for the orchestration core.

Module-level defaults can be overridden through environment variables (a
``.env`` file is loaded on import). ``OrchestratorConfig.from_env()`` builds
a full configuration object from the same variables.
"""

from __future__ import annotations

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from chuk_ai_orchestrator.models.enums import Segment

load_dotenv()

# Central model config: can be overridden by environment variable
DEFAULT_TOKEN_MODEL = os.getenv("CHUK_DEFAULT_MODEL", "gpt-4o-mini")
DEFAULT_COMPLETION_MODEL = os.getenv("CHUK_COMPLETION_MODEL", "claude-3-5-sonnet-latest")
DEFAULT_EMBEDDING_MODEL = os.getenv("CHUK_EMBEDDING_MODEL", "text-embedding-ada-002")

DEFAULT_MAX_TOKENS = int(os.getenv("CHUK_MAX_TOKENS", "32000"))
DEFAULT_MAX_TURNS = int(os.getenv("CHUK_MAX_TURNS", "20"))
DEFAULT_PREAMBLE = os.getenv(
    "CHUK_PREAMBLE",
    "You are a helpful assistant. Use the provided documentation and tools to answer accurately.",
)
DEFAULT_PROVIDER_TIMEOUT = float(os.getenv("CHUK_PROVIDER_TIMEOUT", "120"))

TRUNCATION_MARKER = "[truncated]"

DEFAULT_PRIORITY = (Segment.HISTORY, Segment.RETRIEVAL, Segment.TOOL_RESULTS)


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


class RateLimitConfig(BaseModel):
    """Settings for the rate-limit guard."""

    max_retries: int = Field(default=3, ge=1, description="Consecutive rate-limit failures tolerated")
    shrink_factor: float = Field(default=0.5, gt=0.0, lt=1.0)
    base_backoff_seconds: float = Field(default=1.0, ge=0.0)
    backoff_multiplier: float = Field(default=2.0, ge=1.0)
    max_backoff_seconds: float = Field(default=30.0, ge=0.0)


class OrchestratorConfig(BaseModel):
    """Everything the orchestration loop needs to know about limits and timeouts."""

    max_tokens: int = Field(default=DEFAULT_MAX_TOKENS, gt=0)
    max_turns: int = Field(default=DEFAULT_MAX_TURNS, ge=1)
    max_output_tokens: int = Field(default=1024, gt=0)
    preamble: str = Field(default=DEFAULT_PREAMBLE)

    # History compaction
    keep_recent: int = Field(default=2, ge=2, description="Most recent messages never compacted")
    summary_max_tokens: int = Field(default=256, gt=0)

    # Segment distribution of the remainder above the floor
    priority: tuple[Segment, ...] = Field(default=DEFAULT_PRIORITY)
    segment_fractions: dict[Segment, float] = Field(
        default_factory=lambda: {
            Segment.HISTORY: 0.6,
            Segment.RETRIEVAL: 0.5,
            Segment.TOOL_RESULTS: 1.0,
        }
    )
    truncation_marker: str = Field(default=TRUNCATION_MARKER)

    # Retrieval
    retrieval_top_k: int = Field(default=30, ge=1)
    retrieval_min_score: float | None = Field(default=None)

    # Timeouts (seconds)
    provider_timeout: float = Field(default=DEFAULT_PROVIDER_TIMEOUT, gt=0)
    tool_timeout: float = Field(default=60.0, gt=0)
    retrieval_timeout: float = Field(default=30.0, gt=0)

    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)

    @field_validator("priority")
    @classmethod
    def _priority_is_permutation(cls, value: tuple[Segment, ...]) -> tuple[Segment, ...]:
        if sorted(value) != sorted(Segment):
            raise ValueError("priority must list every segment exactly once")
        return value

    @field_validator("segment_fractions")
    @classmethod
    def _fractions_in_range(cls, value: dict[Segment, float]) -> dict[Segment, float]:
        for segment, fraction in value.items():
            if not 0.0 <= fraction <= 1.0:
                raise ValueError(f"fraction for {segment.value} must be within [0, 1]")
        return value

    def fraction_for(self, segment: Segment) -> float:
        return self.segment_fractions.get(segment, 1.0)

    @classmethod
    def from_env(cls) -> OrchestratorConfig:
        """Build a configuration from ``CHUK_*`` environment variables."""
        min_score = os.getenv("CHUK_RETRIEVAL_MIN_SCORE")
        priority_env = os.getenv("CHUK_SEGMENT_PRIORITY")
        priority = (
            tuple(Segment(name.strip()) for name in priority_env.split(","))
            if priority_env
            else DEFAULT_PRIORITY
        )
        return cls(
            max_tokens=_env_int("CHUK_MAX_TOKENS", DEFAULT_MAX_TOKENS),
            max_turns=_env_int("CHUK_MAX_TURNS", DEFAULT_MAX_TURNS),
            max_output_tokens=_env_int("CHUK_MAX_OUTPUT_TOKENS", 1024),
            preamble=os.getenv("CHUK_PREAMBLE", DEFAULT_PREAMBLE),
            keep_recent=_env_int("CHUK_KEEP_RECENT", 2),
            summary_max_tokens=_env_int("CHUK_SUMMARY_MAX_TOKENS", 256),
            priority=priority,
            segment_fractions={
                Segment.HISTORY: _env_float("CHUK_HISTORY_FRACTION", 0.6),
                Segment.RETRIEVAL: _env_float("CHUK_RETRIEVAL_FRACTION", 0.5),
                Segment.TOOL_RESULTS: _env_float("CHUK_TOOL_RESULTS_FRACTION", 1.0),
            },
            retrieval_top_k=_env_int("CHUK_RETRIEVAL_TOP_K", 30),
            retrieval_min_score=float(min_score) if min_score else None,
            provider_timeout=_env_float("CHUK_PROVIDER_TIMEOUT", DEFAULT_PROVIDER_TIMEOUT),
            tool_timeout=_env_float("CHUK_TOOL_TIMEOUT", 60.0),
            retrieval_timeout=_env_float("CHUK_RETRIEVAL_TIMEOUT", 30.0),
            rate_limit=RateLimitConfig(
                max_retries=_env_int("CHUK_RATE_LIMIT_RETRIES", 3),
                shrink_factor=_env_float("CHUK_RATE_LIMIT_SHRINK", 0.5),
                base_backoff_seconds=_env_float("CHUK_RATE_LIMIT_BACKOFF", 1.0),
                max_backoff_seconds=_env_float("CHUK_RATE_LIMIT_MAX_BACKOFF", 30.0),
            ),
        )
