# chuk_ai_orchestrator/summarizer.py
"""
Summarizers used by history compaction.

A summarizer turns a run of older messages into one short text that keeps
the conversation's continuity. ``LLMSummarizer`` asks the completion
provider for it; ``TruncatingSummarizer`` works offline by excerpting each
message.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from enum import Enum
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from chuk_ai_orchestrator.config import DEFAULT_PROVIDER_TIMEOUT
from chuk_ai_orchestrator.exceptions import ProviderError, ProviderErrorKind
from chuk_ai_orchestrator.models.completion import CompletionRequest
from chuk_ai_orchestrator.models.enums import MessageRole
from chuk_ai_orchestrator.models.message import Message
from chuk_ai_orchestrator.tokens import TokenAccountant

if TYPE_CHECKING:
    from chuk_ai_orchestrator.providers.base import CompletionProvider

logger = logging.getLogger(__name__)

ROLE_LABELS = {
    MessageRole.USER: "User",
    MessageRole.ASSISTANT: "Assistant",
    MessageRole.TOOL_CALL: "Tool call",
    MessageRole.TOOL_RESULT: "Tool result",
    MessageRole.SUMMARY: "Earlier summary",
}


@runtime_checkable
class Summarizer(Protocol):
    """Produces a summary of ``messages`` in at most ``max_tokens`` tokens."""

    async def summarize(self, messages: Sequence[Message], max_tokens: int) -> str: ...


class SummarizationStrategy(str, Enum):
    """Different strategies for summarizing conversation segments."""

    BASIC = "basic"  # General overview of the conversation
    KEY_POINTS = "key_points"  # Focus on key information points
    TOPIC_BASED = "topic_based"  # Organize by topics discussed
    QUERY_FOCUSED = "query_focused"  # Focus on user's questions


STRATEGY_PROMPTS = {
    SummarizationStrategy.BASIC: (
        "Please provide a concise summary of this conversation. "
        "Focus on the main topic and key information exchanged."
    ),
    SummarizationStrategy.KEY_POINTS: (
        "Summarize this conversation by identifying and listing the key points discussed. "
        "Focus on the most important information exchanged."
    ),
    SummarizationStrategy.TOPIC_BASED: (
        "Create a summary of this conversation organized by topics discussed. "
        "Identify the main subject areas and the key points within each."
    ),
    SummarizationStrategy.QUERY_FOCUSED: (
        "Summarize this conversation by focusing on the user's main questions and the key answers provided. "
        "Prioritize what the user was seeking to learn."
    ),
}


def render_transcript(messages: Sequence[Message]) -> str:
    """Plain-text transcript of ``messages``, one line per message."""
    lines = []
    for message in messages:
        label = ROLE_LABELS[message.role]
        if message.role == MessageRole.TOOL_CALL and message.tool_name:
            label = f"{label} ({message.tool_name})"
        lines.append(f"{label}: {message.content}")
    return "\n".join(lines)


class LLMSummarizer:
    """
    Summarizes through the completion provider.

    The transcript is sent as a single user message together with a strategy
    prompt; tools are never offered to the summarization call. A call that
    outlives ``timeout`` raises ``ProviderError(TRANSIENT)``.
    """

    def __init__(
        self,
        provider: CompletionProvider,
        strategy: SummarizationStrategy = SummarizationStrategy.BASIC,
        timeout: float = DEFAULT_PROVIDER_TIMEOUT,
    ) -> None:
        self._provider = provider
        self.strategy = strategy
        self.timeout = timeout

    def _get_summarization_prompt(self, max_tokens: int) -> str:
        prompt = STRATEGY_PROMPTS.get(self.strategy, "Please provide a brief summary of this conversation.")
        return f"{prompt} Keep the summary under {max_tokens} tokens."

    async def summarize(self, messages: Sequence[Message], max_tokens: int) -> str:
        request = CompletionRequest(
            system=self._get_summarization_prompt(max_tokens),
            messages=[Message(role=MessageRole.USER, content=render_transcript(messages))],
            max_output_tokens=max(1, max_tokens),
        )
        try:
            response = await asyncio.wait_for(self._provider.complete(request), timeout=self.timeout)
        except TimeoutError as e:
            raise ProviderError(ProviderErrorKind.TRANSIENT, f"summarization timed out after {self.timeout}s") from e
        if response.is_tool_call:
            logger.warning("Summarization call returned tool calls; using text part only")
        return response.text.strip()


class TruncatingSummarizer:
    """
    Offline summarizer: an excerpt of each message, shortened to fit.

    Works without any API access, at the cost of summary quality.
    """

    def __init__(self, accountant: TokenAccountant, excerpt_tokens: int = 40) -> None:
        self._accountant = accountant
        self.excerpt_tokens = excerpt_tokens

    async def summarize(self, messages: Sequence[Message], max_tokens: int) -> str:
        if not messages or max_tokens <= 0:
            return ""
        per_message = max(1, min(self.excerpt_tokens, max_tokens // len(messages)))
        lines = []
        for message in messages:
            excerpt, _ = self._accountant.truncate(message.content, per_message, marker="...")
            lines.append(f"{ROLE_LABELS[message.role]}: {excerpt}")
        text = "Summary of earlier conversation:\n" + "\n".join(lines)
        text, _ = self._accountant.truncate(text, max_tokens, marker="...")
        return text
