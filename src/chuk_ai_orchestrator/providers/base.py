# chuk_ai_orchestrator/providers/base.py
"""Provider contracts the orchestration core talks to."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from chuk_ai_orchestrator.models.completion import CompletionRequest, CompletionResponse


@runtime_checkable
class CompletionProvider(Protocol):
    """
    LLM completion backend.

    Implementations raise ``ProviderError`` with the matching kind for rate
    limits, authentication failures, transient faults and malformed
    payloads.
    """

    async def complete(self, request: CompletionRequest) -> CompletionResponse: ...


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Text embedding backend. Raises ``RetrievalError(EMBEDDING_FAILED)`` on failure."""

    async def embed(self, text: str) -> list[float]: ...
