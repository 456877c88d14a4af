# chuk_ai_orchestrator/providers/__init__.py
"""Completion and embedding providers."""

from chuk_ai_orchestrator.providers.anthropic_provider import AnthropicCompletionProvider, to_anthropic_messages
from chuk_ai_orchestrator.providers.base import CompletionProvider, EmbeddingProvider
from chuk_ai_orchestrator.providers.openai_embeddings import OpenAIEmbeddingProvider

__all__ = [
    "AnthropicCompletionProvider",
    "CompletionProvider",
    "EmbeddingProvider",
    "OpenAIEmbeddingProvider",
    "to_anthropic_messages",
]
