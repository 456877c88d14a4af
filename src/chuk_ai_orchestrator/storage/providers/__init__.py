# chuk_ai_orchestrator/storage/providers/__init__.py
"""Conversation store implementations."""

from chuk_ai_orchestrator.storage.providers.file import FileConversationStore
from chuk_ai_orchestrator.storage.providers.memory import InMemoryConversationStore

__all__ = ["FileConversationStore", "InMemoryConversationStore"]
