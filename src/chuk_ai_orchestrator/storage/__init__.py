# chuk_ai_orchestrator/storage/__init__.py
"""Optional persistence of conversations."""

from chuk_ai_orchestrator.storage.base import ConversationStore, ConversationStoreProvider
from chuk_ai_orchestrator.storage.providers.file import FileConversationStore
from chuk_ai_orchestrator.storage.providers.memory import InMemoryConversationStore

__all__ = [
    "ConversationStore",
    "ConversationStoreProvider",
    "FileConversationStore",
    "InMemoryConversationStore",
]
