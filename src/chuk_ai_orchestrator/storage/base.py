# chuk_ai_orchestrator/storage/base.py
"""
Conversation store contract and the process-wide default store.

Persistence is optional: the orchestration loop saves a session's
Conversation after each committed turn only when a store is supplied.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from chuk_ai_orchestrator.models.message import Conversation


@runtime_checkable
class ConversationStore(Protocol):
    async def get(self, session_id: str) -> Conversation | None: ...

    async def save(self, conversation: Conversation) -> None: ...

    async def delete(self, session_id: str) -> None: ...

    async def list_sessions(self, prefix: str = "") -> list[str]: ...


class ConversationStoreProvider:
    """Holds the default store; an in-memory store unless one is set."""

    _store: ConversationStore | None = None

    @classmethod
    def get_store(cls) -> ConversationStore:
        if cls._store is None:
            from chuk_ai_orchestrator.storage.providers.memory import InMemoryConversationStore

            cls._store = InMemoryConversationStore()
        return cls._store

    @classmethod
    def set_store(cls, store: ConversationStore) -> None:
        cls._store = store
