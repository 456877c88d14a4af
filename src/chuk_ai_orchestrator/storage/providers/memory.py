# chuk_ai_orchestrator/storage/providers/memory.py
"""In-memory conversation store."""

from __future__ import annotations

import asyncio

from chuk_ai_orchestrator.models.message import Conversation


class InMemoryConversationStore:
    """Keeps conversations in a dict for the lifetime of the process."""

    def __init__(self) -> None:
        self._data: dict[str, Conversation] = {}
        self._lock = asyncio.Lock()

    async def get(self, session_id: str) -> Conversation | None:
        return self._data.get(session_id)

    async def save(self, conversation: Conversation) -> None:
        async with self._lock:
            self._data[conversation.session_id] = conversation

    async def delete(self, session_id: str) -> None:
        async with self._lock:
            self._data.pop(session_id, None)

    async def list_sessions(self, prefix: str = "") -> list[str]:
        return [sid for sid in self._data if sid.startswith(prefix)]

    async def clear(self) -> None:
        async with self._lock:
            self._data.clear()
