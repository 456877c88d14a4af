# chuk_ai_orchestrator/storage/providers/file.py
"""
File-based conversation store.

One JSON file per session (``<session_id>.json``), written through a
temporary file and renamed into place. Blocking file I/O runs in a worker
thread.
"""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path

from pydantic import ValidationError

from chuk_ai_orchestrator.exceptions import StorageError
from chuk_ai_orchestrator.models.message import Conversation

logger = logging.getLogger(__name__)


class FileConversationStore:
    """
    Stores each conversation as a JSON file in ``directory``.

    Saved conversations are cached; with ``auto_save=False`` they are only
    written on ``flush``.
    """

    def __init__(self, directory: str | Path, auto_save: bool = True) -> None:
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self.auto_save = auto_save
        self._cache: dict[str, Conversation] = {}
        self._dirty: set[str] = set()
        self._lock = asyncio.Lock()

    def _path(self, session_id: str) -> Path:
        return self.directory / f"{session_id}.json"

    async def get(self, session_id: str) -> Conversation | None:
        if session_id in self._cache:
            return self._cache[session_id]
        path = self._path(session_id)
        if not path.exists():
            return None
        try:
            raw = await asyncio.to_thread(path.read_text, encoding="utf-8")
        except OSError as e:
            raise StorageError(f"could not read {path}: {e}") from e
        try:
            conversation = Conversation.model_validate_json(raw)
        except ValidationError as e:
            logger.warning("Ignoring corrupted conversation file %s: %s", path, e.error_count())
            return None
        self._cache[session_id] = conversation
        return conversation

    async def save(self, conversation: Conversation) -> None:
        async with self._lock:
            self._cache[conversation.session_id] = conversation
            if self.auto_save:
                await self._write(conversation)
            else:
                self._dirty.add(conversation.session_id)

    async def delete(self, session_id: str) -> None:
        async with self._lock:
            self._cache.pop(session_id, None)
            self._dirty.discard(session_id)
            path = self._path(session_id)
            try:
                await asyncio.to_thread(path.unlink, missing_ok=True)
            except OSError as e:
                raise StorageError(f"could not delete {path}: {e}") from e

    async def list_sessions(self, prefix: str = "") -> list[str]:
        on_disk = {p.stem for p in self.directory.glob("*.json")}
        return sorted(sid for sid in on_disk | set(self._cache) if sid.startswith(prefix))

    async def flush(self) -> None:
        """Write every conversation saved since the last flush."""
        async with self._lock:
            for session_id in sorted(self._dirty):
                await self._write(self._cache[session_id])
            self._dirty.clear()

    async def clear_cache(self) -> None:
        self._cache = {sid: c for sid, c in self._cache.items() if sid in self._dirty}

    async def _write(self, conversation: Conversation) -> None:
        path = self._path(conversation.session_id)
        tmp = path.with_suffix(".json.tmp")
        payload = conversation.model_dump_json(indent=2)

        def write() -> None:
            tmp.write_text(payload, encoding="utf-8")
            os.replace(tmp, path)

        try:
            await asyncio.to_thread(write)
        except OSError as e:
            raise StorageError(f"could not write {path}: {e}") from e
        logger.debug("Saved conversation %s (%d messages)", conversation.session_id, len(conversation.messages))
