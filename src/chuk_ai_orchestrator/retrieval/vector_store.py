# chuk_ai_orchestrator/retrieval/vector_store.py
"""
Vector store contract and an in-memory reference store.

Ingestion is owned elsewhere; ``upsert`` exists so a store can be filled
for wiring and tests.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable

from chuk_ai_orchestrator.models.retrieval import VectorMatch

logger = logging.getLogger(__name__)


@runtime_checkable
class VectorStore(Protocol):
    """Nearest-neighbour lookup returning matches ordered by descending score."""

    async def query(self, vector: Sequence[float], k: int) -> list[VectorMatch]: ...


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity; 0.0 when either vector has zero length."""
    if len(a) != len(b):
        raise ValueError(f"vector dimensions differ: {len(a)} != {len(b)}")
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(x * x for x in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


class InMemoryVectorStore:
    """
    Brute-force cosine store.

    Entries are replaced whole on upsert and queries work on a snapshot, so
    many sessions can query concurrently.
    """

    def __init__(self) -> None:
        self._entries: dict[str, tuple[tuple[float, ...], dict[str, Any]]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    async def upsert(self, id: str, vector: Sequence[float], metadata: dict[str, Any] | None = None) -> None:
        self._entries[id] = (tuple(vector), dict(metadata or {}))

    async def delete(self, id: str) -> bool:
        return self._entries.pop(id, None) is not None

    async def query(self, vector: Sequence[float], k: int) -> list[VectorMatch]:
        if k <= 0:
            return []
        snapshot = list(self._entries.items())
        matches = [
            VectorMatch(id=entry_id, score=cosine_similarity(vector, stored), metadata=metadata)
            for entry_id, (stored, metadata) in snapshot
        ]
        matches.sort(key=lambda m: (-m.score, m.id))
        return matches[:k]
