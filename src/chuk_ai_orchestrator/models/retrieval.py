# chuk_ai_orchestrator/models/retrieval.py
"""Retrieval results."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class VectorMatch(BaseModel):
    """One nearest-neighbour hit returned by a vector store."""

    model_config = ConfigDict(frozen=True)

    id: str
    score: float
    metadata: dict[str, Any] = Field(default_factory=dict)


class RetrievedChunk(BaseModel):
    """A passage pulled from the index, ready to be injected as context."""

    model_config = ConfigDict(frozen=True)

    source_id: str
    text: str
    score: float
    token_count: int = Field(default=0, ge=0)


class ContextBlock(BaseModel):
    """Formatted retrieval context for one request."""

    model_config = ConfigDict(frozen=True)

    text: str = ""
    token_count: int = Field(default=0, ge=0)
    chunks: tuple[RetrievedChunk, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.chunks

    @classmethod
    def empty(cls) -> ContextBlock:
        return cls()
