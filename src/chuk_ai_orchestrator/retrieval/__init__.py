# chuk_ai_orchestrator/retrieval/__init__.py
"""Retrieval of documentation context."""

from chuk_ai_orchestrator.retrieval.middleware import RetrievalMiddleware
from chuk_ai_orchestrator.retrieval.vector_store import (
    InMemoryVectorStore,
    VectorStore,
    cosine_similarity,
)

__all__ = [
    "InMemoryVectorStore",
    "RetrievalMiddleware",
    "VectorStore",
    "cosine_similarity",
]
