# chuk_ai_orchestrator/retrieval/middleware.py
"""
Retrieval middleware.

Turns a user query into retrieved documentation: embed the query, ask the
vector store for its nearest neighbours, order and deduplicate them, and
format what fits the budget into a single context block.

Retrieval never aborts a turn. Embedding and store failures (timeouts
included) become ``RetrievalError``, are logged, and yield an empty result.
"""

from __future__ import annotations

import asyncio
import logging

from chuk_ai_orchestrator.config import OrchestratorConfig
from chuk_ai_orchestrator.context.packer import CONTEXT_HEADER, dedupe_by_source, pack_context_block
from chuk_ai_orchestrator.exceptions import RetrievalError, RetrievalErrorKind
from chuk_ai_orchestrator.models.retrieval import ContextBlock, RetrievedChunk, VectorMatch
from chuk_ai_orchestrator.providers.base import EmbeddingProvider
from chuk_ai_orchestrator.retrieval.vector_store import VectorStore
from chuk_ai_orchestrator.tokens import TokenAccountant

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 30


class RetrievalMiddleware:
    """Query-to-context pipeline over an embedding provider and a vector store."""

    def __init__(
        self,
        embedder: EmbeddingProvider,
        store: VectorStore,
        accountant: TokenAccountant,
        *,
        top_k: int = DEFAULT_TOP_K,
        min_score: float | None = None,
        timeout: float = 30.0,
        header: str = CONTEXT_HEADER,
    ) -> None:
        self._embedder = embedder
        self._store = store
        self._accountant = accountant
        self.top_k = top_k
        self.min_score = min_score
        self.timeout = timeout
        self.header = header

    @classmethod
    def from_config(
        cls,
        embedder: EmbeddingProvider,
        store: VectorStore,
        accountant: TokenAccountant,
        config: OrchestratorConfig,
        **kwargs,
    ) -> RetrievalMiddleware:
        return cls(
            embedder,
            store,
            accountant,
            top_k=config.retrieval_top_k,
            min_score=config.retrieval_min_score,
            timeout=config.retrieval_timeout,
            **kwargs,
        )

    async def search(self, query: str) -> list[RetrievedChunk]:
        """
        Candidate chunks for ``query``, best first, one per source.

        Returns an empty list when the store has no matches or when
        retrieval fails.
        """
        if not query.strip():
            return []
        try:
            return await self._search(query)
        except RetrievalError as e:
            logger.warning("Retrieval failed (%s), continuing without context: %s", e.kind.value, e)
            return []

    async def retrieve(self, query: str, budget: int) -> ContextBlock:
        """Formatted context block for ``query`` within ``budget`` tokens."""
        chunks = await self.search(query)
        return pack_context_block(chunks, budget, self._accountant, self.header)

    async def _search(self, query: str) -> list[RetrievedChunk]:
        vector = await self._embed(query)
        matches = await self._query(vector)

        chunks = []
        for match in matches:
            if self.min_score is not None and match.score < self.min_score:
                continue
            chunk = self._to_chunk(match)
            if chunk is not None:
                chunks.append(chunk)

        chunks = dedupe_by_source(chunks)
        logger.debug("Retrieved %d chunks (of %d matches) for query", len(chunks), len(matches))
        return chunks

    async def _embed(self, query: str) -> list[float]:
        try:
            return await asyncio.wait_for(self._embedder.embed(query), timeout=self.timeout)
        except RetrievalError:
            raise
        except TimeoutError as e:
            raise RetrievalError(
                RetrievalErrorKind.EMBEDDING_FAILED, f"embedding timed out after {self.timeout}s"
            ) from e
        except Exception as e:
            raise RetrievalError(RetrievalErrorKind.EMBEDDING_FAILED, str(e)) from e

    async def _query(self, vector: list[float]) -> list[VectorMatch]:
        try:
            return await asyncio.wait_for(self._store.query(vector, self.top_k), timeout=self.timeout)
        except RetrievalError:
            raise
        except TimeoutError as e:
            raise RetrievalError(
                RetrievalErrorKind.STORE_UNAVAILABLE, f"vector store timed out after {self.timeout}s"
            ) from e
        except Exception as e:
            raise RetrievalError(RetrievalErrorKind.STORE_UNAVAILABLE, str(e)) from e

    def _to_chunk(self, match: VectorMatch) -> RetrievedChunk | None:
        text = match.metadata.get("text") or match.metadata.get("content")
        if not text:
            logger.debug("Skipping match %s without text", match.id)
            return None
        source_id = str(match.metadata.get("source_id") or match.id)
        return RetrievedChunk(
            source_id=source_id,
            text=text,
            score=match.score,
            token_count=self._accountant.count(text),
        )
