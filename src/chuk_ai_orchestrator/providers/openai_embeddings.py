# chuk_ai_orchestrator/providers/openai_embeddings.py
"""Embedding provider backed by the OpenAI embeddings endpoint."""

from __future__ import annotations

import logging

import openai
from openai import AsyncOpenAI

from chuk_ai_orchestrator.config import DEFAULT_EMBEDDING_MODEL
from chuk_ai_orchestrator.exceptions import RetrievalError, RetrievalErrorKind

logger = logging.getLogger(__name__)


class OpenAIEmbeddingProvider:
    """``EmbeddingProvider`` over ``AsyncOpenAI().embeddings``."""

    def __init__(self, client: AsyncOpenAI | None = None, model: str = DEFAULT_EMBEDDING_MODEL) -> None:
        self.client = client or AsyncOpenAI()
        self.model = model

    async def embed(self, text: str) -> list[float]:
        try:
            response = await self.client.embeddings.create(model=self.model, input=text)
        except openai.OpenAIError as e:
            raise RetrievalError(RetrievalErrorKind.EMBEDDING_FAILED, str(e)) from e
        if not response.data:
            raise RetrievalError(RetrievalErrorKind.EMBEDDING_FAILED, "embedding response contained no data")
        return list(response.data[0].embedding)
