# chuk_ai_orchestrator/tokens.py
"""
Token accounting.

The TokenAccountant turns text and structured payloads into token counts by
delegating to a tokenizer. The default tokenizer wraps tiktoken; anything
with ``encode``/``decode`` can be substituted.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol, runtime_checkable

import tiktoken
from pydantic import BaseModel

from chuk_ai_orchestrator.config import DEFAULT_TOKEN_MODEL, TRUNCATION_MARKER

logger = logging.getLogger(__name__)

FALLBACK_ENCODING = "cl100k_base"


@runtime_checkable
class Tokenizer(Protocol):
    """Minimal tokenizer contract: text to token ids and back."""

    def encode(self, text: str) -> list[int]: ...

    def decode(self, tokens: list[int]) -> str: ...


class TiktokenTokenizer:
    """tiktoken-backed tokenizer; unknown models fall back to ``cl100k_base``."""

    def __init__(self, model: str = DEFAULT_TOKEN_MODEL) -> None:
        try:
            self._encoding = tiktoken.encoding_for_model(model)
        except KeyError:
            logger.debug("No tiktoken encoding registered for %s, using %s", model, FALLBACK_ENCODING)
            self._encoding = tiktoken.get_encoding(FALLBACK_ENCODING)
        self.model = model

    def encode(self, text: str) -> list[int]:
        # Special-token text is counted as plain text, never rejected.
        return self._encoding.encode(text, disallowed_special=())

    def decode(self, tokens: list[int]) -> str:
        return self._encoding.decode(tokens)


class TokenAccountant:
    """
    Deterministic token counting for everything that goes into a request.

    Structured payloads (dicts, lists, pydantic models) are serialized
    canonically before counting so identical input always yields the same
    count within a session.
    """

    def __init__(self, tokenizer: Tokenizer | None = None, model: str = DEFAULT_TOKEN_MODEL) -> None:
        self._tokenizer = tokenizer or TiktokenTokenizer(model)

    @property
    def tokenizer(self) -> Tokenizer:
        return self._tokenizer

    @staticmethod
    def _as_text(payload: Any) -> str:
        if payload is None:
            return ""
        if isinstance(payload, str):
            return payload
        if isinstance(payload, BaseModel):
            return json.dumps(payload.model_dump(mode="json"), sort_keys=True, separators=(",", ":"))
        return json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)

    def count(self, payload: Any) -> int:
        """Count tokens of a text or structured payload."""
        text = self._as_text(payload)
        if not text:
            return 0
        return len(self._tokenizer.encode(text))

    def count_many(self, payloads: list[Any]) -> int:
        return sum(self.count(p) for p in payloads)

    def truncate(
        self,
        text: str,
        max_tokens: int,
        marker: str = TRUNCATION_MARKER,
    ) -> tuple[str, int]:
        """
        Cut ``text`` down to at most ``max_tokens`` tokens.

        When anything is removed the result ends with ``marker`` on its own
        line. Returns the (possibly unchanged) text and its token count.
        """
        tokens = self.count(text)
        if tokens <= max_tokens:
            return text, tokens
        if max_tokens <= 0:
            return "", 0

        suffix = f"\n{marker}"
        suffix_tokens = self.count(suffix)
        if suffix_tokens > max_tokens:
            # Not even the marker fits: hard cut without it.
            ids = self._tokenizer.encode(text)[:max_tokens]
            head = self._tokenizer.decode(ids)
            while head and self.count(head) > max_tokens:
                ids = ids[:-1]
                head = self._tokenizer.decode(ids)
            return head, self.count(head)

        ids = self._tokenizer.encode(text)
        keep = max_tokens - suffix_tokens
        while keep >= 0:
            candidate = self._tokenizer.decode(ids[:keep]).rstrip() + suffix
            candidate_tokens = self.count(candidate)
            if candidate_tokens <= max_tokens:
                return candidate, candidate_tokens
            keep -= 1
        # keep < 0 only if decoding merged tokens around the marker
        return marker, self.count(marker)
