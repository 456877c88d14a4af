# chuk_ai_orchestrator/context/packer.py
"""
Segment packing helpers.

Formats retrieved chunks into the context block that is injected into the
request, and trims oversized tool results. Token counts are always measured
on the exact text that will be sent.
"""

from __future__ import annotations

from collections.abc import Sequence

from chuk_ai_orchestrator.models.enums import MessageRole
from chuk_ai_orchestrator.models.message import Message
from chuk_ai_orchestrator.models.retrieval import ContextBlock, RetrievedChunk
from chuk_ai_orchestrator.tokens import TokenAccountant

CONTEXT_HEADER = "You have access to the following relevant documentation:"
CHUNK_SEPARATOR = "\n\n---\n\n"
# Separates the context block from the user's own words in the request.
CONTEXT_SEPARATOR = "\n\n---\n\nUser: "


def format_chunk(chunk: RetrievedChunk) -> str:
    return f"Source: {chunk.source_id}\nContent: {chunk.text}"


def render_block(chunks: Sequence[RetrievedChunk], header: str = CONTEXT_HEADER) -> str:
    """Render chunks as the text that precedes the user's message."""
    if not chunks:
        return ""
    body = CHUNK_SEPARATOR.join(format_chunk(c) for c in chunks)
    return f"{header}\n\n{body}{CONTEXT_SEPARATOR}"


def dedupe_by_source(chunks: Sequence[RetrievedChunk]) -> list[RetrievedChunk]:
    """Keep the highest-scoring chunk per source_id, ordered by descending score."""
    ordered = sorted(chunks, key=lambda c: (-c.score, c.source_id))
    seen: set[str] = set()
    result = []
    for chunk in ordered:
        if chunk.source_id in seen:
            continue
        seen.add(chunk.source_id)
        result.append(chunk)
    return result


def pack_context_block(
    chunks: Sequence[RetrievedChunk],
    budget: int,
    accountant: TokenAccountant,
    header: str = CONTEXT_HEADER,
) -> ContextBlock:
    """
    Greedily select chunks by descending score while the block fits ``budget``.

    A chunk that would overflow the budget is skipped and smaller,
    lower-scoring chunks are still considered.
    """
    if budget <= 0 or not chunks:
        return ContextBlock.empty()

    selected: list[RetrievedChunk] = []
    tokens_used = 0
    for chunk in dedupe_by_source(chunks):
        candidate = selected + [chunk]
        tokens = accountant.count(render_block(candidate, header))
        if tokens > budget:
            continue
        selected = candidate
        tokens_used = tokens

    if not selected:
        return ContextBlock.empty()
    return ContextBlock(
        text=render_block(selected, header),
        token_count=tokens_used,
        chunks=tuple(selected),
    )


def attach_context(message: Message, block: ContextBlock) -> Message:
    """Request-only view of ``message`` with the context block in front of it."""
    if block.is_empty:
        return message
    return message.model_copy(
        update={
            "content": f"{block.text}{message.content}",
            "token_count": message.token_count + block.token_count,
        }
    )


def trim_tool_result(
    message: Message,
    budget: int,
    accountant: TokenAccountant,
    marker: str,
) -> Message:
    """Truncate a ToolResult message to ``budget`` tokens, marking the cut."""
    if message.role != MessageRole.TOOL_RESULT:
        raise ValueError("only tool result messages can be trimmed")
    if message.token_count <= budget:
        return message
    text, tokens = accountant.truncate(message.content, budget, marker=marker)
    return message.model_copy(update={"content": text, "token_count": tokens})
