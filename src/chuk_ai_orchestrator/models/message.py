# chuk_ai_orchestrator/models/message.py
"""Conversation message and serializable conversation snapshot."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from chuk_ai_orchestrator.models.enums import MessageRole


def _new_id() -> str:
    return uuid.uuid4().hex[:12]


class Message(BaseModel):
    """
    A single entry of the conversation log.

    Messages are immutable once created; history changes only by appending
    new messages or by compaction replacing a run of them with a summary.
    ToolCall and ToolResult messages are paired through ``tool_call_id``.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    role: MessageRole
    content: str = ""
    token_count: int = Field(default=0, ge=0)
    pinned: bool = False

    # Tool call bookkeeping
    tool_call_id: str | None = None
    tool_name: str | None = None
    arguments: dict[str, Any] | None = None
    is_error: bool = False

    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def is_tool_call(self) -> bool:
        return self.role == MessageRole.TOOL_CALL

    @property
    def is_tool_result(self) -> bool:
        return self.role == MessageRole.TOOL_RESULT


class Conversation(BaseModel):
    """Serializable snapshot of a session's history, used by conversation stores."""

    session_id: str
    messages: list[Message] = Field(default_factory=list)
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def total_tokens(self) -> int:
        return sum(m.token_count for m in self.messages)
