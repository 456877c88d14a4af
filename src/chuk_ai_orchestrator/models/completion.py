# chuk_ai_orchestrator/models/completion.py
"""Logical request/response contract of the completion provider."""

from __future__ import annotations

from pydantic import BaseModel, Field

from chuk_ai_orchestrator.models.message import Message
from chuk_ai_orchestrator.models.tools import ToolCallRequest, ToolDescriptor


class CompletionRequest(BaseModel):
    """System preamble, tool schemas and the ordered message list for one call."""

    system: str = ""
    tools: list[ToolDescriptor] = Field(default_factory=list)
    messages: list[Message] = Field(default_factory=list)
    max_output_tokens: int = Field(default=1024, gt=0)


class CompletionUsage(BaseModel):
    input_tokens: int = 0
    output_tokens: int = 0


class CompletionResponse(BaseModel):
    """
    Either a final text answer or one or more tool calls.

    A response carrying tool calls is never treated as final, even if it
    also contains text.
    """

    text: str = ""
    tool_calls: list[ToolCallRequest] = Field(default_factory=list)
    usage: CompletionUsage | None = None

    @property
    def is_tool_call(self) -> bool:
        return bool(self.tool_calls)
