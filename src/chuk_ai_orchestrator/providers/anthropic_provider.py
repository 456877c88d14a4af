# chuk_ai_orchestrator/providers/anthropic_provider.py
"""
Completion provider backed by the Anthropic Messages API.

Maps the logical request onto ``messages.create`` and the SDK's exception
hierarchy onto ``ProviderError`` kinds:

- RateLimitError -> RATE_LIMIT (``retry-after`` header when present)
- AuthenticationError, PermissionDeniedError -> AUTH
- timeouts, connection errors, 5xx -> TRANSIENT
- BadRequestError, other 4xx, unparseable responses -> MALFORMED
"""

from __future__ import annotations

import logging
from typing import Any

import anthropic
from anthropic import AsyncAnthropic

from chuk_ai_orchestrator.config import DEFAULT_COMPLETION_MODEL
from chuk_ai_orchestrator.exceptions import ProviderError, ProviderErrorKind
from chuk_ai_orchestrator.models.completion import CompletionRequest, CompletionResponse, CompletionUsage
from chuk_ai_orchestrator.models.enums import MessageRole
from chuk_ai_orchestrator.models.message import Message
from chuk_ai_orchestrator.models.tools import ToolCallRequest

logger = logging.getLogger(__name__)

OMITTED_PREFIX = "(Earlier conversation omitted.)"


def _retry_after(response: Any) -> float | None:
    headers = getattr(response, "headers", None)
    if not headers:
        return None
    value = headers.get("retry-after")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _block(message: Message) -> dict[str, Any] | None:
    if message.role == MessageRole.TOOL_CALL:
        return {
            "type": "tool_use",
            "id": message.tool_call_id,
            "name": message.tool_name,
            "input": message.arguments or {},
        }
    if message.role == MessageRole.TOOL_RESULT:
        block: dict[str, Any] = {
            "type": "tool_result",
            "tool_use_id": message.tool_call_id,
            "content": message.content,
        }
        if message.is_error:
            block["is_error"] = True
        return block
    if not message.content:
        return None
    return {"type": "text", "text": message.content}


def to_anthropic_messages(messages: list[Message]) -> list[dict[str, Any]]:
    """
    Convert history messages to Messages API turns.

    Tool calls become assistant ``tool_use`` blocks, tool results and
    summaries become user blocks, and consecutive blocks of the same role
    are merged into one turn. The API requires the first turn to be a user
    turn.
    """
    turns: list[dict[str, Any]] = []
    for message in messages:
        role = "assistant" if message.role in (MessageRole.ASSISTANT, MessageRole.TOOL_CALL) else "user"
        block = _block(message)
        if block is None:
            continue
        if turns and turns[-1]["role"] == role:
            turns[-1]["content"].append(block)
        else:
            turns.append({"role": role, "content": [block]})
    if turns and turns[0]["role"] != "user":
        turns.insert(0, {"role": "user", "content": [{"type": "text", "text": OMITTED_PREFIX}]})
    return turns


class AnthropicCompletionProvider:
    """``CompletionProvider`` over ``AsyncAnthropic``."""

    def __init__(self, client: AsyncAnthropic | None = None, model: str = DEFAULT_COMPLETION_MODEL) -> None:
        self.client = client or AsyncAnthropic()
        self.model = model

    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        kwargs: dict[str, Any] = {
            "model": self.model,
            "max_tokens": request.max_output_tokens,
            "messages": to_anthropic_messages(request.messages),
        }
        if request.system:
            kwargs["system"] = request.system
        if request.tools:
            kwargs["tools"] = [tool.schema_payload() for tool in request.tools]

        try:
            response = await self.client.messages.create(**kwargs)
        except anthropic.RateLimitError as e:
            raise ProviderError(ProviderErrorKind.RATE_LIMIT, str(e), retry_after=_retry_after(e.response)) from e
        except (anthropic.AuthenticationError, anthropic.PermissionDeniedError) as e:
            raise ProviderError(ProviderErrorKind.AUTH, str(e)) from e
        except anthropic.APIConnectionError as e:
            raise ProviderError(ProviderErrorKind.TRANSIENT, str(e)) from e
        except anthropic.APIStatusError as e:
            kind = ProviderErrorKind.TRANSIENT if e.status_code >= 500 else ProviderErrorKind.MALFORMED
            raise ProviderError(kind, str(e)) from e

        return self._parse(response)

    @staticmethod
    def _parse(response: Any) -> CompletionResponse:
        texts: list[str] = []
        tool_calls: list[ToolCallRequest] = []
        for block in getattr(response, "content", None) or []:
            block_type = getattr(block, "type", None)
            if block_type == "text":
                texts.append(block.text)
            elif block_type == "tool_use":
                if not isinstance(block.input, dict):
                    raise ProviderError(
                        ProviderErrorKind.MALFORMED, f"tool_use input for {block.name} is not an object"
                    )
                tool_calls.append(ToolCallRequest(id=block.id, name=block.name, arguments=block.input))
            else:
                logger.debug("Ignoring response block of type %s", block_type)

        usage = None
        if getattr(response, "usage", None) is not None:
            usage = CompletionUsage(
                input_tokens=response.usage.input_tokens,
                output_tokens=response.usage.output_tokens,
            )
        return CompletionResponse(text="".join(texts), tool_calls=tool_calls, usage=usage)
