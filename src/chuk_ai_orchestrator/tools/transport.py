# chuk_ai_orchestrator/tools/transport.py
"""
Tool transport contract and an in-process transport.

A transport knows how to list the tools on the other side and how to invoke
one of them. Failures are reported by raising; the registry maps them into
``ToolError`` kinds.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

from chuk_ai_orchestrator.exceptions import ToolError, ToolErrorKind
from chuk_ai_orchestrator.models.tools import ToolDescriptor

logger = logging.getLogger(__name__)


@runtime_checkable
class ToolTransport(Protocol):
    async def list_tools(self) -> list[ToolDescriptor]: ...

    async def invoke(self, name: str, arguments: dict[str, Any]) -> Any: ...


class InProcessToolTransport:
    """
    Tools implemented as local callables (sync or async).

    Useful for wiring and tests; the registry treats it like any remote
    transport.
    """

    def __init__(self) -> None:
        self._tools: dict[str, tuple[ToolDescriptor, Callable[..., Any]]] = {}

    def register(
        self,
        name: str,
        func: Callable[..., Any],
        *,
        description: str = "",
        input_schema: dict[str, Any] | None = None,
    ) -> ToolDescriptor:
        descriptor = ToolDescriptor(
            name=name,
            description=description or (inspect.getdoc(func) or ""),
            input_schema=input_schema or {"type": "object", "properties": {}},
        )
        self._tools[name] = (descriptor, func)
        return descriptor

    def unregister(self, name: str) -> None:
        self._tools.pop(name, None)

    async def list_tools(self) -> list[ToolDescriptor]:
        return [descriptor for descriptor, _ in self._tools.values()]

    async def invoke(self, name: str, arguments: dict[str, Any]) -> Any:
        entry = self._tools.get(name)
        if entry is None:
            raise ToolError(ToolErrorKind.NOT_FOUND, name, f"tool '{name}' is not registered")
        _, func = entry
        result = func(**arguments)
        if inspect.isawaitable(result):
            result = await result
        return result
