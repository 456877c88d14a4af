# chuk_ai_orchestrator/tools/chuk_transport.py
"""
Tool transport backed by chuk-tool-processor.

Tools registered with ``@register_tool`` are listed from the processor's
registry and executed through its ``ToolExecutor``, which brings its own
strategies, retries and timeouts.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any

from chuk_tool_processor.models.tool_call import ToolCall

from chuk_ai_orchestrator.exceptions import ToolError, ToolErrorKind
from chuk_ai_orchestrator.models.tools import ToolDescriptor

logger = logging.getLogger(__name__)

_JSON_TYPES = {int: "integer", float: "number", bool: "boolean", str: "string", dict: "object", list: "array"}


def schema_from_signature(func: Any) -> dict[str, Any]:
    """Build a JSON schema from an ``execute`` method signature."""
    properties: dict[str, Any] = {}
    required: list[str] = []
    for param_name, param in inspect.signature(func).parameters.items():
        if param_name == "self" or param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            continue
        properties[param_name] = {
            "type": _JSON_TYPES.get(param.annotation, "string"),
            "description": f"Parameter: {param_name}",
        }
        if param.default is inspect.Parameter.empty:
            required.append(param_name)
    return {"type": "object", "properties": properties, "required": required}


class ChukToolTransport:
    """Lists and invokes tools registered with chuk-tool-processor."""

    def __init__(self, registry: Any, executor: Any) -> None:
        self.registry = registry
        self.executor = executor

    @classmethod
    async def create(cls) -> ChukToolTransport:
        """Transport over the default registry with in-process execution."""
        from chuk_tool_processor.execution.strategies.inprocess_strategy import InProcessStrategy
        from chuk_tool_processor.execution.tool_executor import ToolExecutor
        from chuk_tool_processor.registry import get_default_registry

        registry = await get_default_registry()
        strategy = InProcessStrategy(registry)
        executor = ToolExecutor(registry=registry, strategy=strategy)
        return cls(registry, executor)

    async def list_tools(self) -> list[ToolDescriptor]:
        descriptors = []
        for namespace, tool_name in await self.registry.list_tools():
            metadata = await self.registry.get_metadata(tool_name, namespace)
            tool_class = await self.registry.get_tool(tool_name, namespace)
            execute = getattr(tool_class, "execute", None)
            if execute is None:
                logger.warning("Tool %s.%s has no execute method, skipping", namespace, tool_name)
                continue
            description = getattr(metadata, "description", None) or f"Execute {tool_name}"
            descriptors.append(
                ToolDescriptor(
                    name=tool_name,
                    description=description,
                    input_schema=schema_from_signature(execute),
                )
            )
        return descriptors

    async def invoke(self, name: str, arguments: dict[str, Any]) -> Any:
        results = await self.executor.execute([ToolCall(tool=name, arguments=arguments)])
        if not results:
            raise ToolError(ToolErrorKind.REMOTE_FAILURE, name, "tool executor returned no result")
        result = results[0]
        if result.error:
            raise ToolError(ToolErrorKind.REMOTE_FAILURE, name, str(result.error))
        return result.result
