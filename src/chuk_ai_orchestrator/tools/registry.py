# chuk_ai_orchestrator/tools/registry.py
"""
Tool registry.

Caches the session's ToolSet and dispatches invocations through a
transport. The set is replaced whole on refresh; a dispatch in flight
keeps the set it started with.

Dispatch failures are always ``ToolError``:

- unknown tool name: NOT_FOUND, transport never contacted
- arguments failing the tool's JSON schema: INVALID_ARGS, transport never contacted
- transport timeout: TIMEOUT
- anything else raised by the transport: REMOTE_FAILURE
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import jsonschema

from chuk_ai_orchestrator.config import OrchestratorConfig
from chuk_ai_orchestrator.exceptions import ToolError, ToolErrorKind
from chuk_ai_orchestrator.models.tools import ToolDescriptor, ToolSet
from chuk_ai_orchestrator.tokens import TokenAccountant
from chuk_ai_orchestrator.tools.transport import ToolTransport

logger = logging.getLogger(__name__)

DISCOVERY_TOOL_NAME = "list_tools"


def render_result(result: Any) -> str:
    """Text form of a tool result as it is shown to the model."""
    if isinstance(result, str):
        return result
    return json.dumps(result, ensure_ascii=False, default=str)


class ToolRegistry:
    """Discovered tool descriptors plus dispatch over one transport."""

    def __init__(
        self,
        transport: ToolTransport,
        accountant: TokenAccountant,
        *,
        timeout: float = 60.0,
        validate_arguments: bool = True,
    ) -> None:
        self._transport = transport
        self._accountant = accountant
        self.timeout = timeout
        self.validate_arguments = validate_arguments
        self._tool_set = ToolSet()

    @classmethod
    def from_config(
        cls,
        transport: ToolTransport,
        accountant: TokenAccountant,
        config: OrchestratorConfig,
        **kwargs,
    ) -> ToolRegistry:
        """Registry whose per-call timeout is ``config.tool_timeout``."""
        return cls(transport, accountant, timeout=config.tool_timeout, **kwargs)

    @property
    def tool_set(self) -> ToolSet:
        return self._tool_set

    @property
    def schema_cost(self) -> int:
        return self._tool_set.schema_cost

    async def discover(self) -> ToolSet:
        """
        Fetch the remote tool list and replace the cached set atomically.

        Duplicate names keep the first descriptor. Raises ``ToolError`` when
        the transport cannot list its tools; the cached set is then left as
        it was.
        """
        try:
            listed = await asyncio.wait_for(self._transport.list_tools(), timeout=self.timeout)
        except ToolError:
            raise
        except TimeoutError as e:
            raise ToolError(
                ToolErrorKind.TIMEOUT, DISCOVERY_TOOL_NAME, f"tool discovery timed out after {self.timeout}s"
            ) from e
        except Exception as e:
            raise ToolError(ToolErrorKind.REMOTE_FAILURE, DISCOVERY_TOOL_NAME, str(e)) from e

        descriptors: list[ToolDescriptor] = []
        seen: set[str] = set()
        for descriptor in listed:
            if descriptor.name in seen:
                logger.warning("Duplicate tool name %r in discovery, keeping the first", descriptor.name)
                continue
            seen.add(descriptor.name)
            if not descriptor.fixed_token_cost:
                cost = self._accountant.count(descriptor.schema_payload())
                descriptor = descriptor.model_copy(update={"fixed_token_cost": cost})
            descriptors.append(descriptor)

        tool_set = ToolSet(version=self._tool_set.version + 1, descriptors=tuple(descriptors))
        self._tool_set = tool_set
        logger.info(
            "Discovered %d tools (version %d, schema cost %d tokens)",
            len(tool_set),
            tool_set.version,
            tool_set.schema_cost,
        )
        return tool_set

    def replace(self, tool_set: ToolSet) -> None:
        """Swap in a whole new tool set."""
        self._tool_set = tool_set

    async def dispatch(
        self,
        name: str,
        arguments: dict[str, Any] | None = None,
        tool_set: ToolSet | None = None,
    ) -> Any:
        """Invoke ``name`` with ``arguments``; raises ``ToolError`` on any failure."""
        tool_set = tool_set if tool_set is not None else self._tool_set
        arguments = arguments or {}

        descriptor = tool_set.get(name)
        if descriptor is None:
            raise ToolError(ToolErrorKind.NOT_FOUND, name, f"no tool named '{name}' is available")

        if self.validate_arguments:
            self._validate(descriptor, arguments)

        try:
            result = await asyncio.wait_for(self._transport.invoke(name, arguments), timeout=self.timeout)
        except ToolError:
            raise
        except TimeoutError as e:
            raise ToolError(ToolErrorKind.TIMEOUT, name, f"tool '{name}' timed out after {self.timeout}s") from e
        except Exception as e:
            raise ToolError(ToolErrorKind.REMOTE_FAILURE, name, str(e)) from e

        logger.debug("Tool %s completed", name)
        return result

    @staticmethod
    def _validate(descriptor: ToolDescriptor, arguments: dict[str, Any]) -> None:
        try:
            jsonschema.validate(arguments, descriptor.input_schema)
        except jsonschema.ValidationError as e:
            raise ToolError(
                ToolErrorKind.INVALID_ARGS,
                descriptor.name,
                f"Schema validation failed: {e.message}",
            ) from e
        except jsonschema.SchemaError as e:
            logger.warning("Tool %s advertises an invalid schema, skipping validation: %s", descriptor.name, e.message)
