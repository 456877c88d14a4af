# chuk_ai_orchestrator/models/tools.py
"""Tool descriptors, tool sets and tool call requests."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ToolDescriptor(BaseModel):
    """A remotely discovered tool, as advertised to the model."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    description: str = ""
    input_schema: dict[str, Any] = Field(default_factory=lambda: {"type": "object", "properties": {}})
    fixed_token_cost: int = Field(default=0, ge=0)

    def schema_payload(self) -> dict[str, Any]:
        """The payload sent to the provider (and counted for schema cost)."""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
        }


class ToolSet(BaseModel):
    """
    Closed, immutable set of tool descriptors for a session.

    A refresh builds a whole new ToolSet; a set is never edited in place.
    """

    model_config = ConfigDict(frozen=True)

    version: int = 0
    descriptors: tuple[ToolDescriptor, ...] = ()

    def get(self, name: str) -> ToolDescriptor | None:
        return next((d for d in self.descriptors if d.name == name), None)

    def __contains__(self, name: object) -> bool:
        return self.get(name) is not None if isinstance(name, str) else False

    def __iter__(self) -> Iterator[ToolDescriptor]:  # type: ignore[override]
        return iter(self.descriptors)

    def __len__(self) -> int:
        return len(self.descriptors)

    @property
    def names(self) -> list[str]:
        return [d.name for d in self.descriptors]

    @property
    def schema_cost(self) -> int:
        """Combined token cost of advertising every tool in the set."""
        return sum(d.fixed_token_cost for d in self.descriptors)


class ToolCallRequest(BaseModel):
    """A structured request from the model to invoke a tool."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)
