# tests/test_chuk_transport.py
"""Tests for the chuk-tool-processor backed transport."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from chuk_ai_orchestrator.exceptions import ToolError, ToolErrorKind
from chuk_ai_orchestrator.tools.chuk_transport import ChukToolTransport, schema_from_signature


class WeatherTool:
    async def execute(self, location: str, days: int = 1) -> dict:
        return {"location": location, "days": days}


@pytest.fixture
def registry():
    registry = AsyncMock()
    registry.list_tools.return_value = [("default", "weather"), ("default", "broken")]
    registry.get_metadata.return_value = MagicMock(description="Get the weather")

    async def get_tool(name, namespace):
        return WeatherTool if name == "weather" else object

    registry.get_tool.side_effect = get_tool
    return registry


def test_schema_from_signature():
    schema = schema_from_signature(WeatherTool.execute)
    assert schema["properties"]["location"]["type"] == "string"
    assert schema["properties"]["days"]["type"] == "integer"
    assert schema["required"] == ["location"]


@pytest.mark.asyncio
async def test_list_tools_skips_tools_without_execute(registry):
    transport = ChukToolTransport(registry, AsyncMock())
    descriptors = await transport.list_tools()
    assert [d.name for d in descriptors] == ["weather"]
    assert descriptors[0].description == "Get the weather"


@pytest.mark.asyncio
async def test_invoke_returns_result(registry):
    executor = AsyncMock()
    executor.execute.return_value = [MagicMock(error=None, result={"temp": 20})]
    transport = ChukToolTransport(registry, executor)

    assert await transport.invoke("weather", {"location": "Paris"}) == {"temp": 20}

    (calls,), _ = executor.execute.call_args
    assert calls[0].tool == "weather"
    assert calls[0].arguments == {"location": "Paris"}


@pytest.mark.asyncio
async def test_invoke_error_is_remote_failure(registry):
    executor = AsyncMock()
    executor.execute.return_value = [MagicMock(error="city not found", result=None)]
    transport = ChukToolTransport(registry, executor)

    with pytest.raises(ToolError) as exc_info:
        await transport.invoke("weather", {"location": "Atlantis"})

    assert exc_info.value.kind == ToolErrorKind.REMOTE_FAILURE
    assert "city not found" in str(exc_info.value)


@pytest.mark.asyncio
async def test_invoke_without_results(registry):
    executor = AsyncMock()
    executor.execute.return_value = []
    transport = ChukToolTransport(registry, executor)
    with pytest.raises(ToolError):
        await transport.invoke("weather", {})
