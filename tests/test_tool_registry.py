# tests/test_tool_registry.py
"""
Tests for ToolRegistry and InProcessToolTransport.

Covers:
- discovery: versioning, duplicate names, schema cost, failures
- dispatch: NOT_FOUND and INVALID_ARGS never reach the transport
- TIMEOUT and REMOTE_FAILURE mapping
- a dispatch in flight keeps its tool set across a refresh
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from chuk_ai_orchestrator.config import OrchestratorConfig
from chuk_ai_orchestrator.exceptions import ToolError, ToolErrorKind
from chuk_ai_orchestrator.models.tools import ToolDescriptor, ToolSet
from chuk_ai_orchestrator.tools import InProcessToolTransport, ToolRegistry, ToolTransport, render_result

ADD_SCHEMA = {
    "type": "object",
    "properties": {"a": {"type": "integer"}, "b": {"type": "integer"}},
    "required": ["a", "b"],
}


def add(a, b):
    """Add two integers."""
    return a + b


async def slow(seconds=10):
    await asyncio.sleep(seconds)
    return "finished"


def explode():
    raise RuntimeError("backend exploded")


@pytest.fixture
def transport():
    transport = InProcessToolTransport()
    transport.register("add", add, input_schema=ADD_SCHEMA)
    transport.register("slow", slow)
    transport.register("explode", explode, description="Always fails")
    return transport


@pytest.fixture
def registry(transport, accountant):
    return ToolRegistry(transport, accountant, timeout=0.05)


def _mock_transport(descriptors):
    transport = AsyncMock()
    transport.list_tools.return_value = descriptors
    return transport


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


class TestDiscover:
    @pytest.mark.asyncio
    async def test_discover_builds_versioned_set(self, registry, accountant):
        tool_set = await registry.discover()
        assert tool_set.version == 1
        assert tool_set.names == ["add", "slow", "explode"]
        add_descriptor = tool_set.get("add")
        assert add_descriptor.description == "Add two integers."
        assert add_descriptor.fixed_token_cost == accountant.count(add_descriptor.schema_payload())
        assert registry.schema_cost == sum(d.fixed_token_cost for d in tool_set)

        again = await registry.discover()
        assert again.version == 2
        assert registry.tool_set is again

    @pytest.mark.asyncio
    async def test_duplicate_names_keep_first(self, accountant, caplog):
        transport = _mock_transport(
            [
                ToolDescriptor(name="search", description="first"),
                ToolDescriptor(name="search", description="second"),
            ]
        )
        registry = ToolRegistry(transport, accountant)
        tool_set = await registry.discover()
        assert len(tool_set) == 1
        assert tool_set.get("search").description == "first"
        assert "Duplicate tool name" in caplog.text

    @pytest.mark.asyncio
    async def test_preset_cost_kept(self, accountant):
        transport = _mock_transport([ToolDescriptor(name="search", fixed_token_cost=7)])
        registry = ToolRegistry(transport, accountant)
        tool_set = await registry.discover()
        assert tool_set.schema_cost == 7

    @pytest.mark.asyncio
    async def test_discovery_failure_keeps_previous_set(self, accountant):
        transport = _mock_transport([ToolDescriptor(name="search")])
        registry = ToolRegistry(transport, accountant)
        previous = await registry.discover()

        transport.list_tools.side_effect = ConnectionError("server gone")
        with pytest.raises(ToolError) as exc_info:
            await registry.discover()

        assert exc_info.value.kind == ToolErrorKind.REMOTE_FAILURE
        assert registry.tool_set is previous

    @pytest.mark.asyncio
    async def test_discovery_timeout(self, accountant):
        async def hang():
            await asyncio.sleep(10)

        transport = AsyncMock()
        transport.list_tools.side_effect = hang
        registry = ToolRegistry(transport, accountant, timeout=0.01)
        with pytest.raises(ToolError) as exc_info:
            await registry.discover()
        assert exc_info.value.kind == ToolErrorKind.TIMEOUT


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


class TestDispatch:
    @pytest.mark.asyncio
    async def test_successful_dispatch(self, registry):
        await registry.discover()
        assert await registry.dispatch("add", {"a": 2, "b": 3}) == 5

    @pytest.mark.asyncio
    async def test_unknown_tool_never_contacts_transport(self, accountant):
        transport = _mock_transport([ToolDescriptor(name="search")])
        registry = ToolRegistry(transport, accountant)
        await registry.discover()

        with pytest.raises(ToolError) as exc_info:
            await registry.dispatch("delete_everything", {})

        assert exc_info.value.kind == ToolErrorKind.NOT_FOUND
        assert exc_info.value.tool_name == "delete_everything"
        transport.invoke.assert_not_called()

    @pytest.mark.asyncio
    async def test_invalid_arguments_never_contact_transport(self, accountant):
        transport = _mock_transport([ToolDescriptor(name="add", input_schema=ADD_SCHEMA)])
        registry = ToolRegistry(transport, accountant)
        await registry.discover()

        with pytest.raises(ToolError) as exc_info:
            await registry.dispatch("add", {"a": "two"})

        assert exc_info.value.kind == ToolErrorKind.INVALID_ARGS
        assert "Schema validation failed" in str(exc_info.value)
        transport.invoke.assert_not_called()

    @pytest.mark.asyncio
    async def test_validation_can_be_disabled(self, accountant):
        transport = _mock_transport([ToolDescriptor(name="add", input_schema=ADD_SCHEMA)])
        transport.invoke.return_value = "ok"
        registry = ToolRegistry(transport, accountant, validate_arguments=False)
        await registry.discover()
        assert await registry.dispatch("add", {"a": "two"}) == "ok"

    @pytest.mark.asyncio
    async def test_timeout(self, registry):
        await registry.discover()
        with pytest.raises(ToolError) as exc_info:
            await registry.dispatch("slow", {})
        assert exc_info.value.kind == ToolErrorKind.TIMEOUT

    @pytest.mark.asyncio
    async def test_timeout_from_config(self, transport, accountant):
        registry = ToolRegistry.from_config(transport, accountant, OrchestratorConfig(tool_timeout=0.05))
        assert registry.timeout == 0.05
        await registry.discover()
        with pytest.raises(ToolError) as exc_info:
            await registry.dispatch("slow", {})
        assert exc_info.value.kind == ToolErrorKind.TIMEOUT

    @pytest.mark.asyncio
    async def test_remote_failure(self, registry):
        await registry.discover()
        with pytest.raises(ToolError) as exc_info:
            await registry.dispatch("explode")
        assert exc_info.value.kind == ToolErrorKind.REMOTE_FAILURE
        assert "backend exploded" in str(exc_info.value)
        assert "remote_failure" in exc_info.value.as_result_text()

    @pytest.mark.asyncio
    async def test_dispatch_uses_given_tool_set(self, accountant):
        transport = _mock_transport([ToolDescriptor(name="search")])
        transport.invoke.return_value = "found"
        registry = ToolRegistry(transport, accountant)
        old_set = await registry.discover()

        registry.replace(ToolSet(version=5, descriptors=()))

        assert await registry.dispatch("search", {}, tool_set=old_set) == "found"
        with pytest.raises(ToolError):
            await registry.dispatch("search", {})


# ---------------------------------------------------------------------------
# Transport and rendering
# ---------------------------------------------------------------------------


class TestInProcessTransport:
    def test_satisfies_protocol(self, transport):
        assert isinstance(transport, ToolTransport)

    @pytest.mark.asyncio
    async def test_async_tools_awaited(self, transport):
        assert await transport.invoke("slow", {"seconds": 0}) == "finished"

    @pytest.mark.asyncio
    async def test_unregister(self, transport):
        transport.unregister("add")
        with pytest.raises(ToolError) as exc_info:
            await transport.invoke("add", {"a": 1, "b": 2})
        assert exc_info.value.kind == ToolErrorKind.NOT_FOUND


class TestRenderResult:
    def test_string_passthrough(self):
        assert render_result("plain") == "plain"

    def test_structured_result_as_json(self):
        assert render_result({"temp": 21, "city": "Zürich"}) == '{"temp": 21, "city": "Zürich"}'
