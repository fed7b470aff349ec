"""Tests for runtime wiring and the MCP tool adapter."""

from __future__ import annotations

import json

import mcp.types as types
import pytest

from perplexity_mcp.context.policy import SlidingWindowPolicy
from perplexity_mcp.errors import StorageError
from perplexity_mcp.events.bus import ServerEvent
from perplexity_mcp.models.config import ContextConfig
from perplexity_mcp.models.conversation import OperationDescriptor, ResultEnvelope
from perplexity_mcp.server import build_server, open_runtime, to_call_tool_result, to_tool


class TestAdapters:
    def test_to_tool(self):
        descriptor = OperationDescriptor(
            name="search",
            description="Search",
            input_schema={"type": "object", "properties": {}, "required": []},
        )
        tool = to_tool(descriptor)
        assert tool.name == "search"
        assert tool.description == "Search"
        assert tool.inputSchema["type"] == "object"

    def test_success_result(self):
        result = to_call_tool_result(ResultEnvelope.ok("answer"))
        assert result.isError is False
        assert result.content[0].text == "answer"

    def test_failure_result(self):
        envelope = ResultEnvelope.fail("Unknown operation: nope")
        assert envelope.to_tool_result() == {
            "isError": True,
            "content": "Unknown operation: nope",
        }
        result = to_call_tool_result(envelope)
        assert result.isError is True
        assert result.content[0].text == "Unknown operation: nope"


class TestOpenRuntime:
    async def test_wires_dispatcher_and_closes_store(self, config, backend):
        async with open_runtime(config, backend=backend) as runtime:
            assert len(runtime.dispatcher) == 5
            envelope = await runtime.dispatcher.invoke("chat_perplexity", {"message": "hi"})
            chat_id = json.loads(envelope.payload)["chat_id"]
            assert len(await runtime.store.list_turns(chat_id)) == 2
            store = runtime.store

        with pytest.raises(StorageError):
            await store.list_turns(chat_id)

    async def test_closes_store_on_error(self, config, backend):
        with pytest.raises(RuntimeError):
            async with open_runtime(config, backend=backend) as runtime:
                store = runtime.store
                raise RuntimeError("boom")
        with pytest.raises(StorageError):
            await store.list_turns("s1")

    async def test_runtime_event_bus_reaches_subscribers(self, config, backend):
        seen = []
        async with open_runtime(config, backend=backend) as runtime:
            runtime.event_bus.subscribe(lambda e, p: seen.append(e), ServerEvent.OPERATION_FAILED)
            await runtime.dispatcher.invoke("search", {})
        assert seen == [ServerEvent.OPERATION_FAILED]

    async def test_history_survives_restart(self, config, backend):
        async with open_runtime(config, backend=backend) as runtime:
            await runtime.dispatcher.invoke("chat_perplexity", {"message": "a", "chat_id": "s1"})

        async with open_runtime(config, backend=backend) as runtime:
            await runtime.dispatcher.invoke("chat_perplexity", {"message": "b", "chat_id": "s1"})

        assert [m.content for m in backend.calls[-1]] == ["a", "echo: a", "b"]

    async def test_context_policy_from_config(self, config, backend):
        config = config.model_copy(update={"context": ContextConfig(strategy="window", max_turns=4)})
        async with open_runtime(config, backend=backend) as runtime:
            assert isinstance(runtime.conversation.policy, SlidingWindowPolicy)


class TestMCPServer:
    async def test_list_and_call_tools(self, dispatcher, backend):
        server = build_server(dispatcher)

        listed = await server.request_handlers[types.ListToolsRequest](
            types.ListToolsRequest(method="tools/list")
        )
        assert [t.name for t in listed.root.tools] == [
            "chat_perplexity",
            "search",
            "get_documentation",
            "find_apis",
            "check_deprecated_code",
        ]

        called = await server.request_handlers[types.CallToolRequest](
            types.CallToolRequest(
                method="tools/call",
                params=types.CallToolRequestParams(name="search", arguments={"query": ""}),
            )
        )
        assert called.root.isError is True
        assert backend.calls == []

        called = await server.request_handlers[types.CallToolRequest](
            types.CallToolRequest(
                method="tools/call",
                params=types.CallToolRequestParams(name="search", arguments={"query": "mcp"}),
            )
        )
        assert called.root.isError is False
        assert called.root.content[0].text.startswith("echo: ")
