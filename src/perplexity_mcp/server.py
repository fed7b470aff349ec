"""MCP stdio server: runtime wiring, tool listing, and tool invocation."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

import mcp.types as types
import structlog
from mcp.server.lowlevel import Server
from mcp.server.stdio import stdio_server

from perplexity_mcp.backend.client import AIBackendClient, LiteLLMBackend
from perplexity_mcp.context.policy import build_policy
from perplexity_mcp.conversation import ConversationService
from perplexity_mcp.dispatch import Dispatcher
from perplexity_mcp.events.bus import EventBus, ServerEvent
from perplexity_mcp.models.config import PerplexityMCPConfig
from perplexity_mcp.models.conversation import OperationDescriptor, ResultEnvelope
from perplexity_mcp.operations.handlers import build_operations
from perplexity_mcp.store.sessions import SessionStore

_logger = structlog.get_logger("perplexity_mcp.server")


@dataclass
class Runtime:
    """Everything one server process needs, opened and closed together."""

    config: PerplexityMCPConfig
    store: SessionStore
    backend: AIBackendClient
    conversation: ConversationService
    dispatcher: Dispatcher
    event_bus: EventBus


@asynccontextmanager
async def open_runtime(
    config: PerplexityMCPConfig,
    *,
    backend: AIBackendClient | None = None,
) -> AsyncIterator[Runtime]:
    """
    Open the store and wire services, closing the database on exit.

    The connection is released when the ``async with`` block exits for any
    reason, including cancellation and ``KeyboardInterrupt``.

    Args:
        config: Server configuration.
        backend: Override the backend (tests inject a fake here).
    """
    event_bus = EventBus()
    event_bus.subscribe(_log_event)
    store = SessionStore(config.store, event_bus=event_bus)
    try:
        await store.initialize()
        llm = backend or LiteLLMBackend(config.backend)
        conversation = ConversationService(
            store,
            llm,
            policy=build_policy(config.context),
            event_bus=event_bus,
        )
        dispatcher = Dispatcher(build_operations(llm, conversation), event_bus=event_bus)
        _logger.info(
            "runtime_opened",
            db_path=config.store.db_path,
            model=config.backend.model,
            context_policy=repr(conversation.policy),
        )
        yield Runtime(
            config=config,
            store=store,
            backend=llm,
            conversation=conversation,
            dispatcher=dispatcher,
            event_bus=event_bus,
        )
    finally:
        await store.close()
        _logger.info("runtime_closed")


def _log_event(event: ServerEvent, payload: dict[str, Any]) -> None:
    _logger.debug("server_event", event_type=str(event), **payload)


def to_tool(descriptor: OperationDescriptor) -> types.Tool:
    return types.Tool(
        name=descriptor.name,
        description=descriptor.description,
        inputSchema=descriptor.input_schema,
    )


def to_call_tool_result(envelope: ResultEnvelope) -> types.CallToolResult:
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=envelope.text)],
        isError=not envelope.success,
    )


def build_server(dispatcher: Dispatcher, name: str = "perplexity-server") -> Server:
    """
    Create an MCP ``Server`` whose tools are the dispatcher's operations.

    SDK-side schema validation is disabled: the dispatcher validates arguments
    and reports failures as ``isError`` results itself.
    """
    from perplexity_mcp import __version__

    server: Server = Server(name, version=__version__)

    @server.list_tools()
    async def list_tools() -> list[types.Tool]:
        return [to_tool(d) for d in dispatcher.list_operations()]

    @server.call_tool(validate_input=False)
    async def call_tool(name: str, arguments: dict[str, Any] | None) -> types.CallToolResult:
        envelope = await dispatcher.invoke(name, arguments)
        return to_call_tool_result(envelope)

    return server


async def serve(config: PerplexityMCPConfig) -> None:
    """Run the MCP server over stdio until the client disconnects."""
    async with open_runtime(config) as runtime, stdio_server() as (read_stream, write_stream):
        server = build_server(runtime.dispatcher, config.server_name)
        _logger.info("server_started", name=config.server_name)
        await server.run(read_stream, write_stream, server.create_initialization_options())
    _logger.info("server_stopped", name=config.server_name)
