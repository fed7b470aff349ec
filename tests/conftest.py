"""Shared fixtures for perplexity-mcp tests."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import pytest
import pytest_asyncio

from perplexity_mcp.conversation import ConversationService
from perplexity_mcp.dispatch import Dispatcher
from perplexity_mcp.errors import BackendError
from perplexity_mcp.events.bus import EventBus, ServerEvent
from perplexity_mcp.models.config import PerplexityMCPConfig, StoreConfig
from perplexity_mcp.models.conversation import BackendReply, ChatMessage
from perplexity_mcp.operations.handlers import build_operations
from perplexity_mcp.store.sessions import SessionStore


class ScriptedBackend:
    """
    In-memory ``AIBackendClient``.

    Replies are consumed from ``script`` in order; an exception instance in the
    script is raised instead. When the script is empty a default echo reply is
    returned. Every call's messages are recorded in ``calls``.
    """

    def __init__(self, *script: str | BaseException) -> None:
        self.script: list[str | BaseException] = list(script)
        self.calls: list[list[ChatMessage]] = []

    async def generate(self, messages: Sequence[ChatMessage]) -> BackendReply:
        self.calls.append(list(messages))
        if self.script:
            item = self.script.pop(0)
            if isinstance(item, BaseException):
                raise item
            return BackendReply(content=item)
        return BackendReply(content=f"echo: {messages[-1].content}")

    def fail_next(self, reason: str = "connection refused") -> None:
        self.script.insert(0, BackendError(reason))


@pytest.fixture
def config(tmp_path):
    """PerplexityMCPConfig with a temp database path."""
    return PerplexityMCPConfig(store=StoreConfig(db_path=str(tmp_path / "test.db")))


@pytest.fixture
def event_bus():
    """EventBus with a .collected list for asserting events."""
    bus = EventBus()
    collected: list[tuple[ServerEvent, dict[str, Any]]] = []

    def _collect(event: ServerEvent, payload: dict[str, Any]) -> None:
        collected.append((event, payload))

    bus.subscribe(_collect)
    bus.collected = collected  # type: ignore[attr-defined]
    return bus


@pytest_asyncio.fixture
async def store(config, event_bus):
    """Initialized SessionStore backed by a temp SQLite database."""
    s = SessionStore(config.store, event_bus=event_bus)
    await s.initialize()
    yield s
    await s.close()


@pytest.fixture
def backend():
    return ScriptedBackend()


@pytest.fixture
def scripted_backend():
    """The ScriptedBackend class, for tests that need their own script."""
    return ScriptedBackend


@pytest.fixture
def conversation(store, backend, event_bus):
    return ConversationService(store, backend, event_bus=event_bus)


@pytest.fixture
def dispatcher(backend, conversation, event_bus):
    return Dispatcher(build_operations(backend, conversation), event_bus=event_bus)


@pytest.fixture
def events(event_bus):
    """``events(ServerEvent.X)`` returns the payloads published for X so far."""

    def _of(event: ServerEvent) -> list[dict[str, Any]]:
        return [payload for e, payload in event_bus.collected if e == event]

    return _of
