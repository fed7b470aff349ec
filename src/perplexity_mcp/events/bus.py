"""In-process notifications for session, turn and invocation diagnostics."""

from __future__ import annotations

from collections.abc import Callable
from enum import StrEnum
from typing import Any

import structlog

Handler = Callable[["ServerEvent", dict[str, Any]], None]


class ServerEvent(StrEnum):
    """Events published by perplexity-mcp components.

    **Payloads:**

    ``SESSION_CREATED``
        ``session_id: str``. Published by the conversation service when an
        exchange creates a chat that did not exist yet.

    ``SESSION_IMPLICITLY_CREATED``
        ``session_id: str``. Published by the store when ``append_turn()``
        had to create the chat itself because nobody created it first.

    ``TURN_APPENDED``
        ``session_id: str``, ``turn_id: int``, ``role: str``.

    ``EXCHANGE_FAILED``
        ``session_id: str``, ``error: str``. The user turn stays persisted.

    ``OPERATION_COMPLETED``, ``OPERATION_FAILED``
        ``operation: str``, ``duration_ms: int``; failures add ``error: str``.
    """

    SESSION_CREATED = "session.created"
    SESSION_IMPLICITLY_CREATED = "session.implicitly_created"

    TURN_APPENDED = "turn.appended"
    EXCHANGE_FAILED = "exchange.failed"

    OPERATION_COMPLETED = "operation.completed"
    OPERATION_FAILED = "operation.failed"


class EventBus:
    """
    Synchronous fan-out of :class:`ServerEvent` notifications.

    Handlers run inline, in subscription order, inside ``publish()``. A
    failing handler is logged and skipped; the publisher never sees the error,
    so diagnostics cannot break a tool call.

    Example::

        bus = EventBus()
        stop = bus.subscribe(lambda e, p: print(e, p), ServerEvent.EXCHANGE_FAILED)
        ...
        stop()
    """

    def __init__(self) -> None:
        self._subscribers: list[tuple[frozenset[ServerEvent] | None, Handler]] = []
        self._logger = structlog.get_logger("perplexity_mcp.events")

    def subscribe(self, handler: Handler, *events: ServerEvent) -> Callable[[], None]:
        """
        Call *handler* for each of *events*, or for every event when none are given.

        Returns:
            A callable that removes this subscription.
        """
        entry = (frozenset(events) or None, handler)
        self._subscribers.append(entry)

        def unsubscribe() -> None:
            if entry in self._subscribers:
                self._subscribers.remove(entry)

        return unsubscribe

    def publish(self, event: ServerEvent, payload: dict[str, Any]) -> None:
        for wanted, handler in list(self._subscribers):
            if wanted is not None and event not in wanted:
                continue
            try:
                handler(event, payload)
            except Exception:
                self._logger.exception(
                    "event_handler_failed",
                    event_type=str(event),
                    handler=getattr(handler, "__qualname__", repr(handler)),
                )
