"""Dispatcher: the operation catalog and the single entry point for invocations."""

from __future__ import annotations

import time
from collections.abc import Iterable, Mapping
from typing import Any

import structlog

from perplexity_mcp.errors import PerplexityMCPError, UnknownOperationError
from perplexity_mcp.events.bus import EventBus, ServerEvent
from perplexity_mcp.models.conversation import OperationDescriptor, ResultEnvelope
from perplexity_mcp.operations.handlers import Operation


class Dispatcher:
    """
    Routes invocation requests to operations and normalises every outcome
    into a :class:`ResultEnvelope`.

    Invariants:
    1. The catalog is fixed at construction and listed in registration order.
    2. An unknown name never reaches a handler.
    3. Arguments are validated before the handler runs; invalid arguments
       cause no side effects.
    4. Failures are data: ``invoke()`` returns a failure envelope instead of
       raising, so one failed call never affects the next.
    """

    def __init__(self, operations: Iterable[Operation], event_bus: EventBus | None = None) -> None:
        self._operations: dict[str, Operation] = {}
        for op in operations:
            if op.name in self._operations:
                raise ValueError(f"Duplicate operation name: {op.name!r}")
            self._operations[op.name] = op
        self._descriptors = [op.descriptor for op in self._operations.values()]
        self._event_bus = event_bus or EventBus()
        self._logger = structlog.get_logger("perplexity_mcp.dispatch")

    def list_operations(self) -> list[OperationDescriptor]:
        """Name, description and parameter schema of every operation."""
        return list(self._descriptors)

    def resolve(self, name: str) -> Operation:
        """
        Look up an operation by name.

        Raises:
            UnknownOperationError: If no operation has this name.
        """
        try:
            return self._operations[name]
        except KeyError:
            raise UnknownOperationError(name) from None

    async def invoke(self, name: str, raw_args: Mapping[str, Any] | None = None) -> ResultEnvelope:
        """
        Validate and run one operation.

        Args:
            name: Operation name from the catalog.
            raw_args: Unvalidated arguments as received from the transport.

        Returns:
            ``ResultEnvelope(success=True, payload=...)`` on success, otherwise
            ``ResultEnvelope(success=False, message=...)``.
        """
        log = self._logger.bind(operation=name)
        started = time.monotonic()

        try:
            op = self.resolve(name)
            args = op.parse(raw_args)
            payload = await op.handler(args)
        except PerplexityMCPError as exc:
            log.warning("operation_failed", error=str(exc), error_type=type(exc).__name__)
            return self._failed(name, started, str(exc))
        except Exception as exc:
            log.exception("operation_crashed")
            return self._failed(name, started, f"Internal error: {exc}")

        duration_ms = int((time.monotonic() - started) * 1000)
        log.info("operation_completed", duration_ms=duration_ms)
        self._event_bus.publish(
            ServerEvent.OPERATION_COMPLETED, {"operation": name, "duration_ms": duration_ms}
        )
        return ResultEnvelope.ok(payload)

    def _failed(self, name: str, started: float, message: str) -> ResultEnvelope:
        self._event_bus.publish(
            ServerEvent.OPERATION_FAILED,
            {
                "operation": name,
                "duration_ms": int((time.monotonic() - started) * 1000),
                "error": message,
            },
        )
        return ResultEnvelope.fail(message)

    def __contains__(self, name: object) -> bool:
        return name in self._operations

    def __len__(self) -> int:
        return len(self._operations)
