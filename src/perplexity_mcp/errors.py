"""Error taxonomy shared by every perplexity-mcp component."""

from __future__ import annotations


class PerplexityMCPError(Exception):
    """Base class for errors that are reported to the caller as data."""


class InvalidArgumentsError(PerplexityMCPError):
    """Raised when an operation receives missing, empty, or mistyped arguments."""

    def __init__(self, operation: str, details: str) -> None:
        super().__init__(f"Invalid arguments for {operation!r}: {details}")
        self.operation = operation
        self.details = details


class UnknownOperationError(PerplexityMCPError):
    """Raised when an invocation names an operation that is not registered."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown operation: {name}")
        self.name = name


class BackendError(PerplexityMCPError):
    """
    Raised when the language-model backend cannot produce a reply.

    Covers transport failures, non-success responses, timeouts and replies
    without generated content. ``reason`` is the human-readable cause.
    """

    def __init__(self, reason: str) -> None:
        super().__init__(f"Perplexity API error: {reason}")
        self.reason = reason


class StorageError(PerplexityMCPError):
    """Raised when the session store cannot complete an operation."""


class ConfigurationError(PerplexityMCPError):
    """Raised at startup when required settings are missing or invalid."""
