"""
perplexity-mcp: Perplexity AI tools served over the Model Context Protocol.

Programmatic use::

    from perplexity_mcp import PerplexityMCPConfig, open_runtime

    async with open_runtime(PerplexityMCPConfig.from_env()) as runtime:
        envelope = await runtime.dispatcher.invoke("search", {"query": "asyncio TaskGroup"})
        print(envelope.text)
"""

__version__ = "0.1.0"

from perplexity_mcp.backend.client import AIBackendClient, LiteLLMBackend
from perplexity_mcp.context.policy import (
    ContextPolicy,
    FullHistoryPolicy,
    SlidingWindowPolicy,
    TokenBudgetPolicy,
)
from perplexity_mcp.conversation import ConversationService, make_session_id
from perplexity_mcp.dispatch import Dispatcher
from perplexity_mcp.errors import (
    BackendError,
    ConfigurationError,
    InvalidArgumentsError,
    PerplexityMCPError,
    StorageError,
    UnknownOperationError,
)
from perplexity_mcp.events.bus import EventBus, ServerEvent
from perplexity_mcp.models import (
    BackendConfig,
    BackendReply,
    ChatMessage,
    ChatResult,
    ContextConfig,
    OperationDescriptor,
    PerplexityMCPConfig,
    ResultEnvelope,
    StoreConfig,
    Turn,
)
from perplexity_mcp.server import Runtime, build_server, open_runtime, serve
from perplexity_mcp.store import Session, SessionStore

__all__ = [
    # Core
    "Dispatcher",
    "ConversationService",
    "make_session_id",
    "SessionStore",
    "Session",
    # Backend
    "AIBackendClient",
    "LiteLLMBackend",
    # Context
    "ContextPolicy",
    "FullHistoryPolicy",
    "SlidingWindowPolicy",
    "TokenBudgetPolicy",
    # Config
    "PerplexityMCPConfig",
    "StoreConfig",
    "BackendConfig",
    "ContextConfig",
    # Models
    "Turn",
    "ChatMessage",
    "ChatResult",
    "BackendReply",
    "OperationDescriptor",
    "ResultEnvelope",
    # Errors
    "PerplexityMCPError",
    "InvalidArgumentsError",
    "UnknownOperationError",
    "BackendError",
    "StorageError",
    "ConfigurationError",
    # Events
    "EventBus",
    "ServerEvent",
    # Server
    "Runtime",
    "open_runtime",
    "build_server",
    "serve",
]
