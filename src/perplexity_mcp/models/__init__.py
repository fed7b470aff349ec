"""perplexity-mcp data models."""

from perplexity_mcp.models.config import (
    BackendConfig,
    ContextConfig,
    PerplexityMCPConfig,
    Settings,
    StoreConfig,
)
from perplexity_mcp.models.conversation import (
    ROLES,
    BackendReply,
    ChatMessage,
    ChatResult,
    OperationDescriptor,
    ResultEnvelope,
    Role,
    Turn,
)

__all__ = [
    # Config
    "BackendConfig",
    "ContextConfig",
    "PerplexityMCPConfig",
    "Settings",
    "StoreConfig",
    # Conversation
    "ROLES",
    "Role",
    "Turn",
    "ChatMessage",
    "ChatResult",
    "BackendReply",
    # Dispatch
    "OperationDescriptor",
    "ResultEnvelope",
]
