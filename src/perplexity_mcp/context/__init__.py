"""Context assembly."""

from perplexity_mcp.context.policy import (
    ContextPolicy,
    FullHistoryPolicy,
    SlidingWindowPolicy,
    TokenBudgetPolicy,
    build_policy,
)

__all__ = [
    "ContextPolicy",
    "FullHistoryPolicy",
    "SlidingWindowPolicy",
    "TokenBudgetPolicy",
    "build_policy",
]
