"""perplexity-mcp persistence layer."""

from perplexity_mcp.store.sessions import Session, SessionStore

__all__ = [
    "Session",
    "SessionStore",
]
