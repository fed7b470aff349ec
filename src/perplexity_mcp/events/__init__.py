"""perplexity-mcp event system."""

from perplexity_mcp.events.bus import EventBus, Handler, ServerEvent

__all__ = ["EventBus", "Handler", "ServerEvent"]
