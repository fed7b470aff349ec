"""Language-model backend clients."""

from perplexity_mcp.backend.client import AIBackendClient, LiteLLMBackend

__all__ = ["AIBackendClient", "LiteLLMBackend"]
