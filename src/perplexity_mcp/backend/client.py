"""Language-model backend: the narrow ``generate()`` contract and its litellm implementation."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable

import structlog

from perplexity_mcp.errors import BackendError
from perplexity_mcp.models.config import BackendConfig
from perplexity_mcp.models.conversation import BackendReply, ChatMessage

NO_CONTENT_REASON = "No content in response from Perplexity API"


@runtime_checkable
class AIBackendClient(Protocol):
    """Anything that turns an ordered role-tagged message list into generated text."""

    async def generate(self, messages: Sequence[ChatMessage]) -> BackendReply:
        """
        Generate a reply for *messages*.

        Raises:
            BackendError: On transport failure, non-success status, timeout, or
                a reply without content.
        """
        ...


class LiteLLMBackend:
    """
    ``AIBackendClient`` that calls the Perplexity chat-completions API via litellm.

    Each call is bounded by ``config.timeout_secs`` and is never retried here;
    retry policy belongs to whoever invoked the operation.

    With ``config.mock`` set (``PERPLEXITY_MCP_MOCK_LLM`` in the environment)
    every call returns a deterministic canned reply without network access.
    """

    def __init__(self, config: BackendConfig) -> None:
        self._config = config
        self._logger = structlog.get_logger("perplexity_mcp.backend")

    @property
    def model(self) -> str:
        return self._config.model

    async def generate(self, messages: Sequence[ChatMessage]) -> BackendReply:
        if not messages:
            raise BackendError("cannot generate a reply for an empty message list")

        if self._config.mock:
            return self._mock_reply(messages)

        timeout = self._config.timeout_secs
        try:
            response = await asyncio.wait_for(self._complete(messages), timeout=timeout)
        except TimeoutError as exc:
            self._logger.warning("backend_timeout", model=self.model, timeout_secs=timeout)
            raise BackendError("timeout") from exc
        except Exception as exc:
            reason = _reason(exc)
            self._logger.warning("backend_call_failed", model=self.model, error=reason)
            raise BackendError(reason) from exc

        reply = _extract_reply(response)
        self._logger.debug(
            "backend_reply",
            model=reply.model or self.model,
            message_count=len(messages),
            finish_reason=reply.finish_reason,
        )
        return reply

    async def _complete(self, messages: Sequence[ChatMessage]) -> Any:
        import litellm

        call_kwargs: dict[str, Any] = {
            "model": self._config.model,
            "messages": [m.as_dict() for m in messages],
            "api_base": self._config.api_base,
            "timeout": self._config.timeout_secs,
            "num_retries": 0,
        }
        if self._config.api_key is not None:
            call_kwargs["api_key"] = self._config.api_key.get_secret_value()
        if self._config.max_tokens is not None:
            call_kwargs["max_tokens"] = self._config.max_tokens
        try:
            return await litellm.acompletion(**call_kwargs)
        except litellm.Timeout as exc:
            # Provider-side timeouts are reported the same way as our own bound
            raise TimeoutError(str(exc)) from exc

    def _mock_reply(self, messages: Sequence[ChatMessage]) -> BackendReply:
        last_user = next((m.content for m in reversed(messages) if m.role == "user"), "")
        text = (
            f"[Mock Perplexity response to: {last_user[:100]}]\n"
            f"Context contained {len(messages)} message(s). "
            "Disable mock mode and provide PERPLEXITY_API_KEY to use the real API."
        )
        return BackendReply(content=text, model="mock", finish_reason="stop")


def _extract_reply(response: Any) -> BackendReply:
    """Pull generated text out of a chat-completions response."""
    choices = getattr(response, "choices", None) or []
    message = getattr(choices[0], "message", None) if choices else None
    content = getattr(message, "content", None) if message is not None else None
    if not isinstance(content, str) or not content.strip():
        raise BackendError(NO_CONTENT_REASON)
    return BackendReply(
        content=content,
        model=getattr(response, "model", None),
        finish_reason=getattr(choices[0], "finish_reason", None),
    )


def _reason(exc: BaseException) -> str:
    """Human-readable cause of a provider exception."""
    message = getattr(exc, "message", None)
    if isinstance(message, str) and message:
        return message
    return str(exc) or type(exc).__name__
