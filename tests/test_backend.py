"""Tests for LiteLLMBackend. litellm itself is replaced by fakes; no network."""

from __future__ import annotations

import asyncio
from types import SimpleNamespace

import litellm
import pytest

from perplexity_mcp.backend.client import (
    NO_CONTENT_REASON,
    AIBackendClient,
    LiteLLMBackend,
)
from perplexity_mcp.errors import BackendError
from perplexity_mcp.models.config import BackendConfig, Settings
from perplexity_mcp.models.conversation import ChatMessage


def _response(content, *, model="sonar-reasoning-pro", finish_reason="stop"):
    message = SimpleNamespace(content=content)
    choice = SimpleNamespace(message=message, finish_reason=finish_reason)
    return SimpleNamespace(choices=[choice], model=model)


@pytest.fixture
def messages():
    return [
        ChatMessage(role="user", content="hello"),
        ChatMessage(role="assistant", content="hi"),
        ChatMessage(role="user", content="what's new?"),
    ]


class TestLiteLLMBackend:
    def test_satisfies_protocol(self):
        assert isinstance(LiteLLMBackend(BackendConfig()), AIBackendClient)

    async def test_success_returns_content_verbatim(self, monkeypatch, messages):
        captured = {}

        async def fake_acompletion(**kwargs):
            captured.update(kwargs)
            return _response("  **answer**\n")

        monkeypatch.setattr(litellm, "acompletion", fake_acompletion)
        backend = LiteLLMBackend(BackendConfig(api_key="pplx-test", timeout_secs=12))

        reply = await backend.generate(messages)

        assert reply.content == "  **answer**\n"
        assert reply.finish_reason == "stop"
        assert captured["model"] == "perplexity/sonar-reasoning-pro"
        assert captured["messages"] == [m.as_dict() for m in messages]
        assert captured["api_key"] == "pplx-test"
        assert captured["timeout"] == 12
        assert captured["num_retries"] == 0
        assert "max_tokens" not in captured

    async def test_max_tokens_passed_when_configured(self, monkeypatch, messages):
        captured = {}

        async def fake_acompletion(**kwargs):
            captured.update(kwargs)
            return _response("ok")

        monkeypatch.setattr(litellm, "acompletion", fake_acompletion)
        await LiteLLMBackend(BackendConfig(max_tokens=256)).generate(messages)
        assert captured["max_tokens"] == 256
        assert "api_key" not in captured

    @pytest.mark.parametrize("content", [None, "", "   \n"])
    async def test_missing_content_is_backend_error(self, monkeypatch, messages, content):
        async def fake_acompletion(**kwargs):
            return _response(content)

        monkeypatch.setattr(litellm, "acompletion", fake_acompletion)
        with pytest.raises(BackendError) as exc_info:
            await LiteLLMBackend(BackendConfig()).generate(messages)
        assert exc_info.value.reason == NO_CONTENT_REASON

    async def test_no_choices_is_backend_error(self, monkeypatch, messages):
        async def fake_acompletion(**kwargs):
            return SimpleNamespace(choices=[], model="x")

        monkeypatch.setattr(litellm, "acompletion", fake_acompletion)
        with pytest.raises(BackendError, match="No content"):
            await LiteLLMBackend(BackendConfig()).generate(messages)

    async def test_provider_exception_is_backend_error(self, monkeypatch, messages):
        async def fake_acompletion(**kwargs):
            raise RuntimeError("401 Unauthorized")

        monkeypatch.setattr(litellm, "acompletion", fake_acompletion)
        with pytest.raises(BackendError) as exc_info:
            await LiteLLMBackend(BackendConfig()).generate(messages)
        assert exc_info.value.reason == "401 Unauthorized"
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    async def test_slow_call_times_out(self, monkeypatch, messages):
        async def slow_acompletion(**kwargs):
            await asyncio.sleep(100)

        monkeypatch.setattr(litellm, "acompletion", slow_acompletion)
        backend = LiteLLMBackend(BackendConfig(timeout_secs=0.01))
        with pytest.raises(BackendError) as exc_info:
            await backend.generate(messages)
        assert exc_info.value.reason == "timeout"

    async def test_empty_message_list_rejected(self):
        with pytest.raises(BackendError):
            await LiteLLMBackend(BackendConfig()).generate([])

    async def test_mock_mode_needs_no_network(self, monkeypatch, messages):
        async def must_not_be_called(**kwargs):
            raise AssertionError("litellm called in mock mode")

        monkeypatch.setattr(litellm, "acompletion", must_not_be_called)

        reply = await LiteLLMBackend(BackendConfig(mock=True)).generate(messages)
        assert "what's new?" in reply.content
        assert reply.model == "mock"

    @pytest.mark.parametrize("value", ["1", "true", "yes"])
    async def test_mock_setting_reaches_backend(self, monkeypatch, tmp_path, messages, value):
        """Whatever the settings accept as mock mode also keeps the backend offline."""

        async def must_not_be_called(**kwargs):
            raise AssertionError("litellm called in mock mode")

        monkeypatch.setattr(litellm, "acompletion", must_not_be_called)
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("PERPLEXITY_API_KEY", raising=False)
        monkeypatch.setenv("PERPLEXITY_MCP_MOCK_LLM", value)

        settings = Settings()
        settings.require_api_key()
        reply = await LiteLLMBackend(settings.to_config().backend).generate(messages)
        assert reply.model == "mock"

    async def test_mock_setting_from_dotenv_reaches_backend(self, monkeypatch, tmp_path, messages):
        async def must_not_be_called(**kwargs):
            raise AssertionError("litellm called in mock mode")

        monkeypatch.setattr(litellm, "acompletion", must_not_be_called)
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("PERPLEXITY_API_KEY", raising=False)
        monkeypatch.delenv("PERPLEXITY_MCP_MOCK_LLM", raising=False)
        (tmp_path / ".env").write_text("PERPLEXITY_MCP_MOCK_LLM=1\n")

        reply = await LiteLLMBackend(Settings().to_config().backend).generate(messages)
        assert reply.model == "mock"
