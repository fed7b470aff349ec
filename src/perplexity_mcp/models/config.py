"""Configuration models for the perplexity-mcp server and its components."""

from __future__ import annotations

from typing import Literal

from pydantic import AliasChoices, BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from perplexity_mcp.errors import ConfigurationError


class StoreConfig(BaseModel):
    """Configuration for the SQLite persistence layer."""

    db_path: str = Field(
        default="~/.perplexity-mcp/chat_history.db",
        description="Path to the SQLite database file. ~ is expanded at runtime.",
    )

    wal_mode: bool = True
    """Use WAL journal mode for better concurrent read performance."""

    connection_timeout: float = Field(default=30.0, gt=0)
    """Seconds SQLite waits on a locked database before raising."""


class BackendConfig(BaseModel):
    """Configuration for the language-model backend."""

    model: str = Field(
        default="perplexity/sonar-reasoning-pro",
        description="Model string in litellm format.",
    )

    api_key: SecretStr | None = Field(
        default=None,
        description="Perplexity API key. Required unless mock mode is enabled.",
    )

    api_base: str = "https://api.perplexity.ai"
    """Base URL of the chat-completions endpoint."""

    timeout_secs: float = Field(
        default=30.0,
        gt=0,
        le=600,
        description="Upper bound on a single backend call. Expiry fails fast with a timeout.",
    )

    max_tokens: int | None = Field(
        default=None,
        ge=1,
        description="Optional cap on generated tokens. None = provider default.",
    )

    mock: bool = False
    """Return canned replies without network access. No API key is needed."""


class ContextConfig(BaseModel):
    """How much stored history is replayed to the backend on each chat turn."""

    strategy: Literal["full", "window", "token_budget"] = "full"
    """``full`` replays every turn; the others keep only the most recent turns."""

    max_turns: int = Field(
        default=40,
        ge=1,
        description="Turn limit for the ``window`` strategy.",
    )

    max_tokens: int = Field(
        default=100_000,
        ge=256,
        description="Estimated token limit for the ``token_budget`` strategy.",
    )


class PerplexityMCPConfig(BaseModel):
    """
    Top-level configuration for a perplexity-mcp server.

    All sub-configs have sensible defaults and can be overridden individually.

    Example::

        config = PerplexityMCPConfig(
            backend=BackendConfig(model="perplexity/sonar-pro", timeout_secs=60),
            context=ContextConfig(strategy="window", max_turns=20),
        )
    """

    server_name: str = "perplexity-server"
    store: StoreConfig = Field(default_factory=StoreConfig)
    backend: BackendConfig = Field(default_factory=BackendConfig)
    context: ContextConfig = Field(default_factory=ContextConfig)

    @classmethod
    def default(cls) -> PerplexityMCPConfig:
        """Return a config instance with all defaults."""
        return cls()

    @classmethod
    def from_env(cls) -> PerplexityMCPConfig:
        """Build a config from environment variables (and ``.env``) via :class:`Settings`."""
        return Settings().to_config()


class Settings(BaseSettings):
    """
    Environment-driven settings.

    Every field reads ``PERPLEXITY_MCP_<FIELD>``; the API key is also read from
    the unprefixed ``PERPLEXITY_API_KEY``.
    """

    model_config = SettingsConfigDict(
        env_prefix="PERPLEXITY_MCP_",
        env_file=".env",
        extra="ignore",
        case_sensitive=False,
    )

    api_key: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices("PERPLEXITY_API_KEY", "PERPLEXITY_MCP_API_KEY"),
    )
    mock_llm: bool = False
    model: str = BackendConfig.model_fields["model"].default
    api_base: str = BackendConfig.model_fields["api_base"].default
    timeout_secs: float = 30.0
    db_path: str = StoreConfig.model_fields["db_path"].default
    context_strategy: Literal["full", "window", "token_budget"] = "full"
    context_max_turns: int = 40
    context_max_tokens: int = 100_000
    log_level: str = "INFO"
    log_format: Literal["json", "console"] = "console"

    def require_api_key(self) -> None:
        """
        Fail unless the backend can authenticate.

        Only the server needs this; offline commands such as ``history`` do not.

        Raises:
            ConfigurationError: If no API key is set and mock mode is off.
        """
        if self.api_key is None and not self.mock_llm:
            raise ConfigurationError("PERPLEXITY_API_KEY environment variable is required")

    def to_config(self) -> PerplexityMCPConfig:
        return PerplexityMCPConfig(
            store=StoreConfig(db_path=self.db_path),
            backend=BackendConfig(
                model=self.model,
                api_key=self.api_key,
                api_base=self.api_base,
                timeout_secs=self.timeout_secs,
                mock=self.mock_llm,
            ),
            context=ContextConfig(
                strategy=self.context_strategy,
                max_turns=self.context_max_turns,
                max_tokens=self.context_max_tokens,
            ),
        )
