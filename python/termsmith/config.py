"""Application settings loaded from environment variables.

Environment Configuration:
    TERMSMITH_ENV: Deployment environment (local | test | staging | prod)
    DATABASE_URL: SQLAlchemy connection string (required)
    AUTH_SECRET: HS256 secret used to sign session tokens (required, >= 32 chars)

Provider Configuration:
    OPENAI_API_KEY / GEMINI_API_KEY: Platform keys for the LLM providers
    ENABLE_OPENAI / ENABLE_GEMINI: Provider feature flags

Chat Relay Configuration:
    CHAT_CONTEXT_MESSAGES: Prior messages sent to the model (default 10)
    CHAT_MAX_OUTPUT_TOKENS: Completion token ceiling
    CHAT_TEMPERATURE: Sampling temperature
    CHAT_DISCONNECT_DEBOUNCE_MS: Delay between a dropped inbound connection
        and cancellation of the in-flight generation
    LLM_READ_TIMEOUT_S: Per-read provider timeout. Unset means no timeout;
        there is no watchdog on the overall stream.
"""

from enum import Enum
from functools import lru_cache
from typing import Annotated

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

MIN_AUTH_SECRET_LENGTH = 32


class Environment(str, Enum):
    """Valid deployment environments."""

    LOCAL = "local"
    TEST = "test"
    STAGING = "staging"
    PROD = "prod"


class Settings(BaseSettings):
    """Application configuration.

    Settings are loaded from environment variables.
    Validation rules:
    - DATABASE_URL is always required
    - AUTH_SECRET is always required and must be at least 32 characters
    """

    termsmith_env: Environment = Field(default=Environment.LOCAL, alias="TERMSMITH_ENV")
    database_url: Annotated[str, Field(alias="DATABASE_URL")]
    auth_secret: Annotated[str, Field(alias="AUTH_SECRET")]
    session_ttl_seconds: int = Field(default=30 * 24 * 3600, alias="SESSION_TTL_SECONDS")

    # Platform API keys for LLM providers (optional)
    openai_api_key: str | None = Field(default=None, alias="OPENAI_API_KEY")
    gemini_api_key: str | None = Field(default=None, alias="GEMINI_API_KEY")

    # Provider feature flags
    enable_openai: bool = Field(default=True, alias="ENABLE_OPENAI")
    enable_gemini: bool = Field(default=True, alias="ENABLE_GEMINI")

    # Chat relay tuning
    chat_context_messages: int = Field(default=10, alias="CHAT_CONTEXT_MESSAGES")
    chat_max_output_tokens: int = Field(default=32768, alias="CHAT_MAX_OUTPUT_TOKENS")
    chat_temperature: float = Field(default=0.0, alias="CHAT_TEMPERATURE")
    chat_disconnect_debounce_ms: int = Field(default=300, alias="CHAT_DISCONNECT_DEBOUNCE_MS")
    llm_read_timeout_s: float | None = Field(default=None, alias="LLM_READ_TIMEOUT_S")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @model_validator(mode="after")
    def validate_required_settings(self) -> "Settings":
        """Reject weak session secrets and nonsensical tuning values."""
        if len(self.auth_secret) < MIN_AUTH_SECRET_LENGTH:
            raise ValueError(
                f"AUTH_SECRET must be at least {MIN_AUTH_SECRET_LENGTH} characters, "
                f"got {len(self.auth_secret)}"
            )

        if self.chat_context_messages < 0:
            raise ValueError("CHAT_CONTEXT_MESSAGES must not be negative")

        if self.chat_disconnect_debounce_ms < 0:
            raise ValueError("CHAT_DISCONNECT_DEBOUNCE_MS must not be negative")

        return self

    @property
    def disconnect_debounce_seconds(self) -> float:
        """Disconnect debounce expressed in seconds for loop.call_later."""
        return self.chat_disconnect_debounce_ms / 1000

    def provider_api_key(self, provider: str) -> str | None:
        """Return the platform API key configured for a provider."""
        if provider == "openai":
            return self.openai_api_key
        if provider == "gemini":
            return self.gemini_api_key
        return None


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If required settings are missing or invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache. Useful for testing."""
    get_settings.cache_clear()
