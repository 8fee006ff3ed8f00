"""Tests for application configuration."""

import pytest
from pydantic import ValidationError

from termsmith.config import Environment, Settings, get_settings
from tests.helpers import TEST_AUTH_SECRET


def _make_settings(**overrides) -> Settings:
    """Build a Settings instance with test defaults + overrides."""
    defaults = {
        "DATABASE_URL": "postgresql+psycopg://localhost/test",
        "TERMSMITH_ENV": "test",
        "AUTH_SECRET": TEST_AUTH_SECRET,
    }
    defaults.update(overrides)
    return Settings(**defaults)


class TestSettingsDefaults:
    def test_chat_relay_defaults(self):
        s = _make_settings()
        assert s.chat_context_messages == 10
        assert s.chat_max_output_tokens == 32768
        assert s.chat_temperature == 0.0
        assert s.chat_disconnect_debounce_ms == 300
        assert s.llm_read_timeout_s is None

    def test_providers_enabled_by_default(self):
        s = _make_settings()
        assert s.enable_openai is True
        assert s.enable_gemini is True

    def test_environment_parsed(self):
        assert _make_settings(TERMSMITH_ENV="prod").termsmith_env == Environment.PROD

    def test_debounce_in_seconds(self):
        assert _make_settings(CHAT_DISCONNECT_DEBOUNCE_MS=250).disconnect_debounce_seconds == 0.25


class TestSettingsValidation:
    def test_short_auth_secret_rejected(self):
        with pytest.raises(ValidationError, match="AUTH_SECRET"):
            _make_settings(AUTH_SECRET="too-short")

    def test_negative_context_messages_rejected(self):
        with pytest.raises(ValidationError, match="CHAT_CONTEXT_MESSAGES"):
            _make_settings(CHAT_CONTEXT_MESSAGES=-1)

    def test_negative_debounce_rejected(self):
        with pytest.raises(ValidationError, match="CHAT_DISCONNECT_DEBOUNCE_MS"):
            _make_settings(CHAT_DISCONNECT_DEBOUNCE_MS=-5)

    def test_unknown_environment_rejected(self):
        with pytest.raises(ValidationError):
            _make_settings(TERMSMITH_ENV="qa")


class TestProviderApiKey:
    def test_keys_by_provider(self):
        s = _make_settings(OPENAI_API_KEY="sk-o", GEMINI_API_KEY="g-key")
        assert s.provider_api_key("openai") == "sk-o"
        assert s.provider_api_key("gemini") == "g-key"

    def test_unknown_provider_has_no_key(self):
        assert _make_settings().provider_api_key("anthropic") is None


class TestGetSettings:
    def test_reads_environment(self, test_env):
        assert get_settings().database_url == test_env

    def test_cached(self):
        assert get_settings() is get_settings()
