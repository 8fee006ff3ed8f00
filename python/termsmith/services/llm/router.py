"""LLM router for adapter selection and error normalization.

- Resolves adapter based on provider name
- Checks feature flags for provider availability
- Wraps adapter streams with error normalization (one place, not per adapter)
- Emits llm.request.started / llm.request.finished / llm.request.failed events,
  all through safe_kv() so prompt and response text never reach the logs

Error handling:
- Provider 401/403 -> E_LLM_INVALID_KEY
- Provider 429 -> E_LLM_RATE_LIMIT
- Timeout -> E_LLM_TIMEOUT
- Context too large -> E_LLM_CONTEXT_TOO_LARGE
- Other -> E_LLM_PROVIDER_DOWN
"""

import time
from collections.abc import AsyncIterator

import httpx

from termsmith.logging import get_logger
from termsmith.services.llm.adapter import LLMAdapter
from termsmith.services.llm.errors import LLMError, LLMErrorClass, classify_provider_error
from termsmith.services.llm.gemini_adapter import GeminiAdapter
from termsmith.services.llm.openai_adapter import OpenAIAdapter
from termsmith.services.llm.types import LLMChunk, LLMRequest
from termsmith.services.redact import safe_kv

logger = get_logger(__name__)


class LLMRouter:
    """Routes streaming LLM requests to provider adapters."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        enable_openai: bool = True,
        enable_gemini: bool = True,
    ):
        """Initialize router with shared HTTP client and feature flags.

        Args:
            client: Shared httpx.AsyncClient for connection pooling.
            enable_openai: Whether OpenAI provider is enabled.
            enable_gemini: Whether Gemini provider is enabled.
        """
        self._feature_flags = {
            "openai": enable_openai,
            "gemini": enable_gemini,
        }
        self._adapters: dict[str, LLMAdapter] = {
            "openai": OpenAIAdapter(client),
            "gemini": GeminiAdapter(client),
        }

    def resolve_adapter(self, provider: str) -> LLMAdapter:
        """Get adapter for provider, checking feature flags.

        Raises:
            LLMError: If provider is unknown or disabled.
        """
        if provider not in self._adapters:
            raise LLMError(
                LLMErrorClass.MODEL_NOT_AVAILABLE,
                f"Unknown provider: {provider}",
                provider=provider,
            )

        if not self.is_provider_available(provider):
            raise LLMError(
                LLMErrorClass.MODEL_NOT_AVAILABLE,
                f"Provider {provider} is disabled",
                provider=provider,
            )

        return self._adapters[provider]

    def is_provider_available(self, provider: str) -> bool:
        """True if provider exists and is enabled."""
        return provider in self._adapters and self._feature_flags.get(provider, False)

    async def generate_stream(
        self,
        provider: str,
        req: LLMRequest,
        api_key: str,
        *,
        timeout_s: float | None = None,
        chat_id: str | None = None,
    ) -> AsyncIterator[LLMChunk]:
        """Streaming LLM generation with error normalization.

        Args:
            provider: Provider name ("openai" or "gemini").
            req: The LLM request.
            api_key: API key for the provider.
            timeout_s: Per-read timeout in seconds, None for no read timeout.
            chat_id: Conversation id, logged for correlation.

        Yields:
            LLMChunk objects until terminal chunk (done=True).

        Raises:
            LLMError: With normalized error class on failure.
        """
        adapter = self.resolve_adapter(provider)
        base = {"provider": provider, "model_name": req.model_name, "chat_id": chat_id}

        logger.info(
            "llm.request.started",
            **safe_kv(
                **base,
                message_chars=sum(len(m.content) for m in req.messages),
                num_turns=len(req.messages),
            ),
        )

        start = time.monotonic()

        def _failed(error_class: LLMErrorClass, **extra) -> None:
            logger.error(
                "llm.request.failed",
                **safe_kv(
                    **base,
                    outcome="error",
                    error_class=error_class.value,
                    latency_ms=int((time.monotonic() - start) * 1000),
                    **extra,
                ),
            )

        try:
            async for chunk in adapter.generate_stream(req, api_key=api_key, timeout_s=timeout_s):
                if chunk.done:
                    usage = chunk.usage
                    logger.info(
                        "llm.request.finished",
                        **safe_kv(
                            **base,
                            outcome="success",
                            latency_ms=int((time.monotonic() - start) * 1000),
                            tokens_input=usage.prompt_tokens if usage else None,
                            tokens_output=usage.completion_tokens if usage else None,
                            tokens_total=usage.total_tokens if usage else None,
                            provider_request_id=chunk.provider_request_id,
                        ),
                    )
                yield chunk

        except httpx.TimeoutException as e:
            _failed(LLMErrorClass.TIMEOUT)
            raise LLMError(LLMErrorClass.TIMEOUT, "Stream timed out", provider=provider) from e

        except httpx.HTTPStatusError as e:
            json_body = await self._safe_parse_json(e.response)
            error_class = classify_provider_error(provider, e.response.status_code, json_body, None)
            _failed(error_class, status_code=e.response.status_code)
            raise LLMError(
                error_class,
                f"Provider returned HTTP {e.response.status_code}",
                provider=provider,
            ) from e

        except httpx.NetworkError as e:
            _failed(LLMErrorClass.PROVIDER_DOWN)
            raise LLMError(
                LLMErrorClass.PROVIDER_DOWN,
                "Network error during stream",
                provider=provider,
            ) from e

        except LLMError as e:
            _failed(e.error_class)
            raise

        except Exception as e:
            _failed(LLMErrorClass.PROVIDER_DOWN)
            raise LLMError(
                LLMErrorClass.PROVIDER_DOWN,
                f"Unexpected stream error: {type(e).__name__}",
                provider=provider,
            ) from e

    async def _safe_parse_json(self, response: httpx.Response) -> dict | None:
        """Parse the error body of a streamed response, None when it is not JSON."""
        try:
            await response.aread()
            return response.json()
        except (httpx.HTTPError, httpx.StreamError, ValueError):
            return None
