"""OpenAI LLM adapter implementation.

- Endpoint: POST https://api.openai.com/v1/chat/completions
- Headers: Authorization: Bearer <key>, Content-Type: application/json
- Streaming: Server-Sent Events with data: {...} format
- Terminal event: data: [DONE]
- Usage arrives in a final chunk with empty choices (stream_options.include_usage)

Request body:
{
  "model": "<model_name>",
  "messages": [
    {"role": "user", "content": "..."},
    {"role": "assistant", "content": "..."}
  ],
  "max_tokens": 1024,
  "temperature": 0,
  "stream": true,
  "stream_options": {"include_usage": true}
}
"""

import json
from collections.abc import AsyncIterator

from termsmith.services.llm.adapter import LLMAdapter
from termsmith.services.llm.errors import LLMError, LLMErrorClass
from termsmith.services.llm.types import LLMChunk, LLMRequest, LLMUsage, Turn

OPENAI_CHAT_URL = "https://api.openai.com/v1/chat/completions"

# The message log says "model"; OpenAI says "assistant".
_ROLE_MAP = {"system": "system", "user": "user", "model": "assistant"}


class OpenAIAdapter(LLMAdapter):
    """OpenAI chat completions adapter (streaming only)."""

    provider = "openai"

    async def generate_stream(
        self,
        req: LLMRequest,
        *,
        api_key: str,
        timeout_s: float | None,
    ) -> AsyncIterator[LLMChunk]:
        """Streaming chat completion using Server-Sent Events."""
        async with self._client.stream(
            "POST",
            OPENAI_CHAT_URL,
            headers=self._build_headers(api_key),
            json=self._build_request_body(req),
            timeout=self._timeout(timeout_s),
        ) as response:
            await self._raise_for_status(response)

            provider_request_id = response.headers.get("x-request-id")
            usage: LLMUsage | None = None

            async for data_str in self._iter_sse_data(response):
                if data_str == "[DONE]":
                    yield LLMChunk(
                        delta_text="",
                        done=True,
                        usage=usage,
                        provider_request_id=provider_request_id,
                    )
                    return

                try:
                    data = json.loads(data_str)
                except json.JSONDecodeError:
                    continue

                usage_data = data.get("usage")
                if usage_data:
                    usage = LLMUsage(
                        prompt_tokens=usage_data.get("prompt_tokens"),
                        completion_tokens=usage_data.get("completion_tokens"),
                        total_tokens=usage_data.get("total_tokens"),
                    )

                choices = data.get("choices") or []
                if not choices:
                    continue

                delta_text = (choices[0].get("delta") or {}).get("content") or ""
                if delta_text:
                    yield LLMChunk(delta_text=delta_text, done=False)

        raise LLMError(
            LLMErrorClass.PROVIDER_DOWN,
            "OpenAI stream ended without [DONE] marker",
            provider=self.provider,
        )

    def _build_headers(self, api_key: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    def _build_request_body(self, req: LLMRequest) -> dict:
        body: dict = {
            "model": req.model_name,
            "messages": [self._turn_to_message(turn) for turn in req.messages],
            "max_tokens": req.max_tokens,
            "stream": True,
            "stream_options": {"include_usage": True},
        }

        if req.temperature is not None:
            body["temperature"] = req.temperature

        return body

    def _turn_to_message(self, turn: Turn) -> dict[str, str]:
        return {
            "role": _ROLE_MAP[turn.role],
            "content": turn.content,
        }
