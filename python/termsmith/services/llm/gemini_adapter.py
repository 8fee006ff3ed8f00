"""Gemini LLM adapter implementation.

- Streaming: POST https://generativelanguage.googleapis.com/v1beta/models/{model}:streamGenerateContent?alt=sse

Auth:
- Header: x-goog-api-key: <key>
- NEVER put key in query param

Turn conversion:
- System turn -> systemInstruction.parts[0].text
- "user" and "model" roles map 1:1 onto Gemini contents
- Each turn's content -> parts: [{"text": "..."}]

Request body:
{
  "contents": [
    {"role": "user", "parts": [{"text": "..."}]},
    {"role": "model", "parts": [{"text": "..."}]}
  ],
  "generationConfig": {"maxOutputTokens": 32768, "temperature": 0}
}

Streaming:
- Each event: data: {"candidates":[{"content":{"parts":[{"text":"..."}]}}]}
- Terminal: an event whose candidate carries a finishReason
- Usage in the final event's usageMetadata
"""

import json
from collections.abc import AsyncIterator

from termsmith.services.llm.adapter import LLMAdapter
from termsmith.services.llm.errors import LLMError, LLMErrorClass
from termsmith.services.llm.types import LLMChunk, LLMRequest, LLMUsage, Turn

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"

# Finish reasons that end a stream normally. Anything else (SAFETY, RECITATION,
# ...) means the answer was cut short by the provider.
_NORMAL_FINISH_REASONS = frozenset({"STOP", "MAX_TOKENS"})


class GeminiAdapter(LLMAdapter):
    """Google Gemini adapter (streaming only)."""

    provider = "gemini"

    async def generate_stream(
        self,
        req: LLMRequest,
        *,
        api_key: str,
        timeout_s: float | None,
    ) -> AsyncIterator[LLMChunk]:
        """Streaming content generation using Server-Sent Events."""
        url = f"{GEMINI_BASE_URL}/{req.model_name}:streamGenerateContent?alt=sse"

        async with self._client.stream(
            "POST",
            url,
            headers=self._build_headers(api_key),
            json=self._build_request_body(req),
            timeout=self._timeout(timeout_s),
        ) as response:
            await self._raise_for_status(response)

            usage: LLMUsage | None = None

            async for data_str in self._iter_sse_data(response):
                try:
                    data = json.loads(data_str)
                except json.JSONDecodeError:
                    continue

                usage_metadata = data.get("usageMetadata")
                if usage_metadata:
                    usage = LLMUsage(
                        prompt_tokens=usage_metadata.get("promptTokenCount"),
                        completion_tokens=usage_metadata.get("candidatesTokenCount"),
                        total_tokens=usage_metadata.get("totalTokenCount"),
                    )

                candidates = data.get("candidates") or []
                if not candidates:
                    continue

                candidate = candidates[0]
                parts = (candidate.get("content") or {}).get("parts") or []
                delta_text = "".join(part.get("text", "") for part in parts)
                if delta_text:
                    yield LLMChunk(delta_text=delta_text, done=False)

                finish_reason = candidate.get("finishReason")
                if finish_reason is None:
                    continue
                if finish_reason not in _NORMAL_FINISH_REASONS:
                    raise LLMError(
                        LLMErrorClass.PROVIDER_DOWN,
                        f"Gemini stream stopped with finish reason {finish_reason}",
                        provider=self.provider,
                    )
                yield LLMChunk(delta_text="", done=True, usage=usage)
                return

        raise LLMError(
            LLMErrorClass.PROVIDER_DOWN,
            "Gemini stream ended without a finish reason",
            provider=self.provider,
        )

    def _build_headers(self, api_key: str) -> dict[str, str]:
        return {
            "x-goog-api-key": api_key,
            "Content-Type": "application/json",
        }

    def _build_request_body(self, req: LLMRequest) -> dict:
        system_prompt = None
        contents = []

        for turn in req.messages:
            if turn.role == "system":
                system_prompt = turn.content
            else:
                contents.append(self._turn_to_content(turn))

        generation_config: dict = {"maxOutputTokens": req.max_tokens}
        if req.temperature is not None:
            generation_config["temperature"] = req.temperature

        body: dict = {"contents": contents, "generationConfig": generation_config}
        if system_prompt:
            body["systemInstruction"] = {"parts": [{"text": system_prompt}]}

        return body

    def _turn_to_content(self, turn: Turn) -> dict:
        return {
            "role": turn.role,
            "parts": [{"text": turn.content}],
        }
