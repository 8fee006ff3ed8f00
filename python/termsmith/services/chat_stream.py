"""Model stream adapter for the chat relay.

Turns a user message plus the conversation's prior message log into a
provider request, drives the provider token stream, and forwards each token to
a caller-supplied callback in provider order.

Behavior:
- First message of a conversation: one user turn carrying the system
  instruction, a blank line, then the user's message.
- Later messages: the prior log converted to user/model turns, truncated to
  the most recent CHAT_CONTEXT_MESSAGES, then the bare user message.
- Cancellation is cooperative. A cancel signalled before the stream starts
  returns an empty result without calling the provider; a cancel mid-stream
  abandons the pending provider read, closes the provider stream and returns
  what was forwarded so far. Neither is an error.
- Provider failures never escape. The fixed fallback apology is forwarded
  through the same callback and the result is tagged "fallback", so the text
  the client saw and the text persisted are the same.

Token counts are estimates (ceil(chars / 4)) and are only logged.
"""

import asyncio
import math
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker
from starlette.concurrency import run_in_threadpool

from termsmith.config import Settings
from termsmith.logging import get_logger
from termsmith.services.chat_history import (
    RESPONSE_KIND_FALLBACK,
    RESPONSE_KIND_NORMAL,
    entry_text,
    load_previous_messages,
)
from termsmith.services.controller_registry import CancellationHandle
from termsmith.services.llm import LLMError, LLMRequest, LLMRouter, Turn, compose_first_message
from termsmith.services.redact import safe_kv

logger = get_logger(__name__)

FALLBACK_RESPONSE = "I'm sorry, I couldn't understand that. Could you please rephrase?"

MODEL_PROVIDERS: dict[str, str] = {
    "gpt-4o-mini": "openai",
    "gemini-2.5-flash-lite": "gemini",
}

# Provider-side completion ceilings; CHAT_MAX_OUTPUT_TOKENS is clamped to these.
MODEL_MAX_OUTPUT_TOKENS: dict[str, int] = {
    "gpt-4o-mini": 16384,
    "gemini-2.5-flash-lite": 65536,
}

_TURN_ROLES = frozenset({"user", "model"})

TokenCallback = Callable[[str], Awaitable[None]]


class ChatStreamSetupError(Exception):
    """The stream could not be started (unknown model, missing provider key)."""


@dataclass(frozen=True)
class EstimatedTokenUsage:
    """Character-based token estimate. Not provider-reported usage."""

    input: int
    output: int

    @property
    def total(self) -> int:
        return self.input + self.output


@dataclass(frozen=True)
class ChatResult:
    response_text: str
    billable_tokens: EstimatedTokenUsage
    kind: str
    cancelled: bool


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / 4)


def build_turns(
    *,
    system_prompt: str,
    user_message: str,
    previous_messages: list[dict[str, Any]],
    context_messages: int,
) -> list[Turn]:
    """Message sequence sent to the provider for one user message."""
    if not previous_messages:
        return [Turn(role="user", content=compose_first_message(system_prompt, user_message))]

    history = [
        Turn(role=entry["role"], content=entry_text(entry))
        for entry in previous_messages
        if entry.get("role") in _TURN_ROLES
    ]
    history = history[-context_messages:] if context_messages > 0 else []
    return [*history, Turn(role="user", content=user_message)]


async def stream_chat(
    *,
    router: LLMRouter,
    settings: Settings,
    provider: str,
    api_key: str,
    model: str,
    system_prompt: str,
    chat_id: str,
    user_message: str,
    previous_messages: list[dict[str, Any]],
    on_token: TokenCallback,
    cancel_handle: CancellationHandle,
) -> ChatResult:
    """Stream one model answer through on_token.

    Returns:
        ChatResult whose response_text is exactly the concatenation of every
        token passed to on_token.
    """
    turns = build_turns(
        system_prompt=system_prompt,
        user_message=user_message,
        previous_messages=previous_messages,
        context_messages=settings.chat_context_messages,
    )
    input_tokens = sum(estimate_tokens(turn.content) for turn in turns)
    emitted: list[str] = []

    def _result(kind: str, cancelled: bool) -> ChatResult:
        return ChatResult(
            response_text="".join(emitted),
            billable_tokens=EstimatedTokenUsage(
                input=input_tokens,
                output=sum(estimate_tokens(token) for token in emitted),
            ),
            kind=kind,
            cancelled=cancelled,
        )

    if cancel_handle.cancelled:
        logger.info("chat.stream.cancelled_before_start", chat_id=chat_id)
        return _result(RESPONSE_KIND_NORMAL, cancelled=True)

    request = LLMRequest(
        model_name=model,
        messages=turns,
        max_tokens=min(
            settings.chat_max_output_tokens,
            MODEL_MAX_OUTPUT_TOKENS.get(model, settings.chat_max_output_tokens),
        ),
        temperature=settings.chat_temperature,
    )

    async def _forward_tokens() -> None:
        async for chunk in router.generate_stream(
            provider,
            request,
            api_key,
            timeout_s=settings.llm_read_timeout_s,
            chat_id=chat_id,
        ):
            if chunk.delta_text:
                await on_token(chunk.delta_text)
                emitted.append(chunk.delta_text)

    forward = asyncio.create_task(_forward_tokens())
    cancel_wait = asyncio.create_task(cancel_handle.wait())
    interrupted = False
    try:
        await asyncio.wait({forward, cancel_wait}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        cancel_wait.cancel()
        if not forward.done():
            # Cancelling the task unwinds the provider generator and its HTTP stream.
            interrupted = True
            forward.cancel()
            await asyncio.wait({forward})

    if interrupted or forward.cancelled():
        if not forward.cancelled():
            forward.exception()  # retrieved; the cancel wins
        logger.info(
            "chat.stream.cancelled",
            **safe_kv(chat_id=chat_id, response_chars=sum(len(t) for t in emitted)),
        )
        return _result(RESPONSE_KIND_NORMAL, cancelled=True)

    error = forward.exception()
    if error is None:
        return _result(RESPONSE_KIND_NORMAL, cancelled=False)

    logger.warning(
        "chat.stream.provider_failed",
        **safe_kv(
            chat_id=chat_id,
            provider=provider,
            error_class=error.error_class.value if isinstance(error, LLMError) else "unexpected",
            error_type=type(error).__name__,
            response_chars=sum(len(t) for t in emitted),
        ),
    )
    await on_token(FALLBACK_RESPONSE)
    emitted.append(FALLBACK_RESPONSE)
    return _result(RESPONSE_KIND_FALLBACK, cancelled=False)


class ChatStreamService:
    """Resolves provider, key and history for a chat, then runs stream_chat."""

    def __init__(
        self,
        *,
        router: LLMRouter,
        settings: Settings,
        session_factory: sessionmaker[Session],
    ):
        self._router = router
        self._settings = settings
        self._session_factory = session_factory

    def _load_previous_messages(self, user_id: UUID, chat_id: str) -> list[dict[str, Any]]:
        with self._session_factory() as db:
            return load_previous_messages(db, user_id, chat_id)

    async def stream(
        self,
        *,
        chat_id: str,
        user_id: UUID,
        user_message: str,
        model: str,
        system_prompt: str,
        on_token: TokenCallback,
        cancel_handle: CancellationHandle,
    ) -> ChatResult:
        """Stream an answer for user_message in the caller's conversation.

        Raises:
            ChatStreamSetupError: If the model is unknown or its provider has
                no API key configured.
        """
        provider = MODEL_PROVIDERS.get(model)
        if provider is None:
            raise ChatStreamSetupError(f"Unsupported model: {model}")

        api_key = self._settings.provider_api_key(provider)
        if not api_key:
            raise ChatStreamSetupError(f"No API key configured for provider {provider}")

        previous_messages = await run_in_threadpool(
            self._load_previous_messages, user_id, chat_id
        )

        return await stream_chat(
            router=self._router,
            settings=self._settings,
            provider=provider,
            api_key=api_key,
            model=model,
            system_prompt=system_prompt,
            chat_id=chat_id,
            user_message=user_message,
            previous_messages=previous_messages,
            on_token=on_token,
            cancel_handle=cancel_handle,
        )
