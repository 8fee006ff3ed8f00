"""Chat relay: bridge one model stream onto one chunked HTTP response.

A relay owns three pieces for the lifetime of a request:

- a producer task that runs the chat stream service and pushes tokens into an
  in-order queue, then persists the turn once the stream has completed;
- the response body iterator that drains the queue into the HTTP response;
- the request's cancellation handle, registered in the controller registry.

Outcomes:
- completed: the body is closed, then the turn is appended to the chat's
  message log (fallback answers included, tagged "fallback").
- cancelled (explicit cancel, superseding request, or inbound disconnect):
  the body is closed and nothing is written.
- failed after the response opened: a short apology is written, the body is
  closed and nothing is written to the database.

An inbound disconnect is not acted on immediately. The handle is cancelled
after CHAT_DISCONNECT_DEBOUNCE_MS so a request that is finishing anyway is not
cut short.

The handle is discarded from the registry on every path. The response's
background task awaits the producer, so the ASGI call returns only after
persistence and cleanup.
"""

import asyncio
from collections.abc import AsyncIterator
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker
from starlette.background import BackgroundTask
from starlette.concurrency import run_in_threadpool
from starlette.responses import StreamingResponse

from termsmith.logging import get_logger, set_chat_id
from termsmith.services.chat_history import append_turn
from termsmith.services.chat_stream import ChatResult, ChatStreamService
from termsmith.services.controller_registry import CancellationHandle, ControllerRegistry
from termsmith.services.redact import safe_kv

logger = get_logger(__name__)

STREAM_ERROR_TEXT = "\n\nI'm sorry, an error occurred. Please try again."

STREAM_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}
STREAM_MEDIA_TYPE = "text/plain; charset=utf-8"

_END = object()

# Strong references to producers whose response was torn down before its
# background task could await them.
_running_producers: set[asyncio.Task] = set()


class ChatRelay:
    """Relay for a single POST /api/chat request."""

    def __init__(
        self,
        *,
        stream_service: ChatStreamService,
        registry: ControllerRegistry,
        session_factory: sessionmaker[Session],
        handle: CancellationHandle,
        chat_id: str,
        user_id: UUID,
        user_message: str,
        model: str,
        system_prompt: str,
        disconnect_debounce_s: float,
    ):
        self._stream_service = stream_service
        self._registry = registry
        self._session_factory = session_factory
        self._handle = handle
        self._chat_id = chat_id
        self._user_id = user_id
        self._user_message = user_message
        self._model = model
        self._system_prompt = system_prompt
        self._disconnect_debounce_s = disconnect_debounce_s

        self._queue: asyncio.Queue = asyncio.Queue()
        self._producer: asyncio.Task | None = None
        self._body_finished = False
        self._disconnect_scheduled = False

    # -------------------------------------------------------------------------
    # Producer
    # -------------------------------------------------------------------------

    async def _on_token(self, token: str) -> None:
        await self._queue.put(token)

    async def _produce(self) -> None:
        try:
            try:
                result = await self._stream_service.stream(
                    chat_id=self._chat_id,
                    user_id=self._user_id,
                    user_message=self._user_message,
                    model=self._model,
                    system_prompt=self._system_prompt,
                    on_token=self._on_token,
                    cancel_handle=self._handle,
                )
            except Exception:
                logger.exception("chat.relay.stream_failed")
                await self._queue.put(STREAM_ERROR_TEXT)
                return
            finally:
                self._queue.put_nowait(_END)

            self._log_outcome(result)
            if not result.cancelled:
                await run_in_threadpool(self._persist, result)
        finally:
            self._registry.discard(self._chat_id, self._handle)

    def _log_outcome(self, result: ChatResult) -> None:
        usage = result.billable_tokens
        logger.info(
            "chat.relay.finished",
            **safe_kv(
                outcome="cancelled" if result.cancelled else "completed",
                response_kind=result.kind,
                response_chars=len(result.response_text),
                tokens_input_estimate=usage.input,
                tokens_output_estimate=usage.output,
                tokens_total_estimate=usage.total,
            ),
        )

    def _persist(self, result: ChatResult) -> None:
        """Append the completed turn. Failures are logged; the client already has the text."""
        try:
            with self._session_factory() as db:
                append_turn(
                    db,
                    chat_id=self._chat_id,
                    user_id=self._user_id,
                    prompt=self._user_message,
                    response=result.response_text,
                    response_kind=result.kind,
                )
        except Exception:
            logger.exception("chat.turn.persist_failed", chat_id=self._chat_id)

    # -------------------------------------------------------------------------
    # Response body
    # -------------------------------------------------------------------------

    def _schedule_disconnect_cancel(self) -> None:
        if self._body_finished or self._disconnect_scheduled:
            return
        self._disconnect_scheduled = True
        logger.info(
            "chat.relay.client_disconnected",
            debounce_ms=int(self._disconnect_debounce_s * 1000),
        )
        asyncio.get_running_loop().call_later(self._disconnect_debounce_s, self._handle.cancel)

    async def _body(self) -> AsyncIterator[str]:
        try:
            while True:
                item = await self._queue.get()
                if item is _END:
                    self._body_finished = True
                    return
                yield item
        finally:
            self._schedule_disconnect_cancel()

    async def _await_producer(self) -> None:
        # Also covers a response torn down before its body was ever iterated.
        self._schedule_disconnect_cancel()
        if self._producer is not None:
            await asyncio.wait({self._producer})

    # -------------------------------------------------------------------------
    # Entry point
    # -------------------------------------------------------------------------

    def start(self) -> StreamingResponse:
        """Spawn the producer and return the streaming response."""
        set_chat_id(self._chat_id)
        self._producer = asyncio.create_task(self._produce())
        _running_producers.add(self._producer)
        self._producer.add_done_callback(_running_producers.discard)

        return StreamingResponse(
            self._body(),
            media_type=STREAM_MEDIA_TYPE,
            headers=STREAM_HEADERS,
            background=BackgroundTask(self._await_producer),
        )
