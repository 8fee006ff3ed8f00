"""Chat relay routes.

- POST /api/chat: stream a model answer as chunked text/plain
- POST /api/chat/{chat_id}/cancel: stop the caller's in-flight generation

These routes answer with the flat JSON bodies the browser client expects
rather than the error envelope, and check the request in a fixed order:
body validation (400) before authentication (401) before any side effect.
"""

import json

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool
from starlette.responses import Response

from termsmith.api.deps import (
    get_chat_stream_service,
    get_controller_registry,
    get_session_factory,
)
from termsmith.auth.session import resolve_session
from termsmith.config import get_settings
from termsmith.logging import get_logger
from termsmith.responses import (
    controller_not_found_response,
    setup_failure_response,
    success_response,
    unauthorized_response,
    validation_error_response,
)
from termsmith.schemas.chat import ChatRequest, flatten_validation_error
from termsmith.services.chat_relay import ChatRelay
from termsmith.services.controller_registry import CancellationHandle
from termsmith.services.llm import build_system_prompt
from termsmith.services.redact import hash_text, safe_kv
from termsmith.services.users import get_active_user

logger = get_logger(__name__)

router = APIRouter(prefix="/api/chat", tags=["chat"])


async def _parse_chat_request(request: Request) -> ChatRequest | JSONResponse:
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return validation_error_response(
            {"formErrors": ["Request body must be valid JSON"], "fieldErrors": {}}
        )

    try:
        return ChatRequest.model_validate(payload)
    except ValidationError as e:
        return validation_error_response(flatten_validation_error(e))


@router.post("")
async def chat(request: Request) -> Response:
    """Relay one model answer for the caller's conversation."""
    parsed = await _parse_chat_request(request)
    if isinstance(parsed, JSONResponse):
        return parsed
    body = parsed

    viewer = resolve_session(request)
    if viewer is None:
        return unauthorized_response()

    registry = get_controller_registry(request)
    session_factory = get_session_factory(request)
    handle: CancellationHandle | None = None

    try:
        await run_in_threadpool(_ensure_active_user, session_factory, viewer.user_id)
        system_prompt = build_system_prompt()

        handle = CancellationHandle(owner_user_id=viewer.user_id)
        if not registry.register(body.chat_id, handle):
            logger.warning("chat.relay.chat_in_use", chat_id=body.chat_id)
            return setup_failure_response()

        logger.info(
            "chat.relay.started",
            **safe_kv(
                chat_id=body.chat_id,
                model_name=body.model,
                message_chars=len(body.message),
                message_sha256=hash_text(body.message),
            ),
        )

        relay = ChatRelay(
            stream_service=get_chat_stream_service(request),
            registry=registry,
            session_factory=session_factory,
            handle=handle,
            chat_id=body.chat_id,
            user_id=viewer.user_id,
            user_message=body.message,
            model=body.model,
            system_prompt=system_prompt,
            disconnect_debounce_s=get_settings().disconnect_debounce_seconds,
        )
        return relay.start()

    except Exception:
        logger.exception("chat.relay.setup_failed", chat_id=body.chat_id)
        if handle is not None:
            registry.discard(body.chat_id, handle)
        return setup_failure_response()


def _ensure_active_user(session_factory, user_id) -> None:
    with session_factory() as db:
        get_active_user(db, user_id)


@router.post("/{chat_id}/cancel")
async def cancel_chat(chat_id: str, request: Request) -> Response:
    """Cancel the caller's in-flight generation for chat_id."""
    viewer = resolve_session(request)
    if viewer is None:
        return unauthorized_response()

    registry = get_controller_registry(request)
    if not registry.revoke_and_remove(chat_id, owner_user_id=viewer.user_id):
        logger.info("chat.cancel.not_found", chat_id=chat_id)
        return controller_not_found_response()

    logger.info("chat.cancel.revoked", chat_id=chat_id)
    return JSONResponse(status_code=200, content=success_response({"cancelled": True}))
