"""Conversation message-log persistence and owner-scoped reads.

Write path:
- append_turn() adds one user entry and one model entry to a conversation in a
  single INSERT ... ON CONFLICT DO UPDATE statement. The append happens in SQL
  (jsonb || on PostgreSQL, json_insert on SQLite), so concurrent writers for
  the same chat never lose each other's entries and never read-modify-write.
- The update branch only fires when the existing row belongs to the writer;
  a chat id owned by another user is left untouched.

Read path:
- get_chat_thread / list_chats / load_previous_messages are scoped by owner.
  Another user's chat id is indistinguishable from a missing one.
"""

from typing import Any
from uuid import UUID

from sqlalchemy import case, func, or_, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from termsmith.db.models import Chat
from termsmith.db.session import transaction
from termsmith.errors import ApiErrorCode, NotFoundError
from termsmith.logging import get_logger
from termsmith.schemas.chat import ChatSummaryOut, ChatThreadOut
from termsmith.services.redact import safe_kv

logger = get_logger(__name__)

RESPONSE_KIND_NORMAL = "normal"
RESPONSE_KIND_FALLBACK = "fallback"


# =============================================================================
# Message log entries
# =============================================================================


def user_entry(text: str) -> dict[str, Any]:
    return {"role": "user", "parts": [{"text": text}]}


def model_entry(text: str, kind: str = RESPONSE_KIND_NORMAL) -> dict[str, Any]:
    return {"role": "model", "parts": [{"text": text}], "kind": kind}


def entry_text(entry: dict[str, Any]) -> str:
    """Concatenate the text of every part of a log entry."""
    return "".join(part.get("text", "") for part in entry.get("parts") or [])


# =============================================================================
# Write path
# =============================================================================


def _append_entries_sql(dialect_name: str, excluded_messages):
    """SQL expression appending the two excluded entries to Chat.messages."""
    if dialect_name == "postgresql":
        return Chat.messages.op("||")(excluded_messages)

    # SQLite applies json_insert path/value pairs left to right; "$[#]" is the
    # position one past the end of the array at the time each pair is applied.
    return func.json_insert(
        Chat.messages,
        "$[#]",
        func.json(func.json_extract(excluded_messages, "$[0]")),
        "$[#]",
        func.json(func.json_extract(excluded_messages, "$[1]")),
    )


def append_turn(
    db: Session,
    *,
    chat_id: str,
    user_id: UUID,
    prompt: str,
    response: str,
    response_kind: str = RESPONSE_KIND_NORMAL,
) -> bool:
    """Append a user/model turn to a conversation, creating it if needed.

    A new row gets ``title = prompt``. An existing row keeps its title unless
    the title is NULL or empty, in which case the prompt becomes the title.
    ``updated_at`` is bumped on every append.

    Args:
        db: Database session.
        chat_id: Client-generated conversation id.
        user_id: Owner writing the turn.
        prompt: The user's message, verbatim (without the system instruction).
        response: The text the client received for this turn.
        response_kind: "normal", or "fallback" when the response is the
            substituted apology for a failed provider stream.

    Returns:
        True if the turn was written, False if chat_id belongs to another user.
    """
    dialect_name = db.get_bind().dialect.name
    insert = postgresql.insert if dialect_name == "postgresql" else sqlite.insert

    entries = [user_entry(prompt), model_entry(response, response_kind)]
    stmt = insert(Chat).values(
        id=chat_id,
        user_id=user_id,
        title=prompt,
        messages=entries,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[Chat.id],
        set_={
            "title": case(
                (or_(Chat.title.is_(None), Chat.title == ""), stmt.excluded.title),
                else_=Chat.title,
            ),
            "messages": _append_entries_sql(dialect_name, stmt.excluded.messages),
            "updated_at": func.now(),
        },
        where=Chat.user_id == stmt.excluded.user_id,
    ).returning(Chat.id)

    with transaction(db):
        written = db.execute(stmt).first() is not None

    if not written:
        logger.warning(
            "chat.turn.rejected_foreign_owner",
            **safe_kv(chat_id=chat_id, user_id=str(user_id)),
        )
        return False

    logger.info(
        "chat.turn.persisted",
        **safe_kv(
            chat_id=chat_id,
            response_kind=response_kind,
            prompt_chars=len(prompt),
            response_chars=len(response),
        ),
    )
    return True


# =============================================================================
# Read path
# =============================================================================


def get_chat_thread(db: Session, user_id: UUID, chat_id: str) -> Chat | None:
    """Return the caller's chat, or None if it is missing or someone else's."""
    return db.scalar(select(Chat).where(Chat.id == chat_id, Chat.user_id == user_id))


def load_previous_messages(db: Session, user_id: UUID, chat_id: str) -> list[dict[str, Any]]:
    """Message log of the caller's chat; empty for a new or foreign chat id."""
    chat = get_chat_thread(db, user_id, chat_id)
    if chat is None:
        return []
    return list(chat.messages or [])


def list_chats(db: Session, user_id: UUID) -> list[Chat]:
    """The caller's non-deleted chats, newest first."""
    return list(
        db.scalars(
            select(Chat)
            .where(Chat.user_id == user_id, Chat.deleted_at.is_(None))
            .order_by(Chat.created_at.desc(), Chat.id.desc())
        )
    )


def get_chat_thread_out(db: Session, user_id: UUID, chat_id: str) -> ChatThreadOut | None:
    chat = get_chat_thread(db, user_id, chat_id)
    if chat is None:
        return None
    return ChatThreadOut.model_validate(chat)


def list_chat_summaries(db: Session, user_id: UUID) -> list[ChatSummaryOut]:
    return [ChatSummaryOut.model_validate(chat) for chat in list_chats(db, user_id)]


def get_latest_model_answer_or_404(db: Session, user_id: UUID, chat_id: str) -> str:
    """Text of the most recent model entry of the caller's chat.

    Raises:
        NotFoundError: E_CHAT_NOT_FOUND if the chat is missing, foreign, or
            has no model answer yet.
    """
    chat = get_chat_thread(db, user_id, chat_id)
    if chat is not None:
        for entry in reversed(chat.messages or []):
            if entry.get("role") == "model":
                return entry_text(entry)

    raise NotFoundError(ApiErrorCode.E_CHAT_NOT_FOUND, "Chat not found")
