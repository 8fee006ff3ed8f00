"""Chat history read routes.

All routes are owner-scoped: another user's chat id behaves exactly like an
id that does not exist.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from termsmith.api.deps import get_db
from termsmith.auth.session import Viewer, get_viewer
from termsmith.responses import success_response
from termsmith.schemas.chat import DualFormatDocumentOut
from termsmith.services import chat_history
from termsmith.services.document import split_dual_format

router = APIRouter(prefix="/api/chats", tags=["chats"])


@router.get("")
def list_chats(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """The caller's conversations, newest first."""
    chats = chat_history.list_chat_summaries(db, viewer.user_id)
    return success_response([chat.model_dump(mode="json") for chat in chats])


@router.get("/{chat_id}")
def get_chat(
    chat_id: str,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """One conversation with its message log, or null."""
    thread = chat_history.get_chat_thread_out(db, viewer.user_id, chat_id)
    return success_response(thread.model_dump(mode="json") if thread else None)


@router.get("/{chat_id}/document")
def get_chat_document(
    chat_id: str,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """The latest generated document split into markdown and HTML."""
    answer = chat_history.get_latest_model_answer_or_404(db, viewer.user_id, chat_id)
    document = split_dual_format(answer)
    out = DualFormatDocumentOut(chat_id=chat_id, markdown=document.markdown, html=document.html)
    return success_response(out.model_dump(mode="json"))
