"""Chat request and response schemas.

The relay request uses the browser client's camelCase field names; the read
API responses follow the snake_case used everywhere else.
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

# Models the relay accepts; each maps to exactly one provider.
SUPPORTED_MODELS = Literal["gpt-4o-mini", "gemini-2.5-flash-lite"]

MESSAGE_ROLES = Literal["user", "model"]
RESPONSE_KINDS = Literal["normal", "fallback"]


# =============================================================================
# Request Schemas
# =============================================================================


class ChatRequest(BaseModel):
    """Body of POST /api/chat."""

    message: str = Field(min_length=1)
    chat_id: str = Field(alias="chatId", min_length=1)
    model: SUPPORTED_MODELS

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


def flatten_validation_error(exc: ValidationError) -> dict[str, Any]:
    """Group pydantic errors into form-level and per-field messages.

    Errors located on a top-level field go under ``fieldErrors[field]``;
    errors about the body as a whole go under ``formErrors``.
    """
    form_errors: list[str] = []
    field_errors: dict[str, list[str]] = {}

    for error in exc.errors():
        loc = error.get("loc") or ()
        if loc:
            field_errors.setdefault(str(loc[0]), []).append(error["msg"])
        else:
            form_errors.append(error["msg"])

    return {"formErrors": form_errors, "fieldErrors": field_errors}


# =============================================================================
# Response Schemas
# =============================================================================


class ChatPart(BaseModel):
    text: str


class ChatMessage(BaseModel):
    """One entry of a conversation's message log."""

    role: MESSAGE_ROLES
    parts: list[ChatPart]
    kind: RESPONSE_KINDS | None = None

    model_config = ConfigDict(extra="ignore")


class ChatSummaryOut(BaseModel):
    """A conversation in the caller's history list."""

    id: str
    title: str | None
    created_at: datetime
    messages: list[ChatMessage]

    model_config = ConfigDict(from_attributes=True)


class ChatThreadOut(BaseModel):
    """A single conversation with its full message log."""

    id: str
    title: str | None
    messages: list[ChatMessage]
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class DualFormatDocumentOut(BaseModel):
    """The latest generated document in both renderings."""

    chat_id: str
    markdown: str
    html: str | None
