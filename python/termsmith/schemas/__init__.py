"""Pydantic schemas for request/response models.

All schemas are re-exported here for convenient imports.
"""

from termsmith.schemas.chat import (
    ChatMessage,
    ChatPart,
    ChatRequest,
    ChatSummaryOut,
    ChatThreadOut,
    DualFormatDocumentOut,
    flatten_validation_error,
)
from termsmith.schemas.user import UserOut

__all__ = [
    "ChatMessage",
    "ChatPart",
    "ChatRequest",
    "ChatSummaryOut",
    "ChatThreadOut",
    "DualFormatDocumentOut",
    "UserOut",
    "flatten_validation_error",
]
