"""FastAPI dependencies for route handlers.

Everything here reads process-wide resources that the lifespan placed on
app.state; nothing is an import-time singleton.
"""

from collections.abc import Generator

from fastapi import Request
from sqlalchemy.orm import Session, sessionmaker

from termsmith.config import get_settings
from termsmith.services.chat_stream import ChatStreamService
from termsmith.services.controller_registry import ControllerRegistry
from termsmith.services.llm import LLMRouter

__all__ = [
    "get_chat_stream_service",
    "get_controller_registry",
    "get_db",
    "get_llm_router",
    "get_session_factory",
]


def get_llm_router(request: Request) -> LLMRouter:
    """The shared LLMRouter, built at startup around the shared httpx client."""
    return request.app.state.llm_router


def get_controller_registry(request: Request) -> ControllerRegistry:
    """The application's in-flight generation registry."""
    return request.app.state.controller_registry


def get_session_factory(request: Request) -> sessionmaker[Session]:
    return request.app.state.session_factory


def get_db(request: Request) -> Generator[Session, None, None]:
    """FastAPI dependency that provides a database session.

    Yields:
        A database session that is automatically closed after use.
    """
    db = get_session_factory(request)()
    try:
        yield db
    finally:
        db.close()


def get_chat_stream_service(request: Request) -> ChatStreamService:
    return ChatStreamService(
        router=get_llm_router(request),
        settings=get_settings(),
        session_factory=get_session_factory(request),
    )
