"""API route definitions.

Uses a factory pattern to avoid import-time settings loading.
This allows tests to import modules without requiring all environment
variables to be configured upfront.
"""

from fastapi import APIRouter

from termsmith.api.routes.chat import router as chat_router
from termsmith.api.routes.chats import router as chats_router
from termsmith.api.routes.health import router as health_router
from termsmith.api.routes.me import router as me_router


def create_api_router() -> APIRouter:
    """Create and configure the API router."""
    api_router = APIRouter()
    api_router.include_router(health_router, tags=["health"])
    api_router.include_router(chat_router)
    api_router.include_router(chats_router)
    api_router.include_router(me_router)
    return api_router


__all__ = ["create_api_router"]
