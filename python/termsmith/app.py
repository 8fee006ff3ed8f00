"""FastAPI application creation and configuration.

This module creates and configures the FastAPI application instance.
It registers exception handlers, request-id middleware, and routes.

Authentication is per route rather than global middleware: the chat relay must
reject a malformed body (400) before it looks at the caller's session (401).

Middleware Ordering:
- RequestIDMiddleware is added LAST so it runs FIRST (outermost), so every
  response, including 400/401 from the relay, carries X-Request-ID.

Lifespan resources (all on app.state):
- httpx_client: shared httpx.AsyncClient for provider calls
- llm_router: LLMRouter wrapping the shared client, with provider flags
- controller_registry: in-flight generation handles keyed by chat id
- engine / session_factory: SQLAlchemy engine and session factory
"""

from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from termsmith.api.routes import create_api_router
from termsmith.config import get_settings
from termsmith.db.engine import create_db_engine
from termsmith.db.session import create_session_factory
from termsmith.errors import ApiError, ApiErrorCode
from termsmith.logging import configure_logging, get_logger
from termsmith.middleware.request_id import RequestIDMiddleware
from termsmith.responses import (
    api_error_handler,
    error_response,
    http_exception_handler,
    unhandled_exception_handler,
)
from termsmith.services.controller_registry import ControllerRegistry
from termsmith.services.llm import LLMRouter

# Configure structured logging at import time
configure_logging()

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create process-wide resources at startup and release them at shutdown."""
    settings = get_settings()

    app.state.engine = create_db_engine(settings.database_url)
    app.state.session_factory = create_session_factory(app.state.engine)

    # Read timeout is per request (LLM_READ_TIMEOUT_S); generations can run for minutes.
    app.state.httpx_client = httpx.AsyncClient(
        timeout=httpx.Timeout(None, connect=10.0),
        limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
    )

    app.state.llm_router = LLMRouter(
        app.state.httpx_client,
        enable_openai=settings.enable_openai,
        enable_gemini=settings.enable_gemini,
    )
    app.state.controller_registry = ControllerRegistry()

    logger.info(
        "llm_router_initialized",
        enable_openai=settings.enable_openai,
        enable_gemini=settings.enable_gemini,
        openai_key_configured=bool(settings.openai_api_key),
        gemini_key_configured=bool(settings.gemini_api_key),
    )

    yield

    await app.state.httpx_client.aclose()
    app.state.engine.dispose()
    logger.info("httpx_client_closed")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    app = FastAPI(
        title="Termsmith API",
        description="Backend API for Termsmith - a Terms of Service generator",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Register exception handlers
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Handle request validation errors on the enveloped routes."""
        return JSONResponse(
            status_code=400,
            content=error_response(ApiErrorCode.E_INVALID_REQUEST, "Invalid request"),
        )

    # Use router factory to avoid import-time settings loading
    app.include_router(create_api_router())

    return app


def add_request_id_middleware(app: FastAPI, log_requests: bool = True) -> None:
    """Add request-id middleware to the app.

    This should be called AFTER all other middleware is added, so it runs FIRST.

    Args:
        app: The FastAPI application.
        log_requests: Whether to log access entries for each request.
    """
    app.add_middleware(RequestIDMiddleware, log_requests=log_requests)
    logger.info("request_id_middleware_enabled")
