"""API response envelope helpers and exception handlers.

The JSON read APIs use a consistent envelope:
- Success: { "data": ... }
- Error: { "error": { "code": "E_...", "message": "...", "request_id": "..." } }

The chat relay keeps the flat bodies its browser client expects; those are
built by the helpers at the bottom of this module.
"""

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse

from termsmith.errors import ApiError, ApiErrorCode
from termsmith.logging import get_logger, get_request_id

logger = get_logger(__name__)

VALIDATION_ERROR = "Validation error"
UNAUTHORIZED = "Unauthorized"
SOMETHING_WENT_WRONG = "Something went wrong."
CONTROLLER_NOT_FOUND = "Controller not found"


def success_response(data: Any) -> dict[str, Any]:
    """Create a success response envelope."""
    return {"data": data}


def error_response(
    code: ApiErrorCode, message: str, request_id: str | None = None
) -> dict[str, Any]:
    """Create an error response envelope.

    Args:
        code: The error code enum value.
        message: Human-readable error message.
        request_id: Optional request ID for correlation (auto-populated from context if None).

    Returns:
        Dict with "error" key containing code, message, and request_id.
    """
    if request_id is None:
        request_id = get_request_id()

    error = {"code": code.value, "message": message}
    if request_id:
        error["request_id"] = request_id

    return {"error": error}


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    """Handle ApiError exceptions and return proper JSON response."""
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(exc.code, exc.message),
    )


async def http_exception_handler(request: Request, exc: Any) -> JSONResponse:
    """Handle FastAPI HTTPException and return proper JSON response."""
    status_to_code = {
        400: ApiErrorCode.E_INVALID_REQUEST,
        401: ApiErrorCode.E_UNAUTHENTICATED,
        404: ApiErrorCode.E_NOT_FOUND,
        422: ApiErrorCode.E_INVALID_REQUEST,
    }
    code = status_to_code.get(exc.status_code, ApiErrorCode.E_INTERNAL)
    message = str(exc.detail) if exc.detail else "An error occurred"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(code, message),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unhandled exceptions and return 500 with E_INTERNAL.

    Logs the exception server-side but never leaks details to client.
    """
    logger.exception("unhandled_exception", error_type=type(exc).__name__)

    return JSONResponse(
        status_code=500,
        content=error_response(ApiErrorCode.E_INTERNAL, "Internal server error"),
    )


# =============================================================================
# Chat relay bodies
# =============================================================================


def validation_error_response(errors: dict[str, Any]) -> JSONResponse:
    """400 with field-level detail."""
    return JSONResponse(status_code=400, content={"error": VALIDATION_ERROR, "errors": errors})


def unauthorized_response() -> JSONResponse:
    """401 for a missing or invalid session."""
    return JSONResponse(status_code=401, content={"error": UNAUTHORIZED})


def setup_failure_response() -> JSONResponse:
    """500 for failures before the stream was opened."""
    return JSONResponse(status_code=500, content={"message": SOMETHING_WENT_WRONG})


def controller_not_found_response() -> JSONResponse:
    """404 when there is no in-flight generation to cancel."""
    return JSONResponse(status_code=404, content={"error": CONTROLLER_NOT_FOUND})
