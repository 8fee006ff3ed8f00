"""X-Request-ID middleware for request correlation and access logging.

The middleware must be added last so that it runs first: every other layer,
including the chat relay's early 400/401 bodies, then sees the request id and
echoes it in the response headers.

It is written as a pure ASGI middleware rather than a BaseHTTPMiddleware so a
streaming chat response is passed through untouched and the access-log line is
emitted only after the last body chunk has been sent.
"""

import re
import time
import uuid

from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from termsmith.logging import clear_request_context, get_logger, set_request_context

REQUEST_ID_HEADER = "X-Request-ID"
MAX_REQUEST_ID_LENGTH = 128

# Alphanumeric, dots, hyphens, underscores
VALID_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._-]{1,128}$")

UUID_PATTERN = re.compile(
    r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
)

logger = get_logger(__name__)


def is_valid_uuid(value: str) -> bool:
    """Check if value is a valid UUID string."""
    return bool(UUID_PATTERN.match(value))


def is_valid_request_id(value: str) -> bool:
    """Check if value is an acceptable incoming request ID.

    Valid when it fits in 128 bytes and is either a UUID or matches the
    alphanumeric pattern.
    """
    if len(value.encode("utf-8")) > MAX_REQUEST_ID_LENGTH:
        return False

    return is_valid_uuid(value) or bool(VALID_REQUEST_ID_PATTERN.match(value))


def normalize_request_id(value: str) -> str:
    """Lowercase UUIDs; keep other valid ids as-is."""
    if is_valid_uuid(value):
        return value.lower()
    return value


def generate_request_id() -> str:
    """Generate a new UUID v4 request ID."""
    return str(uuid.uuid4())


class RequestIDMiddleware:
    """Assign or echo X-Request-ID and emit one access log entry per request.

    1. Validates and normalizes incoming X-Request-ID headers
    2. Generates a new ID if missing or invalid
    3. Sets request_id on request.state and in the logging context
    4. Echoes the ID in the response header
    5. Logs ``request_completed`` once the response body is finished

    Args:
        app: The ASGI application.
        log_requests: If True, log access entries for each request.
    """

    def __init__(self, app: ASGIApp, log_requests: bool = True):
        self.app = app
        self.log_requests = log_requests

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        start_time = time.monotonic()
        incoming_id = Headers(scope=scope).get(REQUEST_ID_HEADER)

        if incoming_id and is_valid_request_id(incoming_id):
            request_id = normalize_request_id(incoming_id)
        else:
            request_id = generate_request_id()

        scope.setdefault("state", {})["request_id"] = request_id
        set_request_context(request_id, path=scope.get("path"), method=scope.get("method"))

        status_code = 500

        async def send_wrapper(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
                headers = MutableHeaders(scope=message)
                headers[REQUEST_ID_HEADER] = request_id
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception:
            logger.exception("request_failed")
            raise
        else:
            if self.log_requests:
                duration_ms = (time.monotonic() - start_time) * 1000
                logger.info(
                    "request_completed",
                    status_code=status_code,
                    duration_ms=round(duration_ms, 2),
                )
        finally:
            clear_request_context()
